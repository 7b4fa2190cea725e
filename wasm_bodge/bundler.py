"""esbuild invocation.

esbuild turns the synthesized ESM entrypoints into the formats that cannot be
written by hand: the script-tag IIFE bundle and the CommonJS bundles of the
ESM-only environments.
"""

import logging
import pathlib
import re
import shutil
import subprocess
import time

from wasm_bodge import paths
from wasm_bodge.errors import ToolFailedError, ToolNotFoundError
from wasm_bodge.targets import Environment, all_environments

_ESBUILD_REMEDIATION: str = (
    "esbuild not found. Please install it:\n"
    "  npm install -g esbuild\n"
    "  or: npm install --save-dev esbuild\n"
    "or pass --esbuild with the path to an esbuild executable."
)

_WORD_RE: re.Pattern[str] = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|[0-9]+[a-z]*")


def global_name(package_name: str) -> str:
    """Derive the IIFE global identifier from a package name.

    :param package_name: npm package name (e.g. ``my-lib`` or ``@scope/my-lib``).
    :returns: PascalCase identifier (e.g. ``MyLib``).
    """

    words: list[str] = _WORD_RE.findall(paths.unscoped_name(package_name))
    name: str = "".join(w[0].upper() + w[1:].lower() for w in words)
    if name == "":
        return "Wasm"
    if name[0].isdigit() is True:
        return f"_{name}"
    return name


def find_esbuild(
    *,
    explicit: str | None,
    search_dirs: list[pathlib.Path],
    logger: logging.Logger,
) -> str:
    """Locate a working esbuild executable.

    Candidates, in order: ``explicit``; ``esbuild`` on ``PATH``;
    ``node_modules/.bin/esbuild`` under each search dir and its parent.

    :param explicit: Path supplied by the user, if any.
    :param search_dirs: Directories whose ``node_modules`` should be searched.
    :param logger: Logger for debug output.
    :returns: The first candidate that answers ``--version``.
    :raises ToolNotFoundError: If no candidate works.
    """

    candidates: list[str] = []
    if explicit is not None:
        candidates.append(explicit)
    else:
        on_path: str | None = shutil.which("esbuild")
        if on_path is not None:
            candidates.append(on_path)
        for d in search_dirs:
            for base in (d, d.parent):
                local: pathlib.Path = base / "node_modules" / ".bin" / "esbuild"
                if str(local) not in candidates:
                    candidates.append(str(local))

    for candidate in candidates:
        if _responds_to_version(candidate) is True:
            if logger.isEnabledFor(logging.DEBUG) is True:
                logger.debug(f"wasm-bodge: using esbuild={candidate}")
            return candidate

    if explicit is not None:
        raise ToolNotFoundError(f"esbuild at {explicit!r} is not runnable.\n{_ESBUILD_REMEDIATION}")
    raise ToolNotFoundError(_ESBUILD_REMEDIATION)


def _responds_to_version(candidate: str) -> bool:
    try:
        proc = subprocess.run(
            [candidate, "--version"],
            check=False,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError:
        return False
    return proc.returncode == 0


def esbuild_args(
    *,
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    fmt: str,
    global_name: str | None,
) -> list[str]:
    """Build esbuild command-line arguments (excluding the executable).

    :param input_path: Entry ESM file.
    :param output_path: Bundle output file.
    :param fmt: ``iife`` or ``cjs``.
    :param global_name: Global identifier for ``iife`` bundles.
    :returns: Argument list.
    """

    args: list[str] = [
        str(input_path),
        "--bundle",
        f"--format={fmt}",
        f"--outfile={output_path}",
        # import.meta is only reached on the web target's fetch path, which the
        # embedded entrypoints never take.
        "--log-override:empty-import-meta=silent",
    ]
    if fmt == "cjs":
        args.append("--platform=node")
    if global_name is not None:
        args.append(f"--global-name={global_name}")
    return args


def run_esbuild(
    *,
    esbuild: str,
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    fmt: str,
    global_name: str | None,
    logger: logging.Logger,
) -> None:
    """Run esbuild once.

    :raises ToolFailedError: If esbuild exits non-zero.
    :raises ToolNotFoundError: If the executable disappeared since discovery.
    """

    cmd: list[str] = [
        esbuild,
        *esbuild_args(input_path=input_path, output_path=output_path, fmt=fmt, global_name=global_name),
    ]
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"wasm-bodge: running esbuild: {' '.join(cmd)}")

    try:
        proc = subprocess.run(cmd, check=False)
    except OSError as e:
        raise ToolNotFoundError(f"Failed to run esbuild at {esbuild!r}: {e}") from e
    if proc.returncode != 0:
        raise ToolFailedError("esbuild", proc.returncode, f"{fmt} bundle of {input_path}")


def bundle_all(
    *,
    out_dir: pathlib.Path,
    package_name: str,
    esbuild: str,
    logger: logging.Logger,
) -> list[pathlib.PurePosixPath]:
    """Produce the IIFE bundle and the CommonJS bundles.

    :param out_dir: Output directory with the ESM entrypoints already written.
    :param package_name: npm package name (for the IIFE global).
    :param esbuild: esbuild executable from :func:`find_esbuild`.
    :param logger: Logger for progress output.
    :returns: Relative paths of the bundles, in build order.
    :raises ToolFailedError: On the first failing esbuild run.
    """

    built: list[pathlib.PurePosixPath] = []
    t0: float = time.perf_counter()

    name: str = global_name(package_name)
    logger.info(f"wasm-bodge: bundling {paths.iife_bundle()} (global {name})")
    run_esbuild(
        esbuild=esbuild,
        input_path=out_dir / paths.esm_entrypoint(Environment.WEB),
        output_path=out_dir / paths.iife_bundle(),
        fmt="iife",
        global_name=name,
        logger=logger,
    )
    built.append(paths.iife_bundle())

    for env in all_environments():
        if env.needs_cjs_bundle is False:
            continue
        logger.info(f"wasm-bodge: bundling {paths.cjs_entrypoint(env)}")
        run_esbuild(
            esbuild=esbuild,
            input_path=out_dir / paths.esm_entrypoint(env),
            output_path=out_dir / paths.cjs_entrypoint(env),
            fmt="cjs",
            global_name=None,
            logger=logger,
        )
        built.append(paths.cjs_entrypoint(env))

    t1: float = time.perf_counter()
    logger.info(f"wasm-bodge: {len(built)} bundles built in {t1 - t0:.2f}s")
    return built
