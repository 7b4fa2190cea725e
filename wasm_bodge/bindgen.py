"""Obtaining ``wasm-bindgen`` output.

Either compile the crate with cargo and run ``wasm-bindgen`` once per
:class:`~wasm_bodge.targets.BindingTarget`, or unpack a prebuilt archive of
that output.
"""

import json
import logging
import pathlib
import shutil
import subprocess
import tarfile
import time
import tomllib
import zlib

from wasm_bodge.errors import (
    BuildError,
    ManifestError,
    MissingArtifactError,
    ToolFailedError,
    ToolNotFoundError,
)
from wasm_bodge.targets import BindingTarget

WASM_TRIPLE: str = "wasm32-unknown-unknown"

_TOOL_REMEDIATION: dict[str, str] = {
    "cargo": "Install Rust from https://rustup.rs and run: rustup target add wasm32-unknown-unknown",
    "wasm-bindgen": "Install it with: cargo install wasm-bindgen-cli",
}


def read_crate_name(crate_path: pathlib.Path) -> str:
    """Read ``package.name`` from the crate's ``Cargo.toml``.

    :param crate_path: Crate directory.
    :returns: Crate name as written (hyphens preserved).
    :raises ManifestError: If the file is missing, invalid, or has no package name.
    """

    cargo_toml: pathlib.Path = crate_path / "Cargo.toml"
    try:
        with open(cargo_toml, "rb") as f:
            data: dict = tomllib.load(f)
    except FileNotFoundError as e:
        raise ManifestError(cargo_toml, "file not found") from e
    except UnicodeDecodeError as e:
        raise ManifestError(cargo_toml, f"not valid UTF-8: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ManifestError(cargo_toml, f"invalid TOML: {e}") from e

    package = data.get("package")
    name = package.get("name") if isinstance(package, dict) else None
    if isinstance(name, str) is False or name == "":
        raise ManifestError(cargo_toml, "missing [package] name")
    return name


def read_package_name(package_json: pathlib.Path, crate_name: str) -> str:
    """Read the npm package name, falling back to the crate name.

    :param package_json: Path to ``package.json``.
    :param crate_name: Crate name, used when ``name`` is absent.
    :returns: Package name.
    :raises ManifestError: If the file cannot be read or parsed.
    """

    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except OSError as e:
        raise ManifestError(package_json, f"cannot read: {e}") from e
    except UnicodeDecodeError as e:
        raise ManifestError(package_json, f"not valid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise ManifestError(package_json, f"invalid JSON: {e}") from e

    if isinstance(data, dict) is True and isinstance(data.get("name"), str) is True:
        return data["name"]
    return crate_name.replace("_", "-")


def cargo_profile_args(profile: str) -> list[str]:
    """``--release`` for the release profile, ``--profile=<name>`` otherwise."""

    if profile == "release":
        return ["--release"]
    return [f"--profile={profile}"]


def profile_dir(profile: str) -> str:
    """Directory cargo writes a profile's artifacts to.

    The built-in ``dev`` profile writes to ``debug/``.
    """

    if profile == "dev":
        return "debug"
    return profile


def require_tools(names: list[str]) -> None:
    """Check that every tool in ``names`` is on ``PATH``.

    All missing tools are reported together, before anything is run.

    :param names: Executable names.
    :raises ToolNotFoundError: If any are missing.
    """

    missing: list[str] = [n for n in names if shutil.which(n) is None]
    if len(missing) == 0:
        return
    lines: list[str] = [f"- {n}: {_TOOL_REMEDIATION.get(n, 'install it and make sure it is on PATH')}" for n in missing]
    raise ToolNotFoundError("Required tools not found on PATH:\n" + "\n".join(lines))


def find_target_dir(crate_path: pathlib.Path, *, logger: logging.Logger) -> pathlib.Path:
    """Ask cargo where its target directory is (workspaces move it).

    :param crate_path: Crate directory.
    :param logger: Logger for debug output.
    :returns: Target directory; ``<crate>/target`` if cargo metadata is unavailable.
    """

    cmd: list[str] = [
        "cargo",
        "metadata",
        "--format-version=1",
        "--no-deps",
        "--manifest-path",
        str(crate_path / "Cargo.toml"),
    ]
    proc = subprocess.run(cmd, check=False, capture_output=True)
    if proc.returncode == 0:
        try:
            metadata = json.loads(proc.stdout)
        except json.JSONDecodeError as e:
            raise BuildError("Failed to parse cargo metadata output") from e
        target_dir = metadata.get("target_directory") if isinstance(metadata, dict) else None
        if isinstance(target_dir, str) is True:
            return pathlib.Path(target_dir)

    fallback: pathlib.Path = crate_path / "target"
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"wasm-bodge: cargo metadata unavailable; assuming target dir {fallback}")
    return fallback


def build_wasm(
    *,
    crate_path: pathlib.Path,
    bindgen_dir: pathlib.Path,
    profile: str,
    logger: logging.Logger,
) -> None:
    """Compile the crate to wasm and run ``wasm-bindgen`` for every target.

    :param crate_path: Crate directory.
    :param bindgen_dir: Destination ``wasm_bindgen/`` directory.
    :param profile: Cargo profile name.
    :param logger: Logger for progress output.
    :raises BuildError: If a tool is missing, fails, or produces no wasm.
    """

    require_tools(["cargo", "wasm-bindgen"])

    crate_name: str = read_crate_name(crate_path)

    logger.info(f"wasm-bodge: building crate {crate_name} (profile={profile})")
    t0: float = time.perf_counter()
    _run_tool(
        "cargo",
        [
            "cargo",
            "build",
            "--target",
            WASM_TRIPLE,
            *cargo_profile_args(profile),
            "--manifest-path",
            str(crate_path / "Cargo.toml"),
        ],
        logger=logger,
    )
    t1: float = time.perf_counter()
    logger.info(f"wasm-bodge: cargo build finished in {t1 - t0:.2f}s")

    target_dir: pathlib.Path = find_target_dir(crate_path, logger=logger)
    wasm_file: pathlib.Path = (
        target_dir / WASM_TRIPLE / profile_dir(profile) / f"{crate_name.replace('-', '_')}.wasm"
    )
    if wasm_file.is_file() is False:
        raise MissingArtifactError(wasm_file, "cargo build")

    bindgen_dir.mkdir(parents=True, exist_ok=True)
    for target in BindingTarget.all():
        out: pathlib.Path = bindgen_dir / target.dir_name
        out.mkdir(parents=True, exist_ok=True)
        logger.info(f"wasm-bodge: running wasm-bindgen for target '{target.value}'")
        _run_tool(
            "wasm-bindgen",
            [
                "wasm-bindgen",
                str(wasm_file),
                "--out-dir",
                str(out),
                "--target",
                target.value,
                "--weak-refs",
            ],
            logger=logger,
        )


def extract_archive(*, tarball: pathlib.Path, dest: pathlib.Path, logger: logging.Logger) -> None:
    """Unpack a prebuilt ``.tar.gz`` of ``wasm-bindgen`` output into ``dest``.

    :param tarball: Archive whose top level holds ``nodejs/``, ``web/`` and ``bundler/``.
    :param dest: Destination ``wasm_bindgen/`` directory.
    :param logger: Logger for progress output.
    :raises BuildError: If the archive is missing or unreadable.
    """

    if tarball.is_file() is False:
        raise BuildError(f"wasm-bindgen archive does not exist: {tarball}")

    logger.info(f"wasm-bodge: extracting prebuilt wasm-bindgen output from {tarball}")
    dest.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(tarball, "r:gz") as tf:
            tf.extractall(dest, filter="data")
    except (tarfile.TarError, EOFError, zlib.error, OSError) as e:
        raise BuildError(f"Failed to extract {tarball}: {e}") from e


def _run_tool(tool: str, cmd: list[str], *, logger: logging.Logger) -> None:
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"wasm-bodge: running {tool}: {' '.join(cmd)}")

    try:
        proc = subprocess.run(cmd, check=False)
    except OSError as e:
        raise ToolNotFoundError(f"Failed to run {tool}: {e}") from e
    if proc.returncode != 0:
        raise ToolFailedError(tool, proc.returncode, " ".join(cmd))
