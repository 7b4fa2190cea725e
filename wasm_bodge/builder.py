"""Package builder.

This module runs the build as a strict sequence of phases that communicate
only through files in the output directory:

- Obtain ``wasm-bindgen`` output (cargo + wasm-bindgen, or a prebuilt archive).
- Post-process it (nodejs rename, ``@vite-ignore`` fix, base64 payload).
- Write the per-environment entrypoints.
- Bundle the IIFE and CommonJS forms with esbuild.
- Finalize: types, standalone wasm, CJS payload and ``package.json``.

The first failure aborts the run. Partial output is left on disk.
"""

from collections.abc import Callable
from dataclasses import dataclass
import logging
import pathlib
import time
from typing import TypeVar

from wasm_bodge import bindgen, bundler, entrypoints, finalize, paths, post_process
from wasm_bodge.errors import BuildError

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class BuildConfig:
    """Build configuration.

    :ivar crate_path: Rust crate directory (holds ``Cargo.toml``).
    :ivar package_json: Template ``package.json`` to update in place.
    :ivar out_dir: Output directory.
    :ivar profile: Cargo build profile.
    :ivar wasm_bindgen_tar: Prebuilt ``.tar.gz`` of wasm-bindgen output; skips cargo.
    :ivar esbuild: Explicit esbuild executable; searched for when ``None``.
    """

    crate_path: pathlib.Path
    package_json: pathlib.Path
    out_dir: pathlib.Path
    profile: str = "release"
    wasm_bindgen_tar: pathlib.Path | None = None
    esbuild: str | None = None


@dataclass(frozen=True, slots=True)
class BuildResult:
    """What a successful build produced.

    :ivar out_dir: Output directory.
    :ivar crate_name: Crate name from ``Cargo.toml``.
    :ivar package_name: npm package name.
    :ivar module: Normalized module name used by wasm-bindgen files.
    :ivar dist: Output directory as written into ``package.json``.
    """

    out_dir: pathlib.Path
    crate_name: str
    package_name: str
    module: str
    dist: str


def _run_phase(name: str, fn: Callable[[], T], *, logger: logging.Logger) -> T:
    """Run one phase, attaching the phase name to any failure.

    :raises BuildError: Wrapping the phase's error (chained as ``__cause__``).
    """

    logger.info(f"wasm-bodge: phase {name}")
    t0: float = time.perf_counter()
    try:
        result: T = fn()
    except (BuildError, OSError) as e:
        raise BuildError(f"{name} failed") from e
    t1: float = time.perf_counter()
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"wasm-bodge: phase {name} done in {t1 - t0:.2f}s")
    return result


def build_package(config: BuildConfig, *, logger: logging.Logger | None = None) -> BuildResult:
    """Build the npm package described by ``config``.

    :param config: Build configuration.
    :param logger: Optional logger for progress output.
    :returns: Summary of the build.
    :raises BuildError: If any phase fails.
    """

    if logger is None:
        logger = logging.getLogger("wasm_bodge")

    t_total0: float = time.perf_counter()
    out_dir: pathlib.Path = config.out_dir
    bindgen_dir: pathlib.Path = out_dir / paths.BINDGEN_ROOT

    logger.info(f"wasm-bodge: crate={config.crate_path}")
    logger.info(f"wasm-bodge: package.json={config.package_json}")
    logger.info(f"wasm-bodge: out_dir={out_dir}")

    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise BuildError(f"Failed to create output directory {out_dir}") from e

    # Reported before any generation work so a missing esbuild fails fast.
    esbuild: str = _run_phase(
        "esbuild-lookup",
        lambda: bundler.find_esbuild(
            explicit=config.esbuild,
            search_dirs=[config.package_json.resolve().parent, pathlib.Path.cwd()],
            logger=logger,
        ),
        logger=logger,
    )

    if config.wasm_bindgen_tar is not None:
        tarball: pathlib.Path = config.wasm_bindgen_tar
        _run_phase(
            "extract",
            lambda: bindgen.extract_archive(tarball=tarball, dest=bindgen_dir, logger=logger),
            logger=logger,
        )
    else:
        _run_phase(
            "wasm-bindgen",
            lambda: bindgen.build_wasm(
                crate_path=config.crate_path,
                bindgen_dir=bindgen_dir,
                profile=config.profile,
                logger=logger,
            ),
            logger=logger,
        )

    crate_name: str = _run_phase("metadata", lambda: bindgen.read_crate_name(config.crate_path), logger=logger)
    package_name: str = _run_phase(
        "metadata",
        lambda: bindgen.read_package_name(config.package_json, crate_name),
        logger=logger,
    )
    module: str = paths.module_name(crate_name)
    logger.info(f"wasm-bodge: crate name={crate_name} package name={package_name}")

    _run_phase(
        "post-process",
        lambda: post_process.run(out_dir=out_dir, module=module, logger=logger),
        logger=logger,
    )
    _run_phase(
        "entrypoints",
        lambda: entrypoints.write_entrypoints(out_dir=out_dir, module=module, logger=logger),
        logger=logger,
    )
    _run_phase(
        "bundle",
        lambda: bundler.bundle_all(out_dir=out_dir, package_name=package_name, esbuild=esbuild, logger=logger),
        logger=logger,
    )
    dist: str = _run_phase(
        "finalize",
        lambda: finalize.run(
            package_json_path=config.package_json,
            out_dir=out_dir,
            module=module,
            package_name=package_name,
            logger=logger,
        ),
        logger=logger,
    )

    t_total1: float = time.perf_counter()
    logger.info(f"wasm-bodge: build complete in {t_total1 - t_total0:.2f}s; output in {out_dir}")
    return BuildResult(
        out_dir=out_dir,
        crate_name=crate_name,
        package_name=package_name,
        module=module,
        dist=dist,
    )
