"""Command line interface for wasm-bodge."""

import argparse
import logging
import pathlib
import sys

from wasm_bodge.builder import BuildConfig, build_package
from wasm_bodge.errors import BuildError


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Configure the wasm-bodge logger.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: Configured logger.
    """

    level: int = logging.INFO
    if quiet >= 2:
        level = logging.ERROR
    elif quiet >= 1:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG

    logger: logging.Logger = logging.getLogger("wasm_bodge")
    logger.setLevel(level)
    logger.propagate = False

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def format_error_chain(err: BaseException) -> str:
    """Join an exception and its causes into one line.

    :param err: Outermost exception.
    :returns: ``outer: cause: root cause``.
    """

    parts: list[str] = []
    current: BaseException | None = err
    while current is not None:
        text: str = str(current)
        if text == "":
            text = type(current).__name__
        parts.append(text)
        current = current.__cause__
    return ": ".join(parts)


def main(argv: list[str] | None = None) -> int:
    """Run the wasm-bodge CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="wasm-bodge",
        description="Take wasm-bindgen output and wrap it for all JavaScript runtimes.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_build = subparsers.add_parser(
        "build",
        help="Build an npm package from a wasm-bindgen Rust crate.",
    )
    p_build.add_argument(
        "--crate-path",
        type=pathlib.Path,
        default=pathlib.Path("."),
        help="Path to the Rust crate directory (default: current directory).",
    )
    p_build.add_argument(
        "--package-json",
        type=pathlib.Path,
        default=pathlib.Path("./package.json"),
        help="Path to the template package.json, updated in place.",
    )
    p_build.add_argument(
        "--out-dir",
        type=pathlib.Path,
        default=pathlib.Path("./dist"),
        help="Output directory (default: ./dist).",
    )
    p_build.add_argument(
        "--profile",
        type=str,
        default="release",
        help="Cargo build profile (default: release).",
    )
    p_build.add_argument(
        "--wasm-bindgen-tar",
        type=pathlib.Path,
        default=None,
        help="Use prebuilt wasm-bindgen output from a .tar.gz instead of running cargo.",
    )
    p_build.add_argument(
        "--esbuild",
        type=str,
        default=None,
        help="Path to an esbuild executable (default: search PATH and node_modules).",
    )
    p_build.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging.",
    )
    p_build.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass twice to show errors only.",
    )

    ns = parser.parse_args(argv)
    if ns.command == "build":
        logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)
        config: BuildConfig = BuildConfig(
            crate_path=ns.crate_path,
            package_json=ns.package_json,
            out_dir=ns.out_dir,
            profile=ns.profile,
            wasm_bindgen_tar=ns.wasm_bindgen_tar,
            esbuild=ns.esbuild,
        )
        try:
            build_package(config, logger=logger)
        except BuildError as e:
            logger.error(f"wasm-bodge: error: {format_error_chain(e)}")
            return 1
        return 0

    raise AssertionError(f"Unhandled command: {ns.command}")
