"""Entrypoint synthesis.

Each environment gets a tiny ESM module under ``esm/`` that brings the wasm
instance to a ready state (or deliberately does not) and re-exports the
``wasm-bindgen`` bindings. Only Node gets a hand-written CommonJS wrapper;
the other CommonJS forms are bundled by esbuild from the ESM files.
"""

import logging
import pathlib

from wasm_bodge import paths
from wasm_bodge.errors import BuildError
from wasm_bodge.targets import BindingTarget, Environment, InitStrategy, all_environments


def synthesize_esm(env: Environment, module: str) -> str:
    """Render the ESM entrypoint source for ``env``.

    :param env: Environment to render.
    :param module: Normalized module name (e.g. ``my_lib``).
    :returns: JavaScript module source.
    """

    entry: pathlib.PurePosixPath = paths.esm_entrypoint(env)
    bindings: str = paths.relative_import(entry, paths.binding_js(env.binding_target, module))
    strategy: InitStrategy = env.init_strategy

    if strategy is InitStrategy.AUTO_NODEJS or strategy is InitStrategy.BUNDLER_PASSTHROUGH:
        # The binding output initializes itself (nodejs) or the bundler does.
        return f"export * from '{bindings}';\n"

    if strategy is InitStrategy.BASE64_EMBEDDED:
        payload: str = paths.relative_import(entry, paths.wasm_base64_esm())
        return (
            f"import {{ initSync }} from '{bindings}';\n"
            f"import {{ wasmBase64 }} from '{payload}';\n"
            "const bytes = Uint8Array.from(atob(wasmBase64), c => c.charCodeAt(0));\n"
            "initSync({ module: bytes });\n"
            f"export * from '{bindings}';\n"
        )

    if strategy is InitStrategy.SYNC_WASM_IMPORT:
        wasm: str = paths.relative_import(entry, paths.binding_wasm(env.binding_target, module))
        return (
            f"import * as exports from '{bindings}';\n"
            f"import {{ initSync }} from '{bindings}';\n"
            f"import wasmModule from '{wasm}';\n"
            "initSync({ module: wasmModule });\n"
            f"export * from '{bindings}';\n"
        )

    if strategy is InitStrategy.MANUAL:
        return (
            f"export * from '{bindings}';\n"
            f"export {{ default }} from '{bindings}';\n"
        )

    raise AssertionError(f"Unhandled init strategy: {strategy}")


def synthesize_cjs(env: Environment, module: str) -> str | None:
    """Render a CommonJS wrapper, if ``env`` can have one without bundling.

    :param env: Environment to render.
    :param module: Normalized module name.
    :returns: Source text, or ``None`` when the CJS form must be bundled.
    """

    if env.binding_target is not BindingTarget.NODEJS:
        return None

    entry: pathlib.PurePosixPath = paths.cjs_entrypoint(env)
    bindings: str = paths.relative_import(entry, paths.binding_js(BindingTarget.NODEJS, module))
    return f"module.exports = require('{bindings}');\n"


def write_entrypoints(
    *,
    out_dir: pathlib.Path,
    module: str,
    logger: logging.Logger,
) -> list[pathlib.PurePosixPath]:
    """Write every ESM entrypoint and every directly synthesizable CJS entrypoint.

    :param out_dir: Output directory.
    :param module: Normalized module name.
    :param logger: Logger for progress output.
    :returns: Relative paths written, in generation order.
    :raises BuildError: If a file cannot be written.
    """

    for sub in ("esm", "cjs", "iife"):
        (out_dir / sub).mkdir(parents=True, exist_ok=True)

    written: list[pathlib.PurePosixPath] = []

    logger.info("wasm-bodge: generating ESM entrypoints")
    for env in all_environments():
        rel: pathlib.PurePosixPath = paths.esm_entrypoint(env)
        _write_text(out_dir / rel, synthesize_esm(env, module))
        written.append(rel)

    logger.info("wasm-bodge: generating CJS entrypoints")
    for env in all_environments():
        content: str | None = synthesize_cjs(env, module)
        if content is None:
            continue
        rel = paths.cjs_entrypoint(env)
        _write_text(out_dir / rel, content)
        written.append(rel)

    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"wasm-bodge: entrypoints={[str(p) for p in written]}")
    return written


def _write_text(path: pathlib.Path, content: str) -> None:
    """Write one generated file as UTF-8.

    :param path: Destination file.
    :param content: File contents.
    :raises BuildError: If the file cannot be written.
    """

    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise BuildError(f"Failed to write entrypoint {path}: {e}") from e
