"""Post-processing of raw ``wasm-bindgen`` output.

Three steps, applied in order:

- Rename the nodejs target's ``.js`` file to ``.cjs``; the package declares
  ``"type": "module"`` and that file is CommonJS.
- Mark the web target's ``new URL('<module>_bg.wasm', import.meta.url)`` with
  ``/* @vite-ignore */`` so bundler import scanners leave it alone.
- Embed the web target's wasm binary as a base64 string module.
"""

import base64
import logging
import pathlib
import re

from wasm_bodge import paths
from wasm_bodge.errors import BuildError, ManifestError, MissingArtifactError
from wasm_bodge.targets import BindingTarget

VITE_IGNORE: str = "/* @vite-ignore */"
BASE64_EXPORT: str = "wasmBase64"


def rename_nodejs_output(*, out_dir: pathlib.Path, module: str, logger: logging.Logger) -> bool:
    """Rename ``wasm_bindgen/nodejs/{module}.js`` to ``.cjs``.

    :param out_dir: Output directory.
    :param module: Normalized module name.
    :param logger: Logger for progress output.
    :returns: ``True`` if a file was renamed, ``False`` if there was nothing to rename.
    """

    js_file: pathlib.Path = out_dir / paths.binding_dir(BindingTarget.NODEJS) / f"{module}.js"
    cjs_file: pathlib.Path = out_dir / paths.binding_js(BindingTarget.NODEJS, module)
    if js_file.is_file() is False:
        logger.info(f"wasm-bodge: {js_file.name} not present; nodejs rename skipped")
        return False

    logger.info(f"wasm-bodge: renaming {js_file.name} -> {cjs_file.name}")
    js_file.replace(cjs_file)
    return True


def apply_vite_ignore(source: str, module: str) -> str:
    """Insert ``/* @vite-ignore */`` before ``URL`` in the wasm URL construct.

    Only ``new URL('{module}_bg.wasm', import.meta.url)`` is touched; other
    ``new URL(...)`` expressions in the file are left as they are. Missing
    constructs are not an error.

    :param source: Generated JS source.
    :param module: Normalized module name.
    :returns: Patched source.
    """

    pattern: re.Pattern[str] = re.compile(
        r"new URL\('" + re.escape(f"{module}_bg.wasm") + r"', import\.meta\.url\)"
    )
    replacement: str = f"new {VITE_IGNORE} URL('{module}_bg.wasm', import.meta.url)"
    return pattern.sub(lambda _m: replacement, source)


def patch_web_output(*, out_dir: pathlib.Path, module: str, logger: logging.Logger) -> bool:
    """Apply :func:`apply_vite_ignore` to the web target's JS file in place.

    :param out_dir: Output directory.
    :param module: Normalized module name.
    :param logger: Logger for progress output.
    :returns: ``True`` if the file content changed.
    :raises MissingArtifactError: If the web binding file does not exist.
    :raises ManifestError: If the file is not valid UTF-8.
    """

    js_file: pathlib.Path = out_dir / paths.binding_js(BindingTarget.WEB, module)
    if js_file.is_file() is False:
        raise MissingArtifactError(js_file, "wasm-bindgen")

    try:
        source: str = js_file.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ManifestError(js_file, f"not valid UTF-8: {e}") from e
    patched: str = apply_vite_ignore(source, module)
    if patched == source:
        logger.info("wasm-bodge: no wasm URL construct found; @vite-ignore fix not needed")
        return False

    logger.info("wasm-bodge: applied @vite-ignore fix")
    js_file.write_text(patched, encoding="utf-8")
    return True


def render_base64_module(wasm_bytes: bytes) -> str:
    """Render the ESM module that carries the wasm binary as base64.

    :param wasm_bytes: Raw wasm binary.
    :returns: ``export const wasmBase64 = "...";`` (standard alphabet, unwrapped).
    """

    b64: str = base64.b64encode(wasm_bytes).decode("ascii")
    return f'export const {BASE64_EXPORT} = "{b64}";\n'


def write_base64_module(*, out_dir: pathlib.Path, module: str, logger: logging.Logger) -> pathlib.Path:
    """Write ``esm/wasm-base64.js`` from the web target's wasm binary.

    :param out_dir: Output directory.
    :param module: Normalized module name.
    :param logger: Logger for progress output.
    :returns: Path of the written module.
    :raises MissingArtifactError: If the web target's wasm file does not exist.
    """

    wasm_file: pathlib.Path = out_dir / paths.binding_wasm(BindingTarget.WEB, module)
    if wasm_file.is_file() is False:
        raise MissingArtifactError(wasm_file, "wasm-bindgen")

    wasm_bytes: bytes = wasm_file.read_bytes()
    dest: pathlib.Path = out_dir / paths.wasm_base64_esm()
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(render_base64_module(wasm_bytes), encoding="utf-8")
    logger.info(f"wasm-bodge: embedded {len(wasm_bytes) / 1024:.1f} KiB of wasm as base64")
    return dest


def run(*, out_dir: pathlib.Path, module: str, logger: logging.Logger) -> None:
    """Run every post-processing step.

    :param out_dir: Output directory (containing ``wasm_bindgen/``).
    :param module: Normalized module name.
    :param logger: Logger for progress output.
    :raises BuildError: If a required binding artifact is missing.
    """

    if (out_dir / paths.BINDGEN_ROOT).is_dir() is False:
        raise BuildError(f"No wasm-bindgen output directory at {out_dir / paths.BINDGEN_ROOT}")

    rename_nodejs_output(out_dir=out_dir, module=module, logger=logger)
    patch_web_output(out_dir=out_dir, module=module, logger=logger)
    write_base64_module(out_dir=out_dir, module=module, logger=logger)
