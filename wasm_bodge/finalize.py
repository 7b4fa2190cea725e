"""Package finalization.

Copies the type declarations and the standalone wasm binary to the top of
the output directory, derives the CommonJS base64 module from the ESM one and
merges the exports into ``package.json``.
"""

import logging
import pathlib
import re
import shutil

from wasm_bodge import package_json, paths
from wasm_bodge.errors import ManifestError, MissingArtifactError
from wasm_bodge.post_process import BASE64_EXPORT
from wasm_bodge.targets import BindingTarget

_BASE64_MODULE_RE: re.Pattern[str] = re.compile(
    r'export const ' + BASE64_EXPORT + r' = "(?P<b64>[A-Za-z0-9+/]*={0,2})";'
)


def copy_types(*, out_dir: pathlib.Path, module: str, logger: logging.Logger) -> bool:
    """Copy the nodejs target's ``.d.ts`` to ``index.d.ts``.

    :param out_dir: Output directory.
    :param module: Normalized module name.
    :param logger: Logger for progress output.
    :returns: ``False`` if the generator emitted no declarations.
    """

    src: pathlib.Path = out_dir / paths.binding_dts(BindingTarget.NODEJS, module)
    if src.is_file() is False:
        logger.warning(f"wasm-bodge: {src} not found; {paths.types()} will be missing")
        return False
    shutil.copyfile(src, out_dir / paths.types())
    logger.info(f"wasm-bodge: copied type declarations to {paths.types()}")
    return True


def copy_wasm(*, out_dir: pathlib.Path, module: str, package_name: str, logger: logging.Logger) -> None:
    """Copy the web target's wasm binary to ``{package}.wasm``.

    :param out_dir: Output directory.
    :param module: Normalized module name.
    :param package_name: npm package name.
    :param logger: Logger for progress output.
    :raises MissingArtifactError: If the binary is absent.
    """

    src: pathlib.Path = out_dir / paths.binding_wasm(BindingTarget.WEB, module)
    if src.is_file() is False:
        raise MissingArtifactError(src, "wasm-bindgen")
    dest: pathlib.PurePosixPath = paths.standalone_wasm(package_name)
    shutil.copyfile(src, out_dir / dest)
    logger.info(f"wasm-bodge: copied wasm to {dest}")


def base64_from_esm_module(esm_path: pathlib.Path) -> str:
    """Extract the payload from ``esm/wasm-base64.js``.

    :param esm_path: Path of the ESM base64 module.
    :returns: The base64 string.
    :raises MissingArtifactError: If the module is absent.
    :raises ManifestError: If the module is not in the expected form.
    """

    if esm_path.is_file() is False:
        raise MissingArtifactError(esm_path, "post-processing")
    m = _BASE64_MODULE_RE.search(esm_path.read_text(encoding="utf-8"))
    if m is None:
        raise ManifestError(esm_path, f"no '{BASE64_EXPORT}' string export found")
    return m.group("b64")


def render_cjs_base64_module(b64: str) -> str:
    """Render the CommonJS base64 module.

    :param b64: Base64 payload taken from the ESM module.
    :returns: ``module.exports.wasmBase64 = "...";`` plus a newline.
    """

    return f'module.exports.{BASE64_EXPORT} = "{b64}";\n'


def write_cjs_base64(*, out_dir: pathlib.Path, logger: logging.Logger) -> None:
    """Write ``cjs/wasm-base64.cjs`` from ``esm/wasm-base64.js``.

    :param out_dir: Output directory.
    :param logger: Logger for progress output.
    :raises MissingArtifactError: If the ESM module is absent.
    :raises ManifestError: If the ESM module is not in the expected form.
    """

    b64: str = base64_from_esm_module(out_dir / paths.wasm_base64_esm())
    dest: pathlib.Path = out_dir / paths.wasm_base64_cjs()
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(render_cjs_base64_module(b64), encoding="utf-8")
    logger.info(f"wasm-bodge: generated {paths.wasm_base64_cjs()}")


def run(
    *,
    package_json_path: pathlib.Path,
    out_dir: pathlib.Path,
    module: str,
    package_name: str,
    logger: logging.Logger,
) -> str:
    """Finalize the package.

    :param package_json_path: Manifest to update.
    :param out_dir: Output directory.
    :param module: Normalized module name.
    :param package_name: npm package name.
    :param logger: Logger for progress output.
    :returns: Output directory prefix used in the manifest.
    :raises BuildError: If a required artifact is missing or the manifest is malformed.
    """

    dist: str = package_json.dist_prefix(package_json_path, out_dir)
    if dist.startswith("../") is True:
        logger.warning(f"wasm-bodge: output dir {dist} is outside the package directory")

    copy_types(out_dir=out_dir, module=module, logger=logger)
    copy_wasm(out_dir=out_dir, module=module, package_name=package_name, logger=logger)
    write_cjs_base64(out_dir=out_dir, logger=logger)
    package_json.update(
        package_json=package_json_path,
        dist=dist,
        package_name=package_name,
        logger=logger,
    )
    return dist
