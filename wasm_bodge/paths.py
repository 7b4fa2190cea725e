"""Output layout.

Every path the build reads or writes inside the output directory comes from
this module. All helpers are pure: they return :class:`pathlib.PurePosixPath`
values relative to the output directory and never touch the filesystem.
"""

import pathlib

from wasm_bodge.targets import BindingTarget, Environment

BINDGEN_ROOT: pathlib.PurePosixPath = pathlib.PurePosixPath("wasm_bindgen")


def module_name(crate_name: str) -> str:
    """Normalize a crate name the way ``wasm-bindgen`` names its files.

    :param crate_name: Crate name (e.g. ``my-lib``).
    :returns: File-safe module name (e.g. ``my_lib``).
    """

    return crate_name.replace("-", "_")


def binding_dir(target: BindingTarget) -> pathlib.PurePosixPath:
    """``wasm_bindgen/{target}``"""

    return BINDGEN_ROOT / target.dir_name


def binding_js(target: BindingTarget, module: str) -> pathlib.PurePosixPath:
    """Primary JS file of a binding output.

    The nodejs target emits CommonJS, which the post-processor renames to
    ``.cjs`` so the ``"type": "module"`` package does not misread it.

    :param target: Binding target.
    :param module: Normalized module name.
    :returns: ``wasm_bindgen/{target}/{module}.js`` (``.cjs`` for nodejs).
    """

    ext: str = "cjs" if target is BindingTarget.NODEJS else "js"
    return binding_dir(target) / f"{module}.{ext}"


def binding_wasm(target: BindingTarget, module: str) -> pathlib.PurePosixPath:
    """``wasm_bindgen/{target}/{module}_bg.wasm``"""

    return binding_dir(target) / f"{module}_bg.wasm"


def binding_dts(target: BindingTarget, module: str) -> pathlib.PurePosixPath:
    """``wasm_bindgen/{target}/{module}.d.ts``"""

    return binding_dir(target) / f"{module}.d.ts"


def esm_entrypoint(env: Environment) -> pathlib.PurePosixPath:
    """``esm/{stem}.js``"""

    return pathlib.PurePosixPath("esm") / f"{env.file_stem}.js"


def cjs_entrypoint(env: Environment) -> pathlib.PurePosixPath:
    """``cjs/{stem}.cjs``"""

    return pathlib.PurePosixPath("cjs") / f"{env.file_stem}.cjs"


def iife_bundle() -> pathlib.PurePosixPath:
    """Script-tag bundle: ``iife/index.js``.

    :returns: Path relative to the output directory.
    """

    return pathlib.PurePosixPath("iife") / f"{Environment.IIFE.file_stem}.js"


def wasm_base64_esm() -> pathlib.PurePosixPath:
    """ESM module exporting the wasm binary as base64: ``esm/wasm-base64.js``.

    :returns: Path relative to the output directory.
    """

    return pathlib.PurePosixPath("esm/wasm-base64.js")


def wasm_base64_cjs() -> pathlib.PurePosixPath:
    """CommonJS twin of :func:`wasm_base64_esm`: ``cjs/wasm-base64.cjs``.

    :returns: Path relative to the output directory.
    """

    return pathlib.PurePosixPath("cjs/wasm-base64.cjs")


def types() -> pathlib.PurePosixPath:
    """Package-level type declarations: ``index.d.ts``.

    :returns: Path relative to the output directory.
    """

    return pathlib.PurePosixPath("index.d.ts")


def standalone_wasm(package_name: str) -> pathlib.PurePosixPath:
    """Standalone wasm file, named after the package rather than the crate.

    :param package_name: npm package name, possibly scoped (``@scope/name``).
    :returns: ``{name}.wasm`` using the unscoped part of the name.
    """

    return pathlib.PurePosixPath(f"{unscoped_name(package_name)}.wasm")


def unscoped_name(package_name: str) -> str:
    """Strip an npm scope: ``@scope/my-lib`` -> ``my-lib``."""

    if package_name.startswith("@") is True and "/" in package_name:
        return package_name.split("/", 1)[1]
    return package_name


def relative_import(from_file: pathlib.PurePosixPath, to_file: pathlib.PurePosixPath) -> str:
    """Build a relative module specifier from one output file to another.

    :param from_file: Importing file, relative to the output directory.
    :param to_file: Imported file, relative to the output directory.
    :returns: A specifier starting with ``./`` or ``../``.
    """

    from_parts: tuple[str, ...] = from_file.parent.parts
    to_parts: tuple[str, ...] = to_file.parts

    common: int = 0
    while (
        common < len(from_parts)
        and common < len(to_parts) - 1
        and from_parts[common] == to_parts[common]
    ):
        common += 1

    ups: list[str] = [".."] * (len(from_parts) - common)
    rest: list[str] = list(to_parts[common:])
    if len(ups) == 0:
        return "./" + "/".join(rest)
    return "/".join(ups + rest)
