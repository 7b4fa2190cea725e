"""``package.json`` merging.

The build owns a handful of top-level fields (``type``, ``main``,
``module``, ``types``, ``files``, ``exports``). Everything else in the
user's manifest is kept exactly where it was.
"""

import json
import logging
import os
import pathlib
from typing import Any

from wasm_bodge import paths
from wasm_bodge.errors import ManifestError
from wasm_bodge.targets import ROOT_EXPORT_MAPPING, Environment, ExportCondition


def read_manifest(package_json: pathlib.Path) -> dict[str, Any]:
    """Read and parse ``package.json``.

    :param package_json: Manifest path.
    :returns: Parsed object (key order preserved).
    :raises ManifestError: If the file is unreadable, invalid, or not an object.
    """

    try:
        text: str = package_json.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(package_json, f"cannot read: {e}") from e
    except UnicodeDecodeError as e:
        raise ManifestError(package_json, f"not valid UTF-8: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(package_json, f"invalid JSON: {e}") from e
    if isinstance(data, dict) is False:
        raise ManifestError(package_json, "package.json must be a JSON object")
    return data


def dist_prefix(package_json: pathlib.Path, out_dir: pathlib.Path) -> str:
    """Output directory relative to the manifest's directory, in posix form.

    :param package_json: Manifest path.
    :param out_dir: Output directory.
    :returns: e.g. ``dist`` or ``build/pkg``; ``.`` when they coincide.
    """

    package_dir: pathlib.Path = package_json.resolve().parent
    out_abs: pathlib.Path = out_dir.resolve()
    if out_abs.is_relative_to(package_dir) is True:
        rel: pathlib.Path = out_abs.relative_to(package_dir)
        return rel.as_posix()
    # Outside the package directory: still expressible, although npm will not pack it.
    return pathlib.Path(os.path.relpath(out_abs, package_dir)).as_posix()


def package_path(dist: str, rel: pathlib.PurePosixPath) -> str:
    """Format an output-relative path as a ``./``-prefixed manifest path."""

    if dist in ("", "."):
        return f"./{rel}"
    return f"./{dist}/{rel}"


def _normalize_files_entry(entry: str) -> str:
    v: str = entry
    while v.startswith("./") is True:
        v = v[2:]
    return v.rstrip("/")


def merge_files(files: list[Any] | None, dist: str) -> list[Any]:
    """Add ``dist`` to a ``files`` list unless it is already covered.

    ``dist``, ``./dist``, ``dist/`` and any ``dist/...`` subpath count as
    covered. Existing entries are kept in place.

    :param files: Existing ``files`` value (may be ``None``).
    :param dist: Output directory prefix from :func:`dist_prefix`.
    :returns: New list.
    """

    merged: list[Any] = list(files) if isinstance(files, list) is True else []
    if dist in ("", "."):
        return merged

    for entry in merged:
        if isinstance(entry, str) is False:
            continue
        norm: str = _normalize_files_entry(entry)
        if norm == dist or norm.startswith(f"{dist}/") is True:
            return merged

    merged.append(dist)
    return merged


def build_root_export(dist: str) -> dict[str, Any]:
    """Build the ``"."`` export from :data:`ROOT_EXPORT_MAPPING`.

    ``types`` is always first. ``import``/``require`` fallbacks map to a
    single path; runtime conditions map to an ``{import, require}`` pair.

    :param dist: Output directory prefix.
    :returns: Ordered condition object.
    """

    root: dict[str, Any] = {"types": package_path(dist, paths.types())}
    for mapping in ROOT_EXPORT_MAPPING:
        esm_path: str = package_path(dist, paths.esm_entrypoint(mapping.esm))
        cjs_path: str = package_path(dist, paths.cjs_entrypoint(mapping.cjs))
        key: str = mapping.condition.value
        if mapping.condition is ExportCondition.IMPORT:
            root[key] = esm_path
        elif mapping.condition is ExportCondition.REQUIRE:
            root[key] = cjs_path
        else:
            root[key] = {"import": esm_path, "require": cjs_path}
    return root


def build_exports(dist: str, package_name: str) -> dict[str, Any]:
    """Build the full ``exports`` graph.

    :param dist: Output directory prefix.
    :param package_name: npm package name (names the standalone wasm file).
    :returns: Ordered exports object.
    """

    return {
        ".": build_root_export(dist),
        "./slim": {
            "types": package_path(dist, paths.types()),
            "import": package_path(dist, paths.esm_entrypoint(Environment.SLIM)),
            "require": package_path(dist, paths.cjs_entrypoint(Environment.SLIM)),
        },
        "./wasm": package_path(dist, paths.standalone_wasm(package_name)),
        "./wasm-base64": {
            "import": package_path(dist, paths.wasm_base64_esm()),
            "require": package_path(dist, paths.wasm_base64_cjs()),
        },
        "./iife": package_path(dist, paths.iife_bundle()),
    }


def merge_manifest(manifest: dict[str, Any], *, dist: str, package_name: str) -> dict[str, Any]:
    """Merge the generated fields into a copy of ``manifest``.

    Keys the build does not own keep their value and position. Owned keys
    that already exist keep their position; new ones are appended.

    :param manifest: Parsed user manifest (not modified).
    :param dist: Output directory prefix.
    :param package_name: npm package name.
    :returns: Merged manifest.
    """

    merged: dict[str, Any] = dict(manifest)
    merged["type"] = "module"
    merged["main"] = package_path(dist, paths.cjs_entrypoint(Environment.NODE))
    merged["module"] = package_path(dist, paths.esm_entrypoint(Environment.BUNDLER))
    merged["types"] = package_path(dist, paths.types())
    if "files" in manifest or dist not in ("", "."):
        merged["files"] = merge_files(manifest.get("files"), dist)
    merged["exports"] = build_exports(dist, package_name)
    return merged


def render_manifest(manifest: dict[str, Any]) -> str:
    """Serialize a manifest the way npm writes it (2-space indent, trailing newline)."""

    return json.dumps(manifest, indent=2, ensure_ascii=False) + "\n"


def update(
    *,
    package_json: pathlib.Path,
    dist: str,
    package_name: str,
    logger: logging.Logger,
) -> dict[str, Any]:
    """Read, merge and write ``package.json`` (one read, one write).

    :param package_json: Manifest path.
    :param dist: Output directory prefix.
    :param package_name: npm package name.
    :param logger: Logger for progress output.
    :returns: The merged manifest that was written.
    :raises ManifestError: If the manifest cannot be parsed.
    """

    manifest: dict[str, Any] = read_manifest(package_json)
    merged: dict[str, Any] = merge_manifest(manifest, dist=dist, package_name=package_name)
    rendered: str = render_manifest(merged)
    package_json.write_text(rendered, encoding="utf-8")
    logger.info(f"wasm-bodge: updated {package_json}")
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"wasm-bodge: exports={json.dumps(merged['exports'])}")
    return merged
