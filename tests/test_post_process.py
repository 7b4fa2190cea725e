import base64
import re

import pytest

from conftest import WASM_BYTES, WEB_JS, write_bindgen_output
from wasm_bodge import paths, post_process
from wasm_bodge.errors import BuildError, ManifestError, MissingArtifactError
from wasm_bodge.targets import BindingTarget


def test_vite_ignore_inserted_before_url():
    source = "x = new URL('my_lib_bg.wasm', import.meta.url);\n"
    assert post_process.apply_vite_ignore(source, "my_lib") == (
        "x = new /* @vite-ignore */ URL('my_lib_bg.wasm', import.meta.url);\n"
    )


def test_vite_ignore_leaves_other_urls_alone():
    patched = post_process.apply_vite_ignore(WEB_JS, "my_lib")
    assert "new URL('other.bin', import.meta.url)" in patched
    assert patched.count("/* @vite-ignore */") == 1
    assert patched.replace("new /* @vite-ignore */ URL(", "new URL(") == WEB_JS


def test_vite_ignore_matches_module_name_literally():
    source = "new URL('myXlib_bg.wasm', import.meta.url)"
    assert post_process.apply_vite_ignore(source, "my.lib") == source


def test_vite_ignore_absent_construct_is_noop():
    assert post_process.apply_vite_ignore("export const a = 1;\n", "my_lib") == "export const a = 1;\n"


def test_vite_ignore_is_stable_on_patched_input():
    once = post_process.apply_vite_ignore(WEB_JS, "my_lib")
    assert post_process.apply_vite_ignore(once, "my_lib") == once


def test_base64_module_round_trip_all_byte_values():
    module = post_process.render_base64_module(WASM_BYTES)
    m = re.fullmatch(r'export const wasmBase64 = "([^"]*)";\n', module)
    assert m is not None
    b64 = m.group(1)
    assert "-" not in b64 and "_" not in b64 and "\n" not in b64
    # What atob + charCodeAt does in the generated entrypoint.
    decoded = bytes(ord(c) for c in base64.b64decode(b64, validate=True).decode("latin-1"))
    assert decoded == WASM_BYTES


def test_rename_nodejs_output(tmp_path, logger):
    write_bindgen_output(tmp_path / "wasm_bindgen")
    assert post_process.rename_nodejs_output(out_dir=tmp_path, module="my_lib", logger=logger) is True
    assert (tmp_path / paths.binding_js(BindingTarget.NODEJS, "my_lib")).is_file()
    assert (tmp_path / "wasm_bindgen" / "nodejs" / "my_lib.js").exists() is False


def test_rename_nodejs_output_skips_when_absent(tmp_path, logger):
    (tmp_path / "wasm_bindgen" / "nodejs").mkdir(parents=True)
    assert post_process.rename_nodejs_output(out_dir=tmp_path, module="my_lib", logger=logger) is False


def test_run_applies_all_steps(tmp_path, logger):
    write_bindgen_output(tmp_path / "wasm_bindgen")
    post_process.run(out_dir=tmp_path, module="my_lib", logger=logger)

    web_js = (tmp_path / paths.binding_js(BindingTarget.WEB, "my_lib")).read_text(encoding="utf-8")
    assert "new /* @vite-ignore */ URL('my_lib_bg.wasm', import.meta.url)" in web_js
    esm = (tmp_path / paths.wasm_base64_esm()).read_text(encoding="utf-8")
    assert esm == post_process.render_base64_module(WASM_BYTES)


def test_run_requires_web_wasm(tmp_path, logger):
    write_bindgen_output(tmp_path / "wasm_bindgen")
    (tmp_path / "wasm_bindgen" / "web" / "my_lib_bg.wasm").unlink()
    with pytest.raises(MissingArtifactError) as exc:
        post_process.run(out_dir=tmp_path, module="my_lib", logger=logger)
    assert exc.value.path.name == "my_lib_bg.wasm"


def test_run_requires_bindgen_dir(tmp_path, logger):
    with pytest.raises(BuildError):
        post_process.run(out_dir=tmp_path, module="my_lib", logger=logger)


def test_patch_web_output_rejects_undecodable_source(tmp_path, logger):
    write_bindgen_output(tmp_path / "wasm_bindgen")
    js_file = tmp_path / paths.binding_js(BindingTarget.WEB, "my_lib")
    js_file.write_bytes(b"let wasm;\n// \xff\xfe\n")
    with pytest.raises(ManifestError) as exc:
        post_process.patch_web_output(out_dir=tmp_path, module="my_lib", logger=logger)
    assert exc.value.path == js_file
