import pathlib

import pytest

from conftest import read_esbuild_calls
from wasm_bodge import bundler
from wasm_bodge.entrypoints import write_entrypoints
from wasm_bodge.errors import ToolFailedError, ToolNotFoundError


@pytest.mark.parametrize(
    "package_name,expected",
    [
        ("my-lib", "MyLib"),
        ("my_lib", "MyLib"),
        ("@acme/my-lib", "MyLib"),
        ("myLib", "MyLib"),
        ("test-wasm-lib", "TestWasmLib"),
        ("3d-engine", "_3dEngine"),
    ],
)
def test_global_name(package_name, expected):
    assert bundler.global_name(package_name) == expected


def test_esbuild_args_iife():
    args = bundler.esbuild_args(
        input_path=pathlib.Path("dist/esm/web.js"),
        output_path=pathlib.Path("dist/iife/index.js"),
        fmt="iife",
        global_name="MyLib",
    )
    assert args == [
        "dist/esm/web.js",
        "--bundle",
        "--format=iife",
        "--outfile=dist/iife/index.js",
        "--log-override:empty-import-meta=silent",
        "--global-name=MyLib",
    ]


def test_esbuild_args_cjs_targets_node():
    args = bundler.esbuild_args(
        input_path=pathlib.Path("esm/slim.js"),
        output_path=pathlib.Path("cjs/slim.cjs"),
        fmt="cjs",
        global_name=None,
    )
    assert "--platform=node" in args
    assert not any(a.startswith("--global-name") for a in args)


def test_find_esbuild_explicit(make_esbuild, logger):
    script, _log = make_esbuild()
    assert bundler.find_esbuild(explicit=str(script), search_dirs=[], logger=logger) == str(script)


def test_find_esbuild_in_node_modules(tmp_path, make_esbuild, logger, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path / "empty"))
    script, _log = make_esbuild()
    bin_dir = tmp_path / "pkg" / "node_modules" / ".bin"
    bin_dir.mkdir(parents=True)
    (bin_dir / "esbuild").symlink_to(script)

    found = bundler.find_esbuild(explicit=None, search_dirs=[tmp_path / "pkg" / "sub"], logger=logger)
    assert found == str(bin_dir / "esbuild")


def test_find_esbuild_missing_reports_remediation(tmp_path, logger, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path / "empty"))
    with pytest.raises(ToolNotFoundError) as exc:
        bundler.find_esbuild(explicit=None, search_dirs=[tmp_path], logger=logger)
    assert "npm install" in str(exc.value)


def test_find_esbuild_explicit_not_runnable(tmp_path, logger):
    with pytest.raises(ToolNotFoundError):
        bundler.find_esbuild(explicit=str(tmp_path / "nope"), search_dirs=[], logger=logger)


def test_bundle_all(tmp_path, make_esbuild, logger):
    script, log = make_esbuild()
    out_dir = tmp_path / "dist"
    write_entrypoints(out_dir=out_dir, module="my_lib", logger=logger)

    built = bundler.bundle_all(out_dir=out_dir, package_name="my-lib", esbuild=str(script), logger=logger)

    assert [str(p) for p in built] == ["iife/index.js", "cjs/web.cjs", "cjs/slim.cjs"]
    calls = read_esbuild_calls(log)
    assert len(calls) == 3
    assert calls[0][0] == str(out_dir / "esm" / "web.js")
    assert "--format=iife" in calls[0]
    assert "--global-name=MyLib" in calls[0]
    assert calls[1][0] == str(out_dir / "esm" / "web.js")
    assert calls[2][0] == str(out_dir / "esm" / "slim.js")
    for call in calls[1:]:
        assert "--format=cjs" in call
        assert "--platform=node" in call
    assert "var MyLib" in (out_dir / "iife" / "index.js").read_text(encoding="utf-8")


def test_bundle_all_nonzero_exit_is_fatal(tmp_path, make_esbuild, logger):
    script, log = make_esbuild(fail_format="cjs")
    out_dir = tmp_path / "dist"
    write_entrypoints(out_dir=out_dir, module="my_lib", logger=logger)

    with pytest.raises(ToolFailedError) as exc:
        bundler.bundle_all(out_dir=out_dir, package_name="my-lib", esbuild=str(script), logger=logger)
    assert exc.value.tool == "esbuild"
    assert exc.value.returncode == 3
    # Aborted at the first cjs bundle.
    assert len(read_esbuild_calls(log)) == 2
