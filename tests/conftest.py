import json
import logging
import pathlib
import sys
import tarfile

import pytest

WASM_BYTES: bytes = bytes(range(256))

WEB_JS: str = (
    "let wasm;\n"
    "const other = new URL('other.bin', import.meta.url);\n"
    "async function __wbg_init(module_or_path) {\n"
    "    if (typeof module_or_path === 'undefined') {\n"
    "        module_or_path = new URL('my_lib_bg.wasm', import.meta.url);\n"
    "    }\n"
    "}\n"
    "export function initSync(module) {}\n"
    "export function greet(name) {}\n"
    "export default __wbg_init;\n"
)

_FAKE_ESBUILD: str = """#!{python}
import json
import os
import sys

args = sys.argv[1:]
if args == ["--version"]:
    print("0.0.0-fake")
    sys.exit(0)

with open({log!r}, "a", encoding="utf-8") as f:
    f.write(json.dumps(args) + "\\n")

if {fail_format!r} is not None and "--format=" + str({fail_format!r}) in args:
    sys.exit(3)

out = next(a.split("=", 1)[1] for a in args if a.startswith("--outfile="))
name = next((a.split("=", 1)[1] for a in args if a.startswith("--global-name=")), None)
os.makedirs(os.path.dirname(out), exist_ok=True)
with open(out, "w", encoding="utf-8") as f:
    if name is not None:
        f.write("var " + name + " = (() => {{ return {{}}; }})();\\n")
    else:
        f.write("module.exports = {{}};\\n")
"""


_FAKE_RUST_TOOL: str = """#!{python}
import json
import os
import sys

args = sys.argv[1:]
with open({log!r}, "a", encoding="utf-8") as f:
    f.write(json.dumps([os.path.basename(sys.argv[0]), *args]) + "\\n")

if os.path.basename(sys.argv[0]) == "cargo":
    if args[0] == "metadata":
        if {target_dir!r} is None:
            sys.exit(101)
        print(json.dumps({{"target_directory": {target_dir!r}}}))
    elif args[0] == "build" and {wasm_out!r} is not None:
        os.makedirs(os.path.dirname({wasm_out!r}), exist_ok=True)
        with open({wasm_out!r}, "wb") as f:
            f.write(bytes(range(256)))
"""


@pytest.fixture
def logger() -> logging.Logger:
    lg: logging.Logger = logging.getLogger("wasm_bodge_tests")
    lg.setLevel(logging.DEBUG)
    return lg


@pytest.fixture
def make_esbuild(tmp_path: pathlib.Path):
    """Write an executable fake esbuild; returns ``(path, log_path)``."""

    def _make(*, fail_format: str | None = None, name: str = "esbuild") -> tuple[pathlib.Path, pathlib.Path]:
        bin_dir: pathlib.Path = tmp_path / "fakebin"
        bin_dir.mkdir(exist_ok=True)
        log_path: pathlib.Path = bin_dir / f"{name}.log"
        script: pathlib.Path = bin_dir / name
        script.write_text(
            _FAKE_ESBUILD.format(python=sys.executable, log=str(log_path), fail_format=fail_format),
            encoding="utf-8",
        )
        script.chmod(0o755)
        return script, log_path

    return _make


def read_esbuild_calls(log_path: pathlib.Path) -> list[list[str]]:
    if log_path.exists() is False:
        return []
    return [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]


def write_bindgen_output(root: pathlib.Path, module: str = "my_lib") -> None:
    """Lay out a plausible wasm-bindgen output tree under ``root``."""

    for target in ("nodejs", "web", "bundler"):
        (root / target).mkdir(parents=True, exist_ok=True)
        (root / target / f"{module}_bg.wasm").write_bytes(WASM_BYTES)
        (root / target / f"{module}.d.ts").write_text(
            "export function greet(name: string): string;\n", encoding="utf-8"
        )
    (root / "nodejs" / f"{module}.js").write_text(
        "module.exports.greet = function (name) {};\n", encoding="utf-8"
    )
    (root / "web" / f"{module}.js").write_text(WEB_JS.replace("my_lib", module), encoding="utf-8")
    (root / "bundler" / f"{module}.js").write_text(
        f"import * as wasm from './{module}_bg.wasm';\nexport * from './{module}_bg.js';\n",
        encoding="utf-8",
    )


@pytest.fixture
def bindgen_tarball(tmp_path: pathlib.Path) -> pathlib.Path:
    src: pathlib.Path = tmp_path / "bindgen_src"
    write_bindgen_output(src)
    tarball: pathlib.Path = tmp_path / "wasm_bindgen.tar.gz"
    with tarfile.open(tarball, "w:gz") as tf:
        for target in ("nodejs", "web", "bundler"):
            tf.add(src / target, arcname=target)
    return tarball


@pytest.fixture
def crate(tmp_path: pathlib.Path) -> pathlib.Path:
    """A crate directory that doubles as the npm package directory."""

    crate_dir: pathlib.Path = tmp_path / "my-lib"
    crate_dir.mkdir()
    (crate_dir / "Cargo.toml").write_text(
        '[package]\nname = "my-lib"\nversion = "0.1.0"\nedition = "2021"\n',
        encoding="utf-8",
    )
    (crate_dir / "package.json").write_text(
        json.dumps(
            {
                "name": "my-lib",
                "version": "0.1.0",
                "license": "MIT",
                "description": "Test fixture",
                "files": ["README.md"],
            },
            indent=2,
        )
        + "\n",
        encoding="utf-8",
    )
    return crate_dir


@pytest.fixture
def make_rust_tools(tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch):
    """Put fake ``cargo`` and ``wasm-bindgen`` alone on ``PATH``; returns the call log path.

    The fake cargo answers ``metadata`` with ``target_dir`` (or fails when it
    is ``None``) and writes ``wasm_out`` on ``build`` (nothing when ``None``).
    """

    def _make(*, target_dir: pathlib.Path | None, wasm_out: pathlib.Path | None) -> pathlib.Path:
        bin_dir: pathlib.Path = tmp_path / "rustbin"
        bin_dir.mkdir(exist_ok=True)
        log_path: pathlib.Path = bin_dir / "calls.log"
        source: str = _FAKE_RUST_TOOL.format(
            python=sys.executable,
            log=str(log_path),
            target_dir=None if target_dir is None else str(target_dir),
            wasm_out=None if wasm_out is None else str(wasm_out),
        )
        for name in ("cargo", "wasm-bindgen"):
            script: pathlib.Path = bin_dir / name
            script.write_text(source, encoding="utf-8")
            script.chmod(0o755)
        monkeypatch.setenv("PATH", str(bin_dir))
        return log_path

    return _make
