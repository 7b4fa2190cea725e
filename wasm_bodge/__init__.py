"""wasm-bodge.

A build utility that wraps ``wasm-bindgen`` output into a single npm package
usable from Node (ESM and CommonJS), bundlers, browsers without a bundler,
script tags and Cloudflare Workers.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
