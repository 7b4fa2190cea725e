"""Build error types."""

import pathlib


class BuildError(RuntimeError):
    """Raised when packaging fails."""


class ToolNotFoundError(BuildError):
    """Raised when a required external tool cannot be located."""


class ToolFailedError(BuildError):
    """Raised when an external tool exits with a non-zero status.

    :ivar tool: Tool name (e.g. ``esbuild``).
    :ivar returncode: Exit status reported by the process.
    """

    def __init__(self, tool: str, returncode: int, detail: str) -> None:
        super().__init__(f"{tool} failed (exit={returncode}): {detail}")
        self.tool: str = tool
        self.returncode: int = returncode


class ManifestError(BuildError):
    """Raised when an input file does not parse as the expected structured data.

    :ivar path: The offending file.
    """

    def __init__(self, path: pathlib.Path, detail: str) -> None:
        super().__init__(f"{path}: {detail}")
        self.path: pathlib.Path = path


class MissingArtifactError(BuildError):
    """Raised when a file a previous phase should have produced is absent.

    :ivar path: The missing file.
    """

    def __init__(self, path: pathlib.Path, producer: str) -> None:
        super().__init__(f"Expected {producer} output not found: {path}")
        self.path: pathlib.Path = path
