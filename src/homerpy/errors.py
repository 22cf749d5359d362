"""
errors
======

Exception types raised by homerpy.  Every error derives from
:class:`HomerError` and from the builtin exception that best describes it,
so ``except FileNotFoundError`` or ``except ValueError`` handlers written
against plain Python keep working.
"""

from __future__ import annotations

from typing import Optional, Sequence


class HomerError(Exception):
    """Base class for all homerpy errors."""


class InvalidInputError(HomerError, ValueError):
    """Caller supplied data is malformed; raised before any process is spawned."""


class ToolNotFoundError(HomerError, FileNotFoundError):
    """A HOMER executable could not be located."""

    def __init__(self, tool: str, searched: Optional[str] = None):
        self.tool = tool
        self.searched = searched
        where = f" in {searched}" if searched else " on PATH"
        super().__init__(f"HOMER executable '{tool}' not found{where}. Is HOMER installed and its bin/ directory on PATH?")


class ExternalToolError(HomerError, RuntimeError):
    """A HOMER process exited with a non-zero status."""

    def __init__(self, args_list: Sequence[str], returncode: int, stderr: str = ""):
        self.args_list = list(args_list)
        self.returncode = returncode
        self.stderr = stderr or ""
        message = f"{self.args_list[0]} exited with status {returncode}"
        tail = self.stderr.strip()
        if tail:
            message += f":\n{tail}"
        super().__init__(message)


class ConflictError(HomerError, FileExistsError):
    """The output path already holds results and overwriting is disabled."""


class ResultFileNotFoundError(HomerError, FileNotFoundError):
    """An expected HOMER result file does not exist."""

    def __init__(self, path):
        self.path = str(path)
        super().__init__(f"Result file not found: {self.path}")


class SchemaMismatchError(HomerError, ValueError):
    """A result file header or row does not match the expected columns."""


class MalformedFieldError(HomerError, ValueError):
    """A field could not be parsed as the expected type."""

    def __init__(self, path, line: int, column: str, value: str):
        self.path = str(path)
        self.line = line
        self.column = column
        self.value = value
        super().__init__(f"{self.path}:{line}: cannot parse column '{column}' from value {value!r}")


class MalformedMotifBlockError(HomerError, ValueError):
    """A motif block is truncated, over-long or holds a non-normalized row."""


class NotFoundError(HomerError, KeyError):
    """A keyed lookup matched no record."""

    def __str__(self):
        return str(self.args[0]) if self.args else ""


class AmbiguousKeyError(HomerError, LookupError):
    """A keyed extraction matched more than one record."""
