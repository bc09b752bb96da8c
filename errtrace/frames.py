"""Stack trace entries captured at the point where an error is recorded."""

from __future__ import annotations

import os
import posixpath
import sys
from dataclasses import dataclass

_MAX_FRAMES = 32


def _to_slash(path: str) -> str:
    if os.sep != "/":
        return path.replace(os.sep, "/")
    return path


def _module_stem(path: str) -> str:
    base = posixpath.basename(_to_slash(path))
    stem, _ = posixpath.splitext(base)
    return stem


@dataclass(frozen=True)
class Trace:
    """A single stack frame: file path, function name and line number."""

    path: str = ""
    func: str = ""
    line: int = 0

    def __str__(self) -> str:
        head, filename = posixpath.split(_to_slash(self.path))
        last_dir = posixpath.normpath(head).split("/")[-1] if head else "."
        parts = [part for part in (last_dir, filename) if part and part != "."]
        return f"{'/'.join(parts)}:{self.line}"


class Traces(list):
    """An ordered list of trace entries, innermost frame first."""

    def func(self) -> str:
        """Return the full name of the first function in the list."""
        return self[0].func if self else ""

    def func_name(self) -> str:
        """Return the first function's name without its package path."""
        if not self:
            return ""
        name = _to_slash(self[0].func)
        idx = name.rfind("/")
        if idx == -1 or idx == len(name) - 1:
            return name
        return name[idx + 1:]

    def loc(self) -> str:
        """Return the file:line location of the first entry."""
        return str(self[0]) if self else ""

    def __str__(self) -> str:
        return "\n".join(f"\t{t.path}:{t.line} {t.func}" for t in self)


def capture_traces(skip: int) -> Traces:
    """Capture the current call stack.

    With ``skip`` 0 the first entry is the caller of this function; each
    further unit of ``skip`` drops one more frame. At most 32 frames are kept.
    """
    try:
        frame = sys._getframe(skip + 1)
    except ValueError:
        return Traces()
    traces = Traces()
    while frame is not None and len(traces) < _MAX_FRAMES:
        code = frame.f_code
        module = _module_stem(code.co_filename)
        func = f"{module}.{code.co_name}" if module else code.co_name
        traces.append(Trace(path=code.co_filename, func=func, line=frame.f_lineno))
        frame = frame.f_back
    return traces