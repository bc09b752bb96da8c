"""Errors that remember where they were recorded, with user messages and fields."""

from __future__ import annotations

import json
import queue
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable

from .chain import error_as
from .frames import Traces, capture_traces

MAX_HOPS = 50
"""Maximum depth followed when unwrapping nested errors."""

_POLL_INTERVAL = 0.01

_debug = threading.Event()

_VERB = re.compile(r"%([-+# 0]*)(\d*)(?:\.(\d*))?([a-zA-Z%])")
_MISSING = object()

_GO_TYPES = {bool: "bool", int: "int", float: "float64", str: "string", type(None): "<nil>"}

_HTML_REPLACEMENTS = (
    ("&", "&amp;"),
    ("\0", "\ufffd"),
    ('"', "&#34;"),
    ("'", "&#39;"),
    ("+", "&#43;"),
    ("<", "&lt;"),
    (">", "&gt;"),
)


def _type_name(value: Any) -> str:
    if value is None:
        return "<nil>"
    cls = type(value)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def _go_type(value: Any) -> str:
    return _GO_TYPES.get(type(value)) or _type_name(value)


def _format_value(value: Any) -> str:
    """Render a value the way a plain ``%v`` verb does."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    if isinstance(value, float):
        text = repr(value)
        return text[:-2] if text.endswith(".0") else text
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_format_value(item) for item in value) + "]"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "map[" + " ".join(f"{_format_value(k)}:{_format_value(v)}" for k, v in items) + "]"
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _go_quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _bad_verb(verb: str, arg: Any) -> str:
    return f"%!{verb}({_go_type(arg)}={_format_value(arg)})"


def _format_verb(verb: str, arg: Any, precision: str | None) -> str:
    if verb in "vsw":
        return _format_value(arg)
    if verb == "q":
        return _go_quote(arg if isinstance(arg, str) else _format_value(arg))
    if verb == "d":
        return str(arg) if isinstance(arg, int) and not isinstance(arg, bool) else _bad_verb(verb, arg)
    if verb == "t":
        return _format_value(arg) if isinstance(arg, bool) else _bad_verb(verb, arg)
    if verb in "xX":
        if isinstance(arg, int) and not isinstance(arg, bool):
            return format(arg, verb)
        if isinstance(arg, (str, bytes)):
            data = arg.encode() if isinstance(arg, str) else arg
            text = data.hex()
            return text.upper() if verb == "X" else text
        return _bad_verb(verb, arg)
    if verb in "fFeEgG":
        if not isinstance(arg, (int, float)) or isinstance(arg, bool):
            return _bad_verb(verb, arg)
        if verb in "gG" and not precision:
            return _format_value(float(arg))
        digits = int(precision) if precision else 6
        return format(float(arg), f".{digits}{verb.lower() if verb == 'F' else verb}")
    return _format_value(arg)


def _format(fmt: str, args: Iterable[Any]) -> tuple[str, list[BaseException]]:
    """Format ``fmt`` with printf-style verbs; return the text and any ``%w`` errors."""
    remaining = iter(args)
    wrapped: list[BaseException] = []
    out: list[str] = []
    pos = 0
    for match in _VERB.finditer(fmt):
        out.append(fmt[pos:match.start()])
        pos = match.end()
        flags, width, precision, verb = match.groups()
        if verb == "%":
            out.append("%")
            continue
        arg = next(remaining, _MISSING)
        if arg is _MISSING:
            out.append(f"%!{verb}(MISSING)")
            continue
        if verb == "w" and isinstance(arg, BaseException):
            wrapped.append(arg)
        text = _format_verb(verb, arg, precision)
        if width:
            text = text.ljust(int(width)) if "-" in flags else text.rjust(int(width))
        out.append(text)
    out.append(fmt[pos:])
    extras = list(remaining)
    if extras:
        listed = ", ".join(f"{_go_type(a)}={_format_value(a)}" for a in extras)
        out.append(f"%!(EXTRA {listed})")
    return "".join(out), wrapped


def _sprintf(fmt: str, *args: Any) -> str:
    return _format(fmt, args)[0]


def _html_escape(text: str) -> str:
    for char, replacement in _HTML_REPLACEMENTS:
        text = text.replace(char, replacement)
    return text


def _render_report(
    orig_type: str,
    orig_message: str,
    fields: dict | None,
    stack: str,
    user_msg: str,
    caught: str = "",
) -> str:
    esc = _html_escape
    parts = ["\nERROR REPORT:\n", f"Original Error: {esc(orig_type)} {esc(orig_message)}\n"]
    if fields:
        parts.append("Fields:\n")
        parts.extend(
            f"  {esc(str(key))}: {esc(_format_value(value))}\n"
            for key, value in sorted(fields.items(), key=lambda kv: str(kv[0]))
        )
    parts.append(f"Stack Trace:\n{esc(stack)}\n")
    if caught:
        parts.append(f"Caught:\n{esc(caught)}\nUser Message: {esc(user_msg)}\n")
    else:
        parts.append(f"User Message: {esc(user_msg)}")
    return "".join(parts)


def _error_text(err: Any) -> str:
    return "" if err is None else str(err)


@dataclass(eq=False, repr=False)
class TraceErr(Exception):
    """An error together with the stack where it was recorded, user messages and fields."""

    err: Any = None
    traces: Traces = field(default_factory=Traces)
    message: str = ""
    messages: list = field(default_factory=list)
    fields: dict = field(default_factory=dict)

    def clone(self) -> TraceErr:
        """Return a copy whose messages and fields can be changed independently."""
        return TraceErr(
            err=self.err,
            traces=self.traces,
            message=self.message,
            messages=list(self.messages),
            fields=dict(self.fields),
        )

    def user_message(self) -> str:
        """Return the user messages, newest first, indented as a tree over the cause."""
        if self.messages:
            lines = [self.messages[-1]]
            indent = 1
            for msg in reversed(self.messages[:-1]):
                lines.append("\t" * indent + msg)
                indent += 1
            lines.append("\t" * indent + user_message(self.err))
            return "\n".join(lines)
        if self.message:
            return self.message
        return user_message(self.err)

    def debug_report(self) -> str:
        """Return a developer-oriented report including the stack trace."""
        return _render_report(
            _type_name(self.err),
            _error_text(self.err),
            self.fields,
            str(self.traces),
            self.user_message(),
        )

    def get_fields(self) -> dict:
        return self.fields

    def orig_error(self) -> Any:
        """Return the innermost error beneath all trace layers."""
        err = self.err
        for _ in range(MAX_HOPS):
            if not isinstance(err, TraceErr):
                break
            inner = err.orig_error()
            if inner is None or inner is err:
                break
            err = inner
        return err

    def unwrap(self) -> Any:
        """Return the directly wrapped error."""
        return self.err

    def to_dict(self) -> dict:
        """Return the wire representation of this error."""
        text = _error_text(self.err)
        out: dict = {"error": {"message": text} if text else {}}
        if self.message:
            out["message"] = self.message
        if self.messages:
            out["messages"] = list(self.messages)
        if self.fields:
            out["fields"] = dict(self.fields)
        return out

    def __str__(self) -> str:
        return self.user_message()

    def __repr__(self) -> str:
        return self.debug_report()


@dataclass(eq=False)
class RawTrace(Exception):
    """An error trace as it travels on the wire."""

    err: Any = None
    traces: Traces = field(default_factory=Traces)
    message: str = ""
    messages: list = field(default_factory=list)
    fields: dict = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


class Aggregate(Exception):
    """Several errors combined into one."""

    def __init__(self, errors: Iterable[BaseException]):
        super().__init__()
        self._errors = tuple(errors)

    def errors(self) -> list:
        """Return a copy of the combined errors."""
        return list(self._errors)

    def unwrap(self) -> list:
        return self.errors()

    def __str__(self) -> str:
        return ", ".join(str(err) for err in self._errors)


class ProxyError(TraceErr):
    """An error received from elsewhere, traced where it was caught."""

    def debug_report(self) -> str:
        wrapped = self.err
        if not isinstance(wrapped, TraceErr):
            return super().debug_report()
        return _render_report(
            _type_name(wrapped.err),
            _error_text(wrapped.err),
            wrapped.fields,
            str(wrapped.traces),
            wrapped.user_message(),
            caught=str(self.traces),
        )


def _new_trace(err: Any) -> TraceErr:
    # Skips this function and its caller, keeping the caller's caller first.
    return TraceErr(err=err, traces=capture_traces(2))


def set_debug(enabled: bool) -> None:
    """Turn debug mode on or off; in debug mode fatalf raises."""
    if enabled:
        _debug.set()
    else:
        _debug.clear()


def is_debug() -> bool:
    return _debug.is_set()


def wrap(err: Any, *args: Any) -> TraceErr | None:
    """Wrap ``err`` in a trace, adding a user message if arguments are given."""
    if err is None:
        return None
    trace = err if isinstance(err, TraceErr) else _new_trace(err)
    if args:
        trace = with_user_message(trace, args[0], *args[1:])
    return trace


def unwrap(err: Any) -> Any:
    """Return the original error beneath all trace layers."""
    orig = getattr(err, "orig_error", None)
    if callable(orig):
        return orig()
    return err


def user_message(err: Any) -> str:
    """Return the user-facing part of ``err``."""
    if err is None:
        return ""
    method = getattr(err, "user_message", None)
    if callable(method):
        return method()
    return str(err)


def user_message_with_fields(err: Any) -> str:
    """Return the user message prefixed with ``key="value"`` pairs of its fields."""
    if err is None:
        return ""
    if isinstance(err, TraceErr):
        fields = err.get_fields()
        if not fields:
            return err.user_message()
        pairs = " ".join(
            f"{key}={_go_quote(value if isinstance(value, str) else _format_value(value))}"
            for key, value in fields.items()
        )
        return f"{pairs} {err.user_message()}"
    return str(err)


def debug_report(err: Any) -> str:
    """Return a debug report for ``err``, with the stack trace where known."""
    if err is None:
        return ""
    method = getattr(err, "debug_report", None)
    if callable(method):
        return method()
    return str(err)


def get_fields(err: Any) -> dict:
    """Return the fields attached to ``err``; a proxy merges its own over the nested ones."""
    if err is None:
        return {}
    if isinstance(err, ProxyError):
        return {**get_fields(err.err), **err.get_fields()}
    if isinstance(err, TraceErr):
        return err.get_fields()
    return {}


def wrap_with_message(err: Any, message: Any, *args: Any) -> TraceErr:
    """Wrap ``err`` and add a formatted user message."""
    trace = err if isinstance(err, TraceErr) else _new_trace(err)
    return with_user_message(trace, message, *args)


def errorf(format: str, *args: Any) -> TraceErr:
    """Create a traced error from a format string; ``%w`` arguments become the cause."""
    text, wrapped = _format(format, args)
    err = Exception(text)
    if wrapped:
        err.__cause__ = wrapped[0]
    return _new_trace(err)


def fatalf(format: str, *args: Any) -> TraceErr:
    """Raise RuntimeError in debug mode; otherwise return ``errorf(format, *args)``."""
    if is_debug():
        raise RuntimeError(_sprintf(format, *args))
    text, wrapped = _format(format, args)
    err = Exception(text)
    if wrapped:
        err.__cause__ = wrapped[0]
    return _new_trace(err)


def with_user_message(err: TraceErr, format_arg: Any, *args: Any) -> TraceErr:
    """Return a copy of ``err`` with one more formatted user message."""
    copy = err.clone()
    copy.messages.append(_sprintf(_format_value(format_arg), *args))
    return copy


def with_field(err: TraceErr, key: str, value: Any) -> TraceErr:
    """Return a copy of ``err`` with ``key`` set to ``value`` among its fields."""
    copy = err.clone()
    copy.fields[key] = value
    return copy


def with_fields(err: TraceErr, fields: dict) -> TraceErr:
    """Return a copy of ``err`` with ``fields`` added to its fields."""
    copy = err.clone()
    copy.fields.update(fields)
    return copy


def new_aggregate(*args: Any) -> TraceErr | None:
    """Combine the non-None errors into one traced Aggregate, or return None."""
    errors = [err for err in args if err is not None]
    if not errors:
        return None
    return _new_trace(Aggregate(errors))


def new_aggregate_from_channel(channel: Any, stop: threading.Event | None = None) -> TraceErr | None:
    """Aggregate the errors read from ``channel``.

    ``channel`` is a :class:`queue.Queue`, read until ``stop`` is set, or any
    iterable, read until it is exhausted or ``stop`` is set.
    """
    errors: list = []
    if isinstance(channel, queue.Queue):
        while stop is None or not stop.is_set():
            try:
                errors.append(channel.get(timeout=_POLL_INTERVAL))
            except queue.Empty:
                continue
    else:
        for err in channel:
            errors.append(err)
            if stop is not None and stop.is_set():
                break
    return new_aggregate(*errors)


def is_aggregate(err: Any) -> bool:
    """Report whether an Aggregate is in the chain of ``err``."""
    return error_as(err, Aggregate) is not None


def wrap_proxy(err: Any) -> ProxyError | None:
    """Trace an error that arrived from elsewhere at the point it was read."""
    if err is None:
        return None
    # Skip this function and the reader that called it.
    return ProxyError(err=err, traces=capture_traces(2))