"""Sending errors as JSON HTTP responses and reading them back into errors."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Callable

from .errors import (
    AccessDeniedError,
    AlreadyExistsError,
    BadParameterError,
    CompareFailedError,
    ConnectionProblemError,
    LimitExceededError,
    NotFoundError,
    UnimplementedError,
    is_access_denied,
    is_already_exists,
    is_bad_parameter,
    is_compare_failed,
    is_connection_problem,
    is_limit_exceeded,
    is_not_found,
    is_not_implemented,
    is_oauth2,
)
from .frames import Trace, Traces
from .trace import MAX_HOPS, Aggregate, ProxyError, RawTrace, TraceErr, is_aggregate, unwrap, wrap_proxy


@dataclass
class ResponseWriter:
    """An in-memory HTTP response: headers, status code and body."""

    headers: dict = field(default_factory=dict)
    status_code: int = 0
    body: bytes = b""

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def write_header(self, code: int) -> None:
        self.status_code = code

    def write(self, body: bytes) -> int:
        data = bytes(body)
        self.body += data
        return len(data)


_CODE_CHECKS: tuple[tuple[Callable[[Any], bool], HTTPStatus], ...] = (
    (is_aggregate, HTTPStatus.GATEWAY_TIMEOUT),
    (is_not_found, HTTPStatus.NOT_FOUND),
    (is_bad_parameter, HTTPStatus.BAD_REQUEST),
    (is_oauth2, HTTPStatus.BAD_REQUEST),
    (is_not_implemented, HTTPStatus.NOT_IMPLEMENTED),
    (is_compare_failed, HTTPStatus.PRECONDITION_FAILED),
    (is_access_denied, HTTPStatus.FORBIDDEN),
    (is_already_exists, HTTPStatus.CONFLICT),
    (is_limit_exceeded, HTTPStatus.TOO_MANY_REQUESTS),
    (is_connection_problem, HTTPStatus.GATEWAY_TIMEOUT),
)

_ERRORS_BY_CODE: dict[int, type] = {
    HTTPStatus.NOT_FOUND: NotFoundError,
    HTTPStatus.BAD_REQUEST: BadParameterError,
    HTTPStatus.NOT_IMPLEMENTED: UnimplementedError,
    HTTPStatus.PRECONDITION_FAILED: CompareFailedError,
    HTTPStatus.FORBIDDEN: AccessDeniedError,
    HTTPStatus.CONFLICT: AlreadyExistsError,
    HTTPStatus.TOO_MANY_REQUESTS: LimitExceededError,
    HTTPStatus.GATEWAY_TIMEOUT: ConnectionProblemError,
}

_UNCHANGED = object()

_JSON_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


def write_error(writer: Any, err: Any) -> None:
    """Write ``err`` to ``writer`` as a JSON response with a matching status code.

    An aggregate is reported as its first error, looking through nested aggregates.
    """
    if is_aggregate(err):
        for _ in range(MAX_HOPS):
            inner = unwrap(err)
            if not isinstance(inner, Aggregate):
                break
            errors = inner.errors()
            if not errors:
                break
            err = errors[0]
    reply_json(writer, error_to_code(err), err)


def error_to_code(err: Any) -> int:
    """Return the HTTP status code that corresponds to the kind of ``err``."""
    return next(
        (int(code) for predicate, code in _CODE_CHECKS if predicate(err)),
        int(HTTPStatus.INTERNAL_SERVER_ERROR),
    )


def read_error(status_code: int, body: bytes | str) -> ProxyError | None:
    """Rebuild an error from an HTTP status code and response body.

    Returns None when the status code does not indicate an error.
    """
    if HTTPStatus.OK <= status_code < HTTPStatus.BAD_REQUEST:
        return None
    err = _ERRORS_BY_CODE.get(status_code, RawTrace)()
    return wrap_proxy(unmarshal_error(err, body))


def _encode_json(payload: dict) -> str:
    text = json.dumps(payload, indent=4, ensure_ascii=False, allow_nan=False)
    for char, escape in _JSON_ESCAPES:
        text = text.replace(char, escape)
    return text


def reply_json(writer: Any, code: int, err: Any) -> None:
    """Write ``err`` as an indented JSON document with status ``code``."""
    writer.set_header("Content-Type", "application/json")
    writer.write_header(code)
    obj = err if type(err) is TraceErr else TraceErr(err=err)
    payload = obj.to_dict()
    if "fields" in payload:
        payload["fields"] = dict(sorted(payload["fields"].items(), key=lambda kv: str(kv[0])))
    try:
        out = _encode_json(payload)
    except (TypeError, ValueError) as exc:
        out = f'{{"error": {{"message": "internal marshal error: {exc}"}}}}'
    writer.write(out.encode("utf-8"))


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def _parse(body: bytes | str) -> Any:
    return json.loads(body, parse_constant=_reject_constant)


def _any(value: Any) -> Any:
    return value


def _str(value: Any) -> Any:
    if value is None:
        return _UNCHANGED
    if not isinstance(value, str):
        raise ValueError(f"cannot decode {value!r} as a string")
    return value


def _int(value: Any) -> Any:
    if value is None:
        return _UNCHANGED
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"cannot decode {value!r} as an integer")
    return value


def _str_list(value: Any) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"cannot decode {value!r} as a list of strings")
    result = []
    for item in value:
        decoded = _str(item)
        result.append("" if decoded is _UNCHANGED else decoded)
    return result


def _object(value: Any) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"cannot decode {value!r} as an object")
    return dict(value)


_TRACE_SPEC: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "path": ("path", _str),
    "func": ("func", _str),
    "line": ("line", _int),
}


def _traces(value: Any) -> Traces:
    if value is None:
        return Traces()
    if not isinstance(value, list):
        raise ValueError(f"cannot decode {value!r} as a list of traces")
    return Traces(Trace(**_decode_fields(item, _TRACE_SPEC)) for item in value)


_RAW_SPEC: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "error": ("err", _any),
    "traces": ("traces", _traces),
    "message": ("message", _str),
    "messages": ("messages", _str_list),
    "fields": ("fields", _object),
}

_MESSAGE_SPEC: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "message": ("message", _str),
}


def _lookup(spec: dict, key: str) -> str | None:
    if key in spec:
        return key
    folded = key.casefold()
    return next((name for name in spec if name.casefold() == folded), None)


def _decode_fields(data: Any, spec: dict) -> dict:
    """Decode the known keys of a JSON object; keys match case-insensitively."""
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"cannot decode {data!r} as an object")
    decoded: dict = {}
    for key, value in data.items():
        name = _lookup(spec, key)
        if name is None:
            continue
        attr, convert = spec[name]
        result = convert(value)
        if result is not _UNCHANGED:
            decoded[attr] = result
    return decoded


def _decode_into(err: Any, data: Any) -> None:
    spec = _RAW_SPEC if isinstance(err, RawTrace) else _MESSAGE_SPEC
    for attr, value in _decode_fields(data, spec).items():
        setattr(err, attr, value)


def _error_on_invalid_json(err: Any, body: bytes | str) -> TraceErr:
    text = body.decode("utf-8", errors="replace") if isinstance(body, (bytes, bytearray)) else body
    return TraceErr(err=err, messages=[text])


def unmarshal_error(err: Any, body: bytes | str) -> Any:
    """Fill ``err`` from a JSON response body.

    A body that carries an ``error`` object yields a TraceErr around ``err``
    with the body's messages and fields. A body that is not valid JSON, or
    does not have the expected shape, yields a TraceErr around ``err`` whose
    only message is the body text.
    """
    if not body:
        return err
    try:
        raw = _decode_fields(_parse(body), _RAW_SPEC)
        if "err" in raw:
            _decode_into(err, raw["err"])
            return TraceErr(
                err=err,
                traces=raw.get("traces", Traces()),
                message=raw.get("message", ""),
                messages=raw.get("messages", []),
                fields=raw.get("fields", {}),
            )
        _decode_into(err, _parse(body))
    except ValueError:
        return _error_on_invalid_json(err, body)
    return err