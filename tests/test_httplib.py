import json

import pytest

from errtrace.errors import (
    AccessDeniedError,
    NotFoundError,
    access_denied,
    already_exists,
    bad_parameter,
    compare_failed,
    connection_problem,
    is_access_denied,
    is_already_exists,
    is_bad_parameter,
    is_compare_failed,
    is_connection_problem,
    is_limit_exceeded,
    is_not_found,
    is_not_implemented,
    limit_exceeded,
    not_found,
    not_implemented,
    oauth2,
)
from errtrace.frames import Trace, Traces
from errtrace.httplib import (
    ResponseWriter,
    error_to_code,
    read_error,
    reply_json,
    unmarshal_error,
    write_error,
)
from errtrace.trace import (
    ProxyError,
    RawTrace,
    TraceErr,
    get_fields,
    is_aggregate,
    new_aggregate,
    set_debug,
    with_field,
    with_fields,
    wrap,
)


def roundtrip(err):
    writer = ResponseWriter()
    write_error(writer, err)
    return writer, read_error(writer.status_code, writer.body)


@pytest.mark.parametrize(
    "err",
    [
        Exception("test error"),
        TraceErr(err=Exception("test error")),
        TraceErr(err=Exception("test error"), traces=Traces([Trace(path="A", func="B", line=1)])),
    ],
)
def test_reply_json(err):
    writer = ResponseWriter()
    reply_json(writer, 400, err)
    assert json.loads(writer.body) == {"error": {"message": "test error"}}
    assert writer.status_code == 400
    assert writer.headers["Content-Type"] == "application/json"


def test_reply_json_escapes_html_characters():
    writer = ResponseWriter()
    reply_json(writer, 500, Exception("<b>&"))
    assert b"\\u003cb\\u003e\\u0026" in writer.body
    assert json.loads(writer.body)["error"]["message"] == "<b>&"


def test_reply_json_marshal_failure():
    err = with_field(wrap(Exception("e")), "obj", object())
    writer = ResponseWriter()
    reply_json(writer, 500, err)
    assert writer.body.startswith(b'{"error": {"message": "internal marshal error: ')


@pytest.mark.parametrize(
    "input_err, response, predicate, expected",
    [
        (NotFoundError(), '{"error": {"message": "ABC"}}', is_not_found, "ABC"),
        (AccessDeniedError(), '{"error": {"message": "ABC"}}', is_access_denied, "ABC"),
        (AccessDeniedError(), '{"message": "ABC"}', is_access_denied, "ABC"),
        (
            AccessDeniedError(),
            '{"error": "message ABC"}',
            is_access_denied,
            '{"error": "message ABC"}\n\taccess denied',
        ),
        (
            AccessDeniedError(),
            '["error message ABC"]',
            is_access_denied,
            '["error message ABC"]\n\taccess denied',
        ),
        (
            AccessDeniedError(),
            "error message ABC",
            is_access_denied,
            "error message ABC\n\taccess denied",
        ),
    ],
)
def test_unmarshal_error(input_err, response, predicate, expected):
    result = unmarshal_error(input_err, response.encode())
    assert predicate(result)
    assert str(result) == expected


def test_unmarshal_error_empty_body_returns_input():
    err = NotFoundError()
    assert unmarshal_error(err, b"") is err


def test_unmarshal_error_keys_match_case_insensitively():
    result = unmarshal_error(NotFoundError(), b'{"Message": "gone"}')
    assert str(result) == "gone"


@pytest.mark.parametrize(
    "factory, predicate, code",
    [
        (lambda: not_found("not found"), is_not_found, 404),
        (lambda: already_exists("already exists"), is_already_exists, 409),
        (lambda: bad_parameter("is bad"), is_bad_parameter, 400),
        (lambda: compare_failed("is bad"), is_compare_failed, 412),
        (lambda: access_denied("denied"), is_access_denied, 403),
        (lambda: connection_problem(None, "prob"), is_connection_problem, 504),
        (lambda: limit_exceeded("limit exceeded"), is_limit_exceeded, 429),
        (lambda: not_implemented("not implemented"), is_not_implemented, 501),
    ],
)
@pytest.mark.parametrize("debug", [True, False])
def test_generic_errors_roundtrip(factory, predicate, code, debug):
    set_debug(debug)
    try:
        err = factory()
        assert predicate(err)
        assert err.traces[0].path.endswith("test_httplib.py")
        writer, out = roundtrip(err)
    finally:
        set_debug(False)
    assert writer.status_code == code
    assert isinstance(out, ProxyError)
    assert predicate(out)
    assert str(out) == str(err)


@pytest.mark.parametrize("debug", [True, False])
def test_write_external_errors(debug):
    err = wrap(Exception("snap!"))
    set_debug(debug)
    try:
        writer, out = roundtrip(err)
    finally:
        set_debug(False)
    assert writer.status_code == 500
    assert "snap" in writer.body.decode().replace("\n", "")
    assert isinstance(out.err.err, RawTrace)
    assert str(out) == str(err)


def test_get_fields_survives_roundtrip():
    fields = {"test_key": "test_value"}
    err = with_fields(wrap(Exception("description")), fields)
    _, out = roundtrip(err)
    assert get_fields(out) == fields


def test_user_messages_survive_roundtrip():
    err = wrap(not_found("x"), "context")
    writer, out = roundtrip(err)
    assert writer.status_code == 404
    assert str(out) == "context\n\tx"
    assert is_not_found(out)


@pytest.mark.parametrize(
    "err",
    [
        new_aggregate(bad_parameter("invalid value of foo"), limit_exceeded("limit exceeded")),
        new_aggregate(
            new_aggregate(bad_parameter("invalid value of foo"), limit_exceeded("limit exceeded"))
        ),
    ],
)
@pytest.mark.parametrize("debug", [True, False])
def test_aggregate_converts_to_common_errors(err, debug):
    assert is_aggregate(err)
    set_debug(debug)
    try:
        writer, out = roundtrip(err)
    finally:
        set_debug(False)
    assert writer.status_code == 400
    assert is_bad_parameter(out)
    assert not is_aggregate(out)
    assert str(out) == "invalid value of foo"


@pytest.mark.parametrize(
    "err, code",
    [
        (new_aggregate(Exception("a")), 504),
        (oauth2("code", "message", None), 400),
        (wrap(Exception("plain")), 500),
        (Exception("plain"), 500),
        (connection_problem(None, "down"), 504),
    ],
)
def test_error_to_code(err, code):
    assert error_to_code(err) == code


@pytest.mark.parametrize("status", [200, 201, 302, 399])
def test_read_error_success_codes(status):
    assert read_error(status, b'{"error": {"message": "x"}}') is None


def test_read_error_empty_body_uses_default_message():
    out = read_error(404, b"")
    assert isinstance(out, ProxyError)
    assert is_not_found(out)
    assert str(out) == "object not found"


def test_read_error_unknown_code_gives_raw_trace():
    out = read_error(418, b"")
    assert isinstance(out.err, RawTrace)
    assert str(out) == ""


def test_read_error_restores_traces():
    body = b'{"error": {"message": "m"}, "traces": [{"path": "a/b.py", "func": "f", "line": 3}]}'
    out = read_error(500, body)
    inner = out.err
    assert inner.traces == [Trace(path="a/b.py", func="f", line=3)]
    assert str(out) == "m"


def test_read_error_invalid_traces_keep_body_as_message():
    body = b'{"error": {"message": "m"}, "traces": "bad"}'
    out = read_error(404, body)
    assert is_not_found(out)
    assert str(out) == body.decode() + "\n\tobject not found"


def test_write_error_replaces_body_fields():
    writer = ResponseWriter()
    write_error(writer, with_fields(wrap(Exception("e")), {"b": 1, "a": 2}))
    payload = json.loads(writer.body)
    assert list(payload["fields"]) == ["a", "b"]
    assert payload["error"] == {"message": "e"}