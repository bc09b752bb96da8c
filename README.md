# errtrace

Error types that remember where they came from.

`errtrace` wraps exceptions in a `TraceErr` that records the call stack at the
point of wrapping. You can stack user-facing messages onto the error and attach
key/value fields to it. The package also provides a set of well-known error
kinds, such as not found, access denied and bad parameter. These kinds can be
written as a JSON HTTP response and rebuilt from one.

## Installing

```
pip install errtrace
```

The package has no runtime dependencies. Install the `test` extra to get pytest
for the test suite.

## Modules

- `errtrace.trace`: `TraceErr`, wrapping, user messages, fields, aggregates and debug mode.
- `errtrace.errors`: the well-known error kinds, their constructors and their `is_*` predicates.
- `errtrace.httplib`: turning errors into JSON responses and back.
- `errtrace.chain`: walking chains of wrapped errors (`traverse_err`, `error_is`, `error_as`).
- `errtrace.frames`: the captured stack entries (`Trace`, `Traces`, `capture_traces`).

## Wrapping errors

```python
from errtrace.trace import wrap, user_message, debug_report, unwrap

try:
    open("/no/such/file")
except OSError as exc:
    err = wrap(exc, "could not load %s", "settings")

print(user_message(err))   # the messages, newest first, then the cause
print(debug_report(err))   # error type, fields, stack trace and user message
assert unwrap(err) is exc  # the original error
```

Message arguments use printf-style verbs such as `%s`, `%v`, `%q` and `%d`.

`with_user_message`, `with_field` and `with_fields` each return a copy of a
`TraceErr` with more context attached. The original is left unchanged.
`user_message_with_fields` prints the fields as `key="value"` pairs in front of
the message. `get_fields` reads them back.

`errorf(format, *args)` creates a traced error from a format string. A `%w`
argument becomes the new error's `__cause__`. `fatalf` does the same, but when
debug mode is on (`set_debug(True)`, checked with `is_debug()`) it raises
`RuntimeError` instead.

## Well-known error kinds

```python
from errtrace.errors import not_found, is_not_found, is_access_denied

err = not_found("user %s not found", "alice")
assert is_not_found(err)
assert not is_access_denied(err)
```

| Constructor | Error class | Predicate |
| --- | --- | --- |
| `not_found` | `NotFoundError` | `is_not_found` |
| `already_exists` | `AlreadyExistsError` | `is_already_exists` |
| `bad_parameter` | `BadParameterError` | `is_bad_parameter` |
| `not_implemented` | `UnimplementedError` | `is_not_implemented` |
| `compare_failed` | `CompareFailedError` | `is_compare_failed` |
| `access_denied` | `AccessDeniedError` | `is_access_denied` |
| `connection_problem` | `ConnectionProblemError` | `is_connection_problem` |
| `limit_exceeded` | `LimitExceededError` | `is_limit_exceeded` |
| `trust` | `TrustError` | `is_trust_error` |
| `oauth2` | `OAuth2Error` | `is_oauth2` |
| `retry` | `RetryError` | `is_retry_error` |

Notes on the predicates and related helpers:

- A predicate looks through trace wrappers, chained causes and aggregates.
- `is_not_found` also accepts `FileNotFoundError`.
- `is_eof` reports whether the original error is an `EOFError`.
- `convert_system_error` maps errors to kinds as follows:
  - existing files become already exists;
  - missing files become not found;
  - permission errors become access denied;
  - certificate verification failures become trust errors;
  - connection, timeout and resolver errors become connection problems.
  Anything else is returned unchanged.

Each error kind defines `matches(target)`. `errtrace.chain.error_is(err, target)`
uses it to compare errors by kind and message.

## Aggregates

`new_aggregate(*errors)` combines several errors into one traced `Aggregate`
and drops any `None` values. It returns `None` if nothing is left.

`new_aggregate_from_channel(channel, stop)` collects errors in one of two ways:

- From a `queue.Queue`: it reads until the `threading.Event` `stop` is set.
  Pass an event, or it never returns.
- From any other iterable: it reads until the iterable is exhausted or `stop`
  is set.

`is_aggregate` tells you whether an error holds an aggregate.

## Over HTTP

```python
from errtrace.errors import not_found, is_not_found
from errtrace.httplib import ResponseWriter, write_error, read_error

writer = ResponseWriter()
write_error(writer, not_found("no such user"))  # status 404 and a JSON body
again = read_error(writer.status_code, writer.body)
assert is_not_found(again)
```

- `error_to_code` maps an error to its HTTP status code.
- `write_error` reports an aggregate as its first error.
- `read_error(status, body)` returns `None` for 2xx and 3xx status codes.
  Otherwise it returns a `ProxyError` that records where the error was read.
- `reply_json` and `unmarshal_error` are the lower-level writing and decoding
  steps.

## What it does not do

`errtrace` does not run an HTTP server or client. `ResponseWriter` is an
in-memory response that holds headers, a status code and a body. `write_error`
accepts any object with `set_header`, `write_header` and `write` methods.
Sending the bytes over a connection is left to your own HTTP code.