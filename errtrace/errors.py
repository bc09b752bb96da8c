"""Error kinds that classify failures, with constructors and predicates.

Each constructor returns the error wrapped in a :class:`TraceErr` that records
the caller's stack. Each ``is_*`` predicate reports whether an error of that
kind appears anywhere in an error's chain, including inside aggregates.
"""

from __future__ import annotations

import errno
import socket
import ssl
from dataclasses import dataclass
from typing import Any, ClassVar

from .chain import error_as, traverse_err
from .trace import TraceErr, _new_trace, _sprintf, unwrap, user_message

_NETWORK_ERRORS = (ConnectionError, TimeoutError, socket.gaierror, socket.herror)


def _is_not_exist(err: Any) -> bool:
    return isinstance(err, FileNotFoundError)


def _is_exist(err: Any) -> bool:
    if isinstance(err, FileExistsError):
        return True
    return isinstance(err, OSError) and err.errno == errno.ENOTEMPTY


def _is_permission(err: Any) -> bool:
    return isinstance(err, PermissionError)


def _contains(err: Any, cls: type) -> bool:
    return error_as(err, cls) is not None


@dataclass(eq=False)
class _KindError(Exception):
    """An error kind identified by its type and message."""

    message: str = ""
    _default: ClassVar[str] = ""

    def __str__(self) -> str:
        return self.message or self._default

    def orig_error(self) -> Any:
        return self

    def matches(self, target: Any) -> bool:
        """Report whether ``target`` is an error of the same kind and message."""
        other = unwrap(target)
        return type(other) is type(self) and other.message == self.message


@dataclass(eq=False)
class _WrappingKindError(_KindError):
    """An error kind that may carry the error that caused it."""

    err: Any = None

    def __str__(self) -> str:
        return self.message or user_message(self.err)

    def unwrap(self) -> Any:
        return self.err

    def orig_error(self) -> Any:
        return self.err if self.err is not None else self

    def matches(self, target: Any) -> bool:
        other = unwrap(target)
        return (
            type(other) is type(self)
            and other.message == self.message
            and other.err is self.err
        )


class NotFoundError(_KindError):
    """An object has not been found."""

    _default = "object not found"

    def matches(self, target: Any) -> bool:
        if _is_not_exist(target):
            return True
        return super().matches(target)


class AlreadyExistsError(_KindError):
    """A duplicate object already exists."""

    _default = "object already exists"


class BadParameterError(_KindError):
    """A parameter passed to an API is wrong."""


class UnimplementedError(_KindError):
    """An API that is not implemented was called."""


class CompareFailedError(_KindError):
    """A comparison failed, such as a bad password or hash."""

    _default = "compare failed"


class AccessDeniedError(_KindError):
    """Access was denied."""

    _default = "access denied"


class LimitExceededError(_KindError):
    """A rate or connection limit was exceeded."""


class ConnectionProblemError(_WrappingKindError):
    """A network-related problem."""


class TrustError(_WrappingKindError):
    """A trust-related validation failure, such as an untrusted certificate."""


class RetryError(_WrappingKindError):
    """A transient failure worth retrying."""


@dataclass(eq=False)
class OAuth2Error(Exception):
    """An error in an OpenID Connect flow."""

    code: str = ""
    message: str = ""
    query: dict | None = None

    def __str__(self) -> str:
        return f"OAuth2 error code={self.code}, message={self.message}"

    def matches(self, target: Any) -> bool:
        other = unwrap(target)
        if type(other) is not type(self):
            return False
        if other.message != self.message or other.code != self.code:
            return False
        theirs = other.query or {}
        mine = self.query or {}
        if len(theirs) != len(mine):
            return False
        for key, values in theirs.items():
            for key2, values2 in mine.items():
                if key != key2 and len(values) != len(values2):
                    return False
                if len(values) > len(values2):
                    return False
                if any(a != b for a, b in zip(values, values2)):
                    return False
        return True


def not_found(message: str, *args: Any) -> TraceErr:
    return _new_trace(NotFoundError(message=_sprintf(message, *args)))


def is_not_found(err: Any) -> bool:
    """Report whether a NotFoundError or a missing-file error is in the chain."""
    return traverse_err(err, lambda e: _is_not_exist(e) or isinstance(e, NotFoundError))


def already_exists(message: str, *args: Any) -> TraceErr:
    return _new_trace(AlreadyExistsError(message=_sprintf(message, *args)))


def is_already_exists(err: Any) -> bool:
    return _contains(err, AlreadyExistsError)


def bad_parameter(message: str, *args: Any) -> TraceErr:
    return _new_trace(BadParameterError(message=_sprintf(message, *args)))


def is_bad_parameter(err: Any) -> bool:
    return _contains(err, BadParameterError)


def not_implemented(message: str, *args: Any) -> TraceErr:
    return _new_trace(UnimplementedError(message=_sprintf(message, *args)))


def is_not_implemented(err: Any) -> bool:
    return _contains(err, UnimplementedError)


def compare_failed(message: str, *args: Any) -> TraceErr:
    return _new_trace(CompareFailedError(message=_sprintf(message, *args)))


def is_compare_failed(err: Any) -> bool:
    return _contains(err, CompareFailedError)


def access_denied(message: str, *args: Any) -> TraceErr:
    return _new_trace(AccessDeniedError(message=_sprintf(message, *args)))


def is_access_denied(err: Any) -> bool:
    return _contains(err, AccessDeniedError)


def convert_system_error(err: Any) -> Any:
    """Convert an operating-system error to the matching error kind.

    Errors that match no kind are returned unchanged.
    """
    inner = unwrap(err)
    if _is_exist(inner):
        return _new_trace(AlreadyExistsError(message=str(inner)))
    if _is_not_exist(inner):
        return _new_trace(NotFoundError(message=str(inner)))
    if _is_permission(inner):
        return _new_trace(AccessDeniedError(message=str(inner)))
    if isinstance(inner, ssl.SSLCertVerificationError):
        return _new_trace(TrustError(err=inner))
    if isinstance(inner, _NETWORK_ERRORS):
        return _new_trace(ConnectionProblemError(err=inner))
    if isinstance(inner, OSError) and inner.filename is not None:
        reason = inner.strerror if inner.strerror is not None else str(inner)
        message = f"failed to execute command {inner.filename} error:  {reason}"
        return _new_trace(AccessDeniedError(message=message))
    return err


def connection_problem(err: Any, message: str, *args: Any) -> TraceErr:
    return _new_trace(ConnectionProblemError(message=_sprintf(message, *args), err=err))


def is_connection_problem(err: Any) -> bool:
    return _contains(err, ConnectionProblemError)


def limit_exceeded(message: str, *args: Any) -> TraceErr:
    return _new_trace(LimitExceededError(message=_sprintf(message, *args)))


def is_limit_exceeded(err: Any) -> bool:
    return _contains(err, LimitExceededError)


def trust(err: Any, message: str, *args: Any) -> TraceErr:
    return _new_trace(TrustError(message=_sprintf(message, *args), err=err))


def is_trust_error(err: Any) -> bool:
    return _contains(err, TrustError)


def oauth2(code: str, message: str, query: dict | None) -> TraceErr:
    return _new_trace(OAuth2Error(code=code, message=message, query=query))


def is_oauth2(err: Any) -> bool:
    return _contains(err, OAuth2Error)


def is_eof(err: Any) -> bool:
    """Report whether the original error beneath ``err`` is an end-of-file error."""
    return _contains(unwrap(err), EOFError)


def retry(err: Any, message: str, *args: Any) -> TraceErr:
    return _new_trace(RetryError(message=_sprintf(message, *args), err=err))


def is_retry_error(err: Any) -> bool:
    return _contains(err, RetryError)