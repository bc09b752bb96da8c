"""Walking chains of wrapped errors.

An error wraps others by defining ``unwrap()``, which returns a single
error, a list of errors, or None. Errors without ``unwrap()`` are followed
through their explicit ``__cause__``. An error may also define
``matches(target)`` to declare itself equivalent to ``target``.
"""

from __future__ import annotations

from typing import Callable, Iterator


def _wrapped(err: BaseException) -> list:
    unwrapper = getattr(err, "unwrap", None)
    if callable(unwrapper):
        inner = unwrapper()
        if inner is None:
            return []
        if isinstance(inner, (list, tuple)):
            return list(inner)
        return [inner]
    cause = getattr(err, "__cause__", None)
    return [cause] if cause is not None else []


def traverse_err(err, fn: Callable[[BaseException], bool]) -> bool:
    """Walk the chain of ``err`` depth first until ``fn`` returns True.

    ``fn`` is never called with None. Returns whether ``fn`` matched.
    """
    if err is None:
        return False
    if fn(err):
        return True
    return any(traverse_err(inner, fn) for inner in _wrapped(err) if inner is not None)


def _walk(err) -> Iterator[BaseException]:
    if err is None:
        return
    yield err
    for inner in _wrapped(err):
        yield from _walk(inner)


def error_is(err, target) -> bool:
    """Report whether any error in the chain of ``err`` is or matches ``target``."""
    if err is None or target is None:
        return err is target

    def check(candidate) -> bool:
        if candidate is target:
            return True
        matcher = getattr(candidate, "matches", None)
        return callable(matcher) and bool(matcher(target))

    return traverse_err(err, check)


def error_as(err, cls):
    """Return the first error in the chain of ``err`` that is an instance of ``cls``, or None."""
    return next((candidate for candidate in _walk(err) if isinstance(candidate, cls)), None)