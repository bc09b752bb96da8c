import pytest

from errtrace.chain import error_as, error_is, traverse_err


class Wrapper(Exception):
    def __init__(self, inner):
        super().__init__("wrapper")
        self.inner = inner

    def unwrap(self):
        return self.inner


class Multi(Exception):
    def __init__(self, *inner):
        super().__init__("multi")
        self.inner = list(inner)

    def unwrap(self):
        return self.inner


class ByMessage(Exception):
    def matches(self, target):
        return isinstance(target, ByMessage) and str(target) == str(self)


def test_traverse_none_never_calls_fn():
    calls = []
    assert traverse_err(None, lambda e: calls.append(e) or True) is False
    assert calls == []


def test_traverse_visits_in_order():
    leaf = ValueError("leaf")
    top = Wrapper(Wrapper(leaf))
    seen = []
    assert traverse_err(top, lambda e: seen.append(e) or False) is False
    assert seen == [top, top.inner, leaf]


def test_traverse_stops_at_match():
    leaf = KeyError("k")
    top = Wrapper(leaf)
    seen = []
    assert traverse_err(top, lambda e: seen.append(e) or isinstance(e, Wrapper)) is True
    assert seen == [top]


def test_traverse_list_unwrap():
    a, b = ValueError("a"), KeyError("b")
    assert traverse_err(Multi(a, b), lambda e: e is b) is True


def test_traverse_wrapper_of_none_stops():
    assert traverse_err(Wrapper(None), lambda e: isinstance(e, ValueError)) is False


def test_traverse_follows_cause():
    inner = ValueError("inner")
    try:
        try:
            raise inner
        except ValueError as exc:
            raise RuntimeError("outer") from exc
    except RuntimeError as outer:
        assert traverse_err(outer, lambda e: e is inner) is True


def test_traverse_ignores_implicit_context():
    inner = ValueError("inner")
    try:
        try:
            raise inner
        except ValueError:
            raise RuntimeError("outer")
    except RuntimeError as outer:
        assert traverse_err(outer, lambda e: e is inner) is False


def test_error_is_identity_through_chain():
    leaf = ValueError("x")
    assert error_is(Wrapper(Multi(KeyError("k"), leaf)), leaf) is True
    assert error_is(Wrapper(leaf), ValueError("x")) is False


def test_error_is_uses_matches():
    assert error_is(Wrapper(ByMessage("one")), ByMessage("one")) is True
    assert error_is(Wrapper(ByMessage("one")), ByMessage("two")) is False


def test_error_is_none_cases():
    assert error_is(None, None) is True
    assert error_is(ValueError("x"), None) is False
    assert error_is(None, ValueError("x")) is False


def test_error_as_returns_first_instance():
    first = ValueError("first")
    second = ValueError("second")
    found = error_as(Wrapper(Multi(KeyError("k"), first, second)), ValueError)
    assert found is first


def test_error_as_returns_none_when_absent():
    assert error_as(Wrapper(KeyError("k")), ValueError) is None
    assert error_as(None, ValueError) is None


@pytest.mark.parametrize("cls", [Wrapper, (Wrapper, KeyError)])
def test_error_as_matches_top_level(cls):
    top = Wrapper(KeyError("k"))
    assert error_as(top, cls) is top