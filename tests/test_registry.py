import pytest

from nephioctrl.objects import Request, Result
from nephioctrl.registry import Reconciler, lookup, register, registered_names


class _Dummy:
    def __init__(self, result):
        self.result = result

    def reconcile(self, request):
        return self.result


def test_register_and_lookup():
    dummy = _Dummy(Result(requeue=True))
    register("test-registry-one", dummy)
    found = lookup("test-registry-one")
    assert found is dummy
    assert found.reconcile(Request("ns", "n")) == Result(requeue=True)
    assert "test-registry-one" in registered_names()


def test_register_replaces_existing():
    first, second = _Dummy(Result()), _Dummy(Result())
    register("test-registry-two", first)
    register("test-registry-two", second)
    assert lookup("test-registry-two") is second
    assert registered_names().count("test-registry-two") == 1


def test_lookup_missing_raises():
    with pytest.raises(KeyError):
        lookup("test-registry-missing")


def test_registered_names_sorted():
    register("test-registry-b", _Dummy(Result()))
    register("test-registry-a", _Dummy(Result()))
    names = registered_names()
    assert names == sorted(names)


def test_looked_up_reconciler_satisfies_protocol():
    dummy = _Dummy(Result(requeue_after=5))
    register("test-registry-protocol", dummy)
    found = lookup("test-registry-protocol")
    assert isinstance(found, Reconciler) is True
    assert found.reconcile(Request("ns", "n")) == Result(requeue_after=5)