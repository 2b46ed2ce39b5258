import pytest

from pebblekit.once import assert_first_call


def test_first_call_runs_and_returns():
    def _initialise(a, b=2):
        return a + b

    initialise = assert_first_call(_initialise)
    assert initialise(1, b=5) == 6


def test_second_call_raises():
    def _initialise():
        return "done"

    initialise = assert_first_call(_initialise)
    assert initialise() == "done"
    with pytest.raises(RuntimeError, match="already been called"):
        initialise()


def test_functions_are_independent():
    first = assert_first_call(lambda: 1)
    second = assert_first_call(lambda: 2)

    assert first() == 1
    assert second() == 2


def test_failed_first_call_still_counts():
    def _initialise():
        raise KeyError("boom")

    initialise = assert_first_call(_initialise)
    with pytest.raises(KeyError):
        initialise()
    with pytest.raises(RuntimeError, match="already been called"):
        initialise()


def test_wrapper_keeps_name():
    def setup_devices():
        return None

    wrapped = assert_first_call(setup_devices)
    assert wrapped.__name__ == "setup_devices"