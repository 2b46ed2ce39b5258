"""Guard for functions that must only ever be called once."""

import functools
import threading

_MESSAGE = "ASSERTION FAILED: function has already been called"


def assert_first_call(func):
    """Decorate ``func`` so that any call after the first raises ``RuntimeError``."""
    lock = threading.Lock()
    called = False

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        nonlocal called
        with lock:
            already_called, called = called, True
        if already_called:
            raise RuntimeError(_MESSAGE)
        return func(*args, **kwargs)

    return wrapper