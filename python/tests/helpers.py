"""Shared helpers for the example tests."""

from types import SimpleNamespace


class FakeClock:
    """Stands in for the time module: sleeping advances the monotonic clock."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def make_job(name, state, error=None):
    return SimpleNamespace(name=name, state=state, outputs=[SimpleNamespace(error=error)])
