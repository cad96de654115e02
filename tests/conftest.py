import io

import pytest

from pacebar import OutputGate, Terminal


class FakeTTY(io.StringIO):
    """In-memory stream that claims to be a terminal"""

    def isatty(self):
        return True


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def tty():
    return FakeTTY()


@pytest.fixture
def tty_gate(tty):
    return OutputGate(stream=tty, terminal=Terminal(tty, columns=80, lines=50, interactive=True))


@pytest.fixture
def pipe_gate():
    stream = io.StringIO()
    return OutputGate(stream=stream, terminal=Terminal(stream, columns=80, lines=24, interactive=False))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def other_tty():
    """A second terminal stream, e.g. the one application output goes to"""
    return FakeTTY()
