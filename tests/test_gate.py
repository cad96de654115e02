import io
import sys
import threading
import time

import pytest

from pacebar import OutputGate, StdProxy, Terminal


class BrokenStream(io.StringIO):
    def write(self, data):
        raise BrokenPipeError()


class SlowStream(io.StringIO):
    """Records how many writers are inside write() at once"""

    def __init__(self):
        super().__init__()
        self.inside = 0
        self.max_inside = 0
        self._counter_lock = threading.Lock()

    def write(self, data):
        with self._counter_lock:
            self.inside += 1
            self.max_inside = max(self.max_inside, self.inside)
        time.sleep(0.001)
        result = super().write(data)
        with self._counter_lock:
            self.inside -= 1
        return result


class Region:
    def __init__(self):
        self.noted = []

    def _note_output(self, lines):
        self.noted.append(lines)


def test_failed_write_is_reported_not_raised():
    stream = BrokenStream()
    gate = OutputGate(stream=stream, terminal=Terminal(stream, columns=80, lines=24, interactive=True))
    assert gate.write('frame') is False


def test_writes_are_serialised():
    stream = SlowStream()
    gate = OutputGate(stream=stream, terminal=Terminal(stream, columns=80, lines=24, interactive=True))

    def work(label):
        for _ in range(20):
            gate.write(label)

    threads = [threading.Thread(target=work, args=(c,)) for c in 'abcd']
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert stream.max_inside == 1
    assert len(stream.getvalue()) == 80


def test_emit_notifies_region_for_terminal_output(tty_gate, other_tty):
    region = Region()
    tty_gate.acquire(region)
    tty_gate.emit('a\nb\n', stream=other_tty)
    tty_gate.emit('c\n', stream=io.StringIO())
    assert region.noted == [2]
    assert other_tty.getvalue() == 'a\nb\n'
    tty_gate.release(region)
    assert tty_gate.users == 0


def test_emit_on_non_interactive_gate_does_not_notify(pipe_gate, other_tty):
    region = Region()
    pipe_gate.acquire(region)
    pipe_gate.emit('a\n', stream=other_tty)
    assert region.noted == []


def test_std_proxy_buffers_partial_lines(pipe_gate):
    target = io.StringIO()
    proxy = StdProxy(pipe_gate, target)
    proxy.write('ab')
    assert target.getvalue() == ''
    proxy.write('c\nd')
    assert target.getvalue() == 'abc\n'
    proxy.flush()
    assert target.getvalue() == 'abc\nd\n'
    assert not proxy.isatty()


def test_intercept_and_restore(pipe_gate):
    original = sys.stdout
    pipe_gate.intercept_stdout()
    try:
        assert isinstance(sys.stdout, StdProxy)
        assert pipe_gate.stdout is original
        pipe_gate.intercept_stdout()
        assert sys.stdout.stream is original
    finally:
        pipe_gate.restore_stdout()
    assert sys.stdout is original
    assert not pipe_gate.intercepting


def test_last_release_restores_owned_interception(pipe_gate):
    original = sys.stdout
    pipe_gate.acquire()
    pipe_gate.intercept_stdout()
    pipe_gate.release()
    assert sys.stdout is original


def test_unowned_interception_survives_release(pipe_gate):
    original = sys.stdout
    pipe_gate.acquire()
    pipe_gate.intercept_stdout(owned=False)
    try:
        pipe_gate.release()
        assert isinstance(sys.stdout, StdProxy)
    finally:
        pipe_gate.restore_stdout()
    assert sys.stdout is original


def test_intercepted_print_reaches_original_stdout(pipe_gate, capsys):
    pipe_gate.intercept_stdout()
    try:
        print('through the proxy')
    finally:
        pipe_gate.restore_stdout()
    assert capsys.readouterr().out == 'through the proxy\n'


def test_read_line(pipe_gate, capsys):
    assert pipe_gate.read_line('name? ', stdin=io.StringIO('bario\n')) == 'bario'
    assert capsys.readouterr().out == 'name? '
    with pytest.raises(EOFError):
        pipe_gate.read_line(stdin=io.StringIO(''))


def test_default_gate_is_shared():
    assert OutputGate.default() is OutputGate.default()


def test_default_gate_per_stream(other_tty):
    gate = OutputGate.default(other_tty)
    assert gate is OutputGate.default(other_tty)
    assert gate is not OutputGate.default()
    assert gate.stream is other_tty
    assert OutputGate.default(io.StringIO()) is not gate


def test_terminal_rejects_bad_sizes():
    with pytest.raises(ValueError):
        Terminal(columns=0)
    with pytest.raises(ValueError):
        Terminal(lines=-1)


def test_terminal_falls_back_for_pipes():
    terminal = Terminal(io.StringIO())
    assert not terminal.is_interactive()
    assert terminal.column_count() > 0
    assert terminal.line_count() > 0
