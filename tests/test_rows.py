import gc
import sys

import pytest

from pacebar import OutputGate, RowManager, StdProxy, Terminal
from pacebar._terminal import display_width


def make_bars(manager, clock, *descs, **kwargs):
    kwargs.setdefault('total', 10)
    kwargs.setdefault('use_unicode', True)
    kwargs.setdefault('use_colour', False)
    return [manager.create_bar(desc=desc, clock=clock, **kwargs) for desc in descs]


def test_rows_are_assigned_in_creation_order(tty_gate, clock):
    manager = RowManager(gate=tty_gate)
    a, b, c = make_bars(manager, clock, 'A', 'B', 'C')
    assert [s.row for s in manager.slots] == [0, 1, 2]
    assert manager.extent == 3
    assert manager.slot_of(b) is b.slot
    assert len(manager) == 3


def test_registration_draws_each_bar_on_its_own_line(tty_gate, clock):
    manager = RowManager(gate=tty_gate)
    make_bars(manager, clock, 'A', 'B')
    output = tty_gate.stream.getvalue()
    assert output.count('\n') == 2
    assert output.index('A:') < output.index('B:')


def test_default_mode_leaves_a_hole(tty_gate, clock):
    manager = RowManager(gate=tty_gate)
    a, b, c = make_bars(manager, clock, 'A', 'B', 'C')
    b.close(leave=False)
    assert a.slot.row == 0
    assert c.slot.row == 2
    assert manager.extent == 3


def test_clean_mode_compacts_rows(tty_gate, clock):
    manager = RowManager(gate=tty_gate, clean=True)
    a, b, c = make_bars(manager, clock, 'A', 'B', 'C')
    b.close(leave=False)
    assert a.slot.row == 0
    assert c.slot.row == 1
    assert manager.extent == 2


def test_clean_mode_keeps_leaving_rows(tty_gate, clock):
    manager = RowManager(gate=tty_gate, clean=True)
    a, b, c = make_bars(manager, clock, 'A', 'B', 'C')
    b.close(leave=True)
    assert c.slot.row == 2
    assert manager.extent == 3


def test_rows_are_not_reused(tty_gate, clock):
    manager = RowManager(gate=tty_gate)
    a, b = make_bars(manager, clock, 'A', 'B')
    a.close()
    d, = make_bars(manager, clock, 'D')
    assert d.slot.row == 2
    assert b.slot.row == 1


def test_redraw_moves_cursor_to_the_row(tty_gate, clock):
    manager = RowManager(gate=tty_gate)
    a, b, c = make_bars(manager, clock, 'A', 'B', 'C')
    tty = tty_gate.stream
    tty.seek(0)
    tty.truncate()

    a.update(1)
    output = tty.getvalue()
    assert '\x1b[3A\r\x1b[2K' in output
    assert output.endswith('\r\x1b[3B\x1b[?25h')
    assert 'A:' in output
    assert 'B:' not in output


def test_gate_is_released_after_last_bar(tty_gate, clock):
    manager = RowManager(gate=tty_gate)
    a, b = make_bars(manager, clock, 'A', 'B')
    assert tty_gate.users == 1
    a.close()
    assert tty_gate.users == 1
    b.close()
    assert tty_gate.users == 0
    assert len(manager) == 0


def test_blank_region_is_collapsed(tty_gate, clock):
    manager = RowManager(gate=tty_gate)
    a, b = make_bars(manager, clock, 'A', 'B', leave=False)
    a.close()
    b.close()
    assert tty_gate.stream.getvalue().endswith('\x1b[2A\r\x1b[J')
    assert manager.extent == 0


def test_region_with_kept_rows_is_not_collapsed(tty_gate, clock):
    manager = RowManager(gate=tty_gate)
    a, b = make_bars(manager, clock, 'A', 'B')
    a.close()
    b.close(leave=False)
    assert '\x1b[J' not in tty_gate.stream.getvalue()


def test_manager_is_reusable_after_closing(tty_gate, clock):
    manager = RowManager(gate=tty_gate)
    a, = make_bars(manager, clock, 'A')
    a.close()
    b, = make_bars(manager, clock, 'B')
    assert b.slot.row == 0
    assert tty_gate.users == 1
    manager.close()
    assert b.closed


def test_max_fps_throttles_frames(tty_gate, clock):
    manager = RowManager(gate=tty_gate, max_fps=1)
    a, = make_bars(manager, clock, 'A')
    assert manager.request_redraw(a.slot) is True
    assert manager.request_redraw(a.slot) is False
    assert manager.request_redraw(a.slot, force=True) is True


def test_invalid_max_fps(tty_gate):
    with pytest.raises(ValueError):
        RowManager(gate=tty_gate, max_fps=0)
    manager = RowManager(gate=tty_gate)
    with pytest.raises(ValueError):
        manager.max_fps = -1


def test_manager_gate_mismatch(tty_gate, pipe_gate):
    manager = RowManager(gate=tty_gate)
    with pytest.raises(ValueError):
        manager.create_bar(total=3, gate=pipe_gate)


def test_non_interactive_prints_final_lines_only(pipe_gate, clock):
    manager = RowManager(gate=pipe_gate)
    a, b = make_bars(manager, clock, 'A', 'B')
    for _ in range(10):
        a.update(1)
        b.update(1)
    assert pipe_gate.stream.getvalue() == ''
    a.close()
    b.close(leave=False)
    lines = pipe_gate.stream.getvalue().splitlines()
    assert len(lines) == 1
    assert lines[0].startswith('A: 100.0%')


def test_output_to_terminal_grows_the_region(tty_gate, clock, other_tty):
    manager = RowManager(gate=tty_gate)
    a, = make_bars(manager, clock, 'A')
    tty_gate.emit('one\ntwo\n', stream=other_tty)
    assert manager.extent == 3
    assert a.slot.row == 0

    a.update(1)
    assert '\x1b[3A' in tty_gate.stream.getvalue()


def test_output_to_a_pipe_does_not_move_rows(tty_gate, clock, capsys):
    manager = RowManager(gate=tty_gate)
    a, = make_bars(manager, clock, 'A')
    manager.write('message')
    assert capsys.readouterr().out == 'message\n'
    assert manager.extent == 1


def test_region_taller_than_terminal_is_reanchored(tty, clock, other_tty):
    gate = OutputGate(stream=tty, terminal=Terminal(tty, columns=80, lines=5, interactive=True))
    manager = RowManager(gate=gate)
    a, = make_bars(manager, clock, 'A')
    gate.emit('\n' * 10, stream=other_tty)
    assert manager.extent == 11

    manager.refresh()
    assert manager.extent == 1
    assert a.slot.row == 0


def test_intercept_stdout(tty_gate, clock):
    original = sys.stdout
    manager = RowManager(gate=tty_gate, intercept_stdout=True)
    a, = make_bars(manager, clock, 'A')
    try:
        assert isinstance(sys.stdout, StdProxy)
        assert tty_gate.intercepting
    finally:
        a.close()
    assert sys.stdout is original
    assert not tty_gate.intercepting


def test_width_change_redraws_at_new_width(tty_gate, clock):
    manager = RowManager(gate=tty_gate)
    a, = make_bars(manager, clock, 'A')
    assert display_width(a.slot.line) == 79

    tty_gate.terminal.set_size(columns=40)
    manager.refresh()
    assert display_width(a.slot.line) == 39


def test_long_lines_are_truncated(tty, clock):
    gate = OutputGate(stream=tty, terminal=Terminal(tty, columns=20, lines=24, interactive=True))
    manager = RowManager(gate=gate)
    a, = make_bars(manager, clock, 'x' * 50)
    assert display_width(a.slot.line) == 19


def test_collected_bar_is_deregistered(tty_gate, clock):
    manager = RowManager(gate=tty_gate)
    make_bars(manager, clock, 'A')
    gc.collect()
    assert len(manager) == 0
    assert tty_gate.users == 0


def test_manager_context_closes_bars(tty_gate, clock):
    with RowManager(gate=tty_gate) as manager:
        a, b = make_bars(manager, clock, 'A', 'B')
    assert a.closed and b.closed
    assert tty_gate.users == 0
