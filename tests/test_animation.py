import pytest

from pacebar import Animation, Colors, ColourSampler, LinearGradient, Spinner
from pacebar._terminal import display_width, truncate
from pacebar.animation import colourise, parse_colour, render_meter


def test_meter_whole_cells():
    assert render_meter(0.4, 10) == ('████', ' ' * 6)


def test_meter_partial_cell():
    filled, empty = render_meter(0.45, 10)
    assert filled == '████▌'
    assert empty == ' ' * 5


def test_meter_full_and_empty():
    assert render_meter(1.0, 5) == ('█████', '')
    assert render_meter(0.0, 5) == ('', ' ' * 5)
    assert render_meter(0.5, 0) == ('', '')


def test_meter_overshoot():
    assert render_meter(1.2, 10) == ('█' * 10, '')
    filled, empty = render_meter(1.2, 10, clamp=False)
    assert filled == '█' * 12
    assert empty == ''


def test_meter_ascii_charset():
    assert render_meter(0.5, 10, Animation.ASCII) == ('#####', ' ' * 5)
    assert render_meter(0.55, 10, Animation.ASCII) == ('#####5', ' ' * 4)


def test_meter_classic_and_arrow():
    assert render_meter(0.5, 4, Animation.CLASSIC) == ('##', '..')
    assert render_meter(0.5, 4, Animation.ARROW) == ('==>', ' ')
    assert render_meter(1.0, 4, Animation.ARROW) == ('====', '')


def test_meter_custom_fill():
    assert render_meter(0.25, 4, Animation.CLASSIC, fill='-') == ('#', '---')


def test_meter_custom_charset():
    assert render_meter(0.3, 4, charset='⣀⣄⣆⣇⣧⣷⣿') == ('⣿⣀', '  ')
    assert render_meter(1.0, 4, charset='⣀⣄⣆⣇⣧⣷⣿') == ('⣿⣿⣿⣿', '')
    # A custom charset replaces the style's glyphs
    assert render_meter(0.5, 4, Animation.CLASSIC, charset='-=') == ('==', '..')
    assert render_meter(0.375, 4, Animation.ARROW, charset='-=') == ('=-', '  ')


def test_animation_brackets():
    assert Animation.TQDM.brackets == ('|', '|')
    assert Animation.CLASSIC.brackets == ('[', ']')


def test_spinner_frame_follows_elapsed_time():
    spinner = Spinner(frames=['a', 'b', 'c'], interval=0.5)
    assert spinner.frame_at(0) == 'a'
    assert spinner.frame_at(1.0) == 'c'
    assert spinner.frame_at(1.5) == 'a'
    assert spinner.frame_at(-3) == 'a'


def test_spinner_styles():
    assert Spinner('snake', use_unicode=True).frames == Spinner.FRAMES_SNAKE
    assert Spinner('dots', use_unicode=False).frames == Spinner.FRAMES_SPINNER


@pytest.mark.parametrize('kwargs', [
    {'style': 'wobble', 'use_unicode': True},
    {'interval': 0},
    {'frames': []},
])
def test_spinner_rejects_bad_arguments(kwargs):
    with pytest.raises(ValueError):
        Spinner(**kwargs)


def test_gradient_interpolates():
    gradient = LinearGradient((0, 0, 0), (255, 255, 255))
    assert gradient.sample(0.0) == (0, 0, 0)
    assert gradient.sample(0.5) == (128, 128, 128)
    assert gradient.sample(2.0) == (255, 255, 255)
    assert isinstance(gradient, ColourSampler)


def test_gradient_with_three_stops():
    gradient = LinearGradient.from_hex('#ff0000', '#00ff00', '#0000ff')
    assert gradient.sample(0.5) == (0, 255, 0)
    assert gradient.sample(0.75) == (0, 128, 128)


def test_gradient_rejects_bad_stops():
    with pytest.raises(ValueError):
        LinearGradient()
    with pytest.raises(ValueError):
        LinearGradient((0, 0, 300))


def test_parse_colour():
    assert parse_colour('green') == Colors.GREEN
    assert parse_colour('Bright Red') == Colors.BRIGHT_RED
    assert parse_colour('#ff8000') == Colors.rgb(255, 128, 0)
    assert parse_colour(None) == ''
    with pytest.raises(ValueError):
        parse_colour('chartreuse-ish')


def test_colourise():
    assert colourise('ab', Colors.RED) == '\x1b[31mab\x1b[0m'
    assert colourise('ab', '') == 'ab'
    assert colourise('', Colors.RED) == ''


def test_display_width():
    assert display_width('abc') == 3
    assert display_width('日本') == 4
    assert display_width('\x1b[31mab\x1b[0m') == 2


def test_truncate_keeps_escape_codes():
    assert truncate('abc', 5) == 'abc'
    assert truncate('abcdef', 3) == 'abc'
    assert truncate('\x1b[31mabcdef\x1b[0m', 3) == '\x1b[31mabc\x1b[0m'
    assert truncate('日本語', 3) == '日'
