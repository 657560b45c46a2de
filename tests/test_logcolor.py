import enum

from imkit.logcolor import Color, Slice, align_message, level_color


def test_color_values_follow_ansi_order():
    codes = [c.add("x") for c in Color]
    assert codes == [f"\x1b[{n}mx\x1b[0m" for n in range(30, 38)]
    assert Color.BLACK.add("x") == "\x1b[30mx\x1b[0m"


def test_add_wraps_with_escape_codes():
    text = Color.RED.add("hello")
    assert text.startswith("\x1b[" + str(Color.RED.value) + "m")
    assert text.endswith("\x1b[0m")
    assert "hello" in text


def test_level_color_by_name():
    assert level_color("debug") is Color.WHITE
    assert level_color("INFO") is Color.BLUE
    assert level_color("warn") is Color.YELLOW
    assert level_color("error") is Color.RED
    assert level_color("fatal") is Color.RED


def test_level_color_by_enum_member():
    class Lvl(enum.Enum):
        PANIC = 1

    assert level_color(Lvl.PANIC) is Color.RED


def test_level_color_unknown():
    assert level_color("verbose") is None
    assert level_color(7) is None


def test_slice_short_is_unchanged():
    s = Slice(range(5))
    assert s.format() == list(range(5))


def test_slice_long_is_cut_to_thirty():
    s = Slice(range(100))
    out = s.format()
    assert len(out) == 30
    assert out == list(range(30))


def test_slice_exactly_thirty():
    s = Slice(range(30))
    assert s.format() == list(range(30))


def test_align_pads_short_messages():
    out = align_message("hi")
    assert len(out) == 50
    assert out.rstrip() == "hi"


def test_align_keeps_long_messages():
    msg = "x" * 70
    assert align_message(msg) == msg