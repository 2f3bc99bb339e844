from xv6fs.kbd import KEY_DEL, KEY_UP, Keyboard, Modifier


def test_plain_letter():
    assert Keyboard().decode([0x1E]) == [ord("a")]


def test_digits_row():
    assert bytes(Keyboard().decode([0x02, 0x03, 0x0B])) == b"120"


def test_shift_held_and_released():
    kb = Keyboard()
    assert kb.decode([0x2A, 0x1E]) == [ord("A")]
    assert kb.modifiers & Modifier.SHIFT
    assert kb.decode([0xAA, 0x1E]) == [ord("a")]
    assert not kb.modifiers & Modifier.SHIFT


def test_shifted_symbol():
    assert Keyboard().decode([0x36, 0x02]) == [ord("!")]


def test_control_letter():
    kb = Keyboard()
    assert kb.decode([0x1D, 0x19]) == [0x10]
    assert kb.decode([0x9D, 0x19]) == [ord("p")]


def test_control_enter_is_carriage_return():
    assert Keyboard().decode([0x1D, 0x1C]) == [ord("\r")]


def test_capslock_toggles_case():
    kb = Keyboard()
    assert kb.decode([0x3A, 0xBA, 0x1E]) == [ord("A")]
    assert kb.modifiers & Modifier.CAPSLOCK
    assert kb.decode([0x2A, 0x1E, 0xAA]) == [ord("a")]
    assert kb.decode([0x3A, 0xBA, 0x1E]) == [ord("a")]
    assert not kb.modifiers & Modifier.CAPSLOCK


def test_escaped_navigation_keys():
    kb = Keyboard()
    assert kb.decode([0xE0, 0x48]) == [KEY_UP]
    assert kb.decode([0xE0, 0x53]) == [KEY_DEL]
    assert not kb.modifiers & Modifier.E0ESC


def test_keypad_enter_and_divide():
    assert Keyboard().decode([0xE0, 0x1C, 0xE0, 0x35]) == [ord("\n"), ord("/")]


def test_escaped_release_clears_right_control():
    kb = Keyboard()
    assert kb.decode([0xE0, 0x1D]) == []
    assert kb.modifiers & Modifier.CTL
    assert kb.decode([0x19]) == [0x10]
    assert kb.decode([0xE0, 0x9D]) == []
    assert not kb.modifiers & Modifier.CTL
    assert kb.decode([0x19]) == [ord("p")]


def test_releases_and_escapes_produce_nothing():
    kb = Keyboard()
    assert kb.feed(0xE0) == 0
    assert kb.feed(0x9E) == 0
    assert kb.decode([0xE0, 0x9E, 0x9E]) == []


def test_unmapped_key_yields_nothing():
    assert Keyboard().decode([0x3B]) == []