from blockfs.keyboard import KEY_UP, Keyboard, ctrl


def test_plain_letters():
    assert Keyboard().decode([0x23, 0x12, 0x26, 0x26, 0x18]) == "hello"


def test_shift_press_and_release():
    kb = Keyboard()
    assert kb.decode([0x2A, 0x1E, 0xAA, 0x1E]) == "Aa"


def test_capslock_toggles():
    kb = Keyboard()
    assert kb.decode([0x3A, 0x1E, 0x2A, 0x1E]) == "Aa"
    assert kb.decode([0xAA, 0x3A, 0x1E]) == "a"


def test_control_key():
    kb = Keyboard()
    assert kb.feed(0x1D) == 0
    assert kb.feed(0x1E) == ctrl("A")


def test_escaped_arrow():
    kb = Keyboard()
    assert kb.feed(0xE0) == 0
    assert kb.feed(0x48) == KEY_UP


def test_release_returns_nothing():
    kb = Keyboard()
    kb.feed(0x1E)
    assert kb.feed(0x9E) == 0