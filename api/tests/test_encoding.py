from rspamd_filter.encoding import is_ascii, to_ascii


def test_ascii_passes_through():
    assert to_ascii("mail.example.com") == "mail.example.com"
    assert to_ascii("") == ""


def test_punycodes_non_ascii_labels():
    assert to_ascii("münchen.example") == "xn--mnchen-3ya.example"
    assert to_ascii("bücher.example") == "xn--bcher-kva.example"


def test_idempotent():
    once = to_ascii("münchen.example")
    assert to_ascii(once) == once


def test_invalid_input_returned_unchanged():
    # empty label in the middle is rejected by the IDNA codec
    bad = "münchen..example"
    assert to_ascii(bad) == bad
    too_long = "ü" * 80 + ".example"
    assert to_ascii(too_long) == too_long


def test_is_ascii():
    assert is_ascii("sender")
    assert not is_ascii("münchen")


def test_uts46_keeps_sharp_s_and_final_sigma():
    assert to_ascii("straße.de") == "xn--strae-oqa.de"
    assert to_ascii("ς.example").startswith("xn--")
    assert to_ascii("ς.example") != to_ascii("σ.example")
