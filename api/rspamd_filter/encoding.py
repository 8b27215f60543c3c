import logging

import idna

logger = logging.getLogger(__name__)


def is_ascii(value: str) -> bool:
    return value.isascii()


def to_ascii(label: str) -> str:
    """
    Return `label` in its ASCII-compatible form ("münchen.example" ->
    "xn--mnchen-3ya.example", "straße.de" -> "xn--strae-oqa.de"). Pure ASCII
    input is returned as is, so the function is idempotent. If the domain is
    not valid IDNA the original string comes back unchanged.
    """
    if not label or is_ascii(label):
        return label
    try:
        return idna.encode(label, uts46=True).decode("ascii")
    except (idna.IDNAError, UnicodeError) as e:
        logger.info("could not punycode %r, sending it unchanged: %s", label, e)
        return label
