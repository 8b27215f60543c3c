"""
Request metadata for the rspamd /checkv2 call.

rspamd takes the SMTP envelope as HTTP headers (Helo, From, Rcpt, IP, ...).
Header values have to be ASCII, so HELO names and sender domains are
punycoded and a non-ASCII sender local part is replaced by a fixed marker.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from .config import Config
from .encoding import is_ascii, to_ascii
from .models import Address, Connection, ScanOptions

UTF8_LOCAL_PART = "utf8-local-part"

_LINE_BREAKS = re.compile(r"[\r\n]+")


@dataclass(frozen=True)
class AsciiLocalPart:
    value: str


@dataclass(frozen=True)
class NonAsciiLocalPart:
    pass


LocalPart = Union[AsciiLocalPart, NonAsciiLocalPart]


def classify_local_part(local_part: str) -> LocalPart:
    if is_ascii(local_part):
        return AsciiLocalPart(local_part)
    return NonAsciiLocalPart()


def render_sender(address: Optional[Address]) -> Optional[str]:
    """MAIL FROM as sent to rspamd, or None for a missing/null sender."""
    if address is None or address.is_null():
        return None
    local = classify_local_part(address.local_part)
    if isinstance(local, NonAsciiLocalPart):
        local_text = UTF8_LOCAL_PART
    else:
        local_text = local.value
    if not address.domain:
        return local_text
    return f"{local_text}@{to_ascii(address.domain)}"


def get_options(connection: Connection, cfg: Optional[Config] = None) -> ScanOptions:
    cfg = cfg or Config()
    headers: Dict[str, Union[str, List[str]]] = {}

    if connection.notes.auth_user:
        headers["User"] = connection.notes.auth_user
    if connection.remote.ip:
        headers["IP"] = connection.remote.ip
    if connection.remote.host:
        headers["Hostname"] = connection.remote.host
    if connection.hello.host:
        headers["Helo"] = to_ascii(connection.hello.host)

    if connection.tls.enabled:
        if connection.tls.cipher:
            headers["TLS-Cipher"] = connection.tls.cipher
        if connection.tls.version:
            headers["TLS-Version"] = connection.tls.version

    txn = connection.transaction
    sender = render_sender(txn.mail_from)
    if sender:
        headers["From"] = sender

    rcpts = [r.address() for r in txn.rcpt_to if not r.is_null()]
    if rcpts:
        headers["Rcpt"] = rcpts
        if len(rcpts) == 1:
            headers["Deliver-To"] = rcpts[0]

    if txn.uuid:
        headers["Queue-Id"] = txn.uuid
    if txn.subject:
        headers["Subject"] = txn.subject

    return ScanOptions(
        host=cfg.main.host,
        port=cfg.main.port,
        timeout=cfg.main.timeout,
        headers={name: _single_line(value) for name, value in headers.items()},
    )


def _single_line(value: Union[str, List[str]]) -> Union[str, List[str]]:
    # values come from the SMTP session; a line break would start a new header
    if isinstance(value, list):
        return [_single_line(v) for v in value]
    return _LINE_BREAKS.sub(" ", value).strip()
