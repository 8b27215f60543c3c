import json
import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, Union

import httpx
from pydantic import ValidationError

from .config import Config
from .models import Connection, ScanOptions, Verdict
from .options import get_options
from .policy import (
    Decision,
    add_dkim_header,
    add_headers,
    apply_milter_headers,
    do_rejects,
    no_verdict_decision,
    rewrite_subject,
    should_check,
    wants_headers_added,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192

# a reply with none of these is not a verdict
VERDICT_FIELDS = frozenset(("score", "action", "symbols"))


def parse_response(raw: Union[str, bytes, None]) -> Optional[Verdict]:
    """
    Turn the /checkv2 reply body into a Verdict. Anything that is not a
    usable verdict (empty body, bad or too deeply nested JSON, empty object,
    error reply, no verdict fields, wrong field types) gives None.
    """
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not raw.strip():
        return None

    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as e:
        logger.info("rspamd reply is not JSON: %s", e)
        return None

    if not isinstance(data, dict) or not data:
        return None
    if data.keys().isdisjoint(VERDICT_FIELDS):
        if "error" in data:
            logger.warning("rspamd error: %s", data["error"])
        else:
            logger.info("rspamd reply has no verdict fields: %s", sorted(data))
        return None

    try:
        return Verdict.model_validate(data)
    except ValidationError as e:
        logger.info("rspamd reply not understood: %s", e)
        return None


def request_headers(options: ScanOptions) -> List[Tuple[str, bytes]]:
    """Protocol headers for the request; list values become repeated headers."""
    headers = []
    for name, value in options.headers.items():
        values = value if isinstance(value, list) else [value]
        for v in values:
            headers.append((name, v.encode("utf-8")))
    return headers


def _iter_chunks(message: Union[bytes, str, Iterable[bytes]]) -> Iterable[bytes]:
    if isinstance(message, str):
        message = message.encode("utf-8", errors="surrogateescape")
    if isinstance(message, (bytes, bytearray)):
        for idx in range(0, len(message), CHUNK_SIZE):
            yield bytes(message[idx:idx + CHUNK_SIZE])
    else:
        for chunk in message:
            if chunk:
                yield chunk


def stream_to_rspamd(options: ScanOptions, message: Union[bytes, str, Iterable[bytes]],
                     client: Optional[httpx.Client] = None) -> str:
    """
    POST the message to rspamd, streamed with chunked transfer encoding, and
    return the complete reply body. Failures are logged and give "".
    """
    url = f"http://{options.host}:{options.port}{options.path}"
    owned = client is None
    if owned:
        client = httpx.Client(timeout=options.timeout)
    try:
        resp = client.request(
            options.method,
            url,
            content=_iter_chunks(message),
            headers=request_headers(options),
            timeout=options.timeout,
        )
    except httpx.HTTPError as e:
        logger.warning("rspamd %s request failed: %s", url, e)
        return ""
    finally:
        if owned:
            client.close()

    if not resp.is_success:
        logger.warning("rspamd %s returned HTTP %s", url, resp.status_code)
        return ""
    return resp.text


@dataclass
class ScanOutcome:
    decision: Decision
    smtp_message: Optional[str] = None
    checked: bool = False
    verdict: Optional[Verdict] = None
    headers: List[Tuple[str, str]] = field(default_factory=list)
    removed_headers: List[str] = field(default_factory=list)


def check_message(connection: Connection, message: Union[bytes, str, Iterable[bytes]],
                  cfg: Config) -> ScanOutcome:
    """
    Scan one message: decide whether to scan, submit it, interpret the
    verdict and annotate connection.transaction.header. Scanner trouble
    never raises; it ends in the configured no-verdict decision.
    """
    headerset = connection.transaction.header
    if not should_check(connection, cfg):
        return ScanOutcome(decision=Decision.CONTINUE)

    options = get_options(connection, cfg)
    start = time.time()
    raw = stream_to_rspamd(options, message)
    verdict = parse_response(raw)
    elapsed_ms = int((time.time() - start) * 1000)

    if verdict is None:
        decision, smtp_message = no_verdict_decision(cfg)
        logger.info("rspamd: no verdict after %sms, %s", elapsed_ms, decision.value)
        return ScanOutcome(decision=decision, smtp_message=smtp_message, checked=True)

    logger.info(
        "rspamd: message-id=%s score=%s action=%s symbols=%d time=%sms",
        verdict.message_id, verdict.score, verdict.action, len(verdict.symbols), elapsed_ms,
    )

    add_dkim_header(headerset, cfg, verdict)
    apply_milter_headers(headerset, cfg, verdict)
    rewrite_subject(headerset, cfg, verdict, connection.transaction.subject)
    if wants_headers_added(verdict, cfg):
        add_headers(headerset, cfg, verdict)

    decision, smtp_message = do_rejects(connection, cfg, verdict)
    return ScanOutcome(
        decision=decision,
        smtp_message=smtp_message,
        checked=True,
        verdict=verdict,
        headers=headerset.lines(),
        removed_headers=headerset.removed_headers(),
    )
