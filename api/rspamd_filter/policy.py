import logging
import math
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Union

from .config import AddHeadersMode, Config
from .headers import HeaderSet
from .models import Connection, Verdict

logger = logging.getLogger(__name__)

SCORE_HEADER = "x-rspamd-score"
BAR_HEADER = "x-rspamd-bar"
REPORT_HEADER = "x-rspamd-report"


class Decision(str, Enum):
    CONTINUE = "continue"
    DENY = "deny"
    DENYSOFT = "denysoft"


def should_check(connection: Connection, cfg: Config) -> bool:
    """
    Decide whether a message is sent to rspamd at all. Authentication and
    relaying take precedence over where the client connects from, and a
    loopback address is judged by check.local_ip even if it is also private.
    """
    if connection.notes.auth_user:
        if not cfg.check.authenticated:
            logger.debug("skipping rspamd: authenticated user %s", connection.notes.auth_user)
        return cfg.check.authenticated
    if connection.relaying:
        if not cfg.check.relay:
            logger.debug("skipping rspamd: relaying")
        return cfg.check.relay
    if connection.remote.is_local:
        if not cfg.check.local_ip:
            logger.debug("skipping rspamd: local IP %s", connection.remote.ip)
        return cfg.check.local_ip
    if connection.remote.is_private:
        if not cfg.check.private_ip:
            logger.debug("skipping rspamd: private IP %s", connection.remote.ip)
        return cfg.check.private_ip
    return True


def _action_of(verdict: Union[Verdict, Mapping[str, Any]]) -> Optional[str]:
    if isinstance(verdict, Mapping):
        return verdict.get("action")
    return getattr(verdict, "action", None)


def wants_headers_added(verdict: Union[Verdict, Mapping[str, Any]], cfg: Config) -> bool:
    mode = cfg.main.add_headers
    if mode == AddHeadersMode.NEVER:
        return False
    if mode == AddHeadersMode.ALWAYS:
        return True
    return _action_of(verdict) == "add header"


def format_score(value: float) -> str:
    # 1.0 -> "1", 1.1 -> "1.1", -1 -> "-1"; nan/inf render as "nan"/"inf"/"-inf",
    # though parsed verdicts never carry them
    value = float(value)
    if math.isfinite(value) and value.is_integer():
        return str(int(value))
    return repr(value)


def add_headers(headerset: HeaderSet, cfg: Config, verdict: Verdict) -> None:
    headerset.add_header(SCORE_HEADER, format_score(verdict.score))

    if cfg.header.bar:
        bar = cfg.spambar.positive if verdict.score > 0 else cfg.spambar.negative
        headerset.add_header(BAR_HEADER, bar)

    if cfg.header.report:
        report = " ".join(
            f"{sym.name}({format_score(sym.score)})" for sym in verdict.symbols.values()
        )
        headerset.add_header(REPORT_HEADER, report)


def add_dkim_header(headerset: HeaderSet, cfg: Config, verdict: Verdict) -> None:
    if not cfg.dkim.enabled or not verdict.dkim_signature:
        return
    signatures = verdict.dkim_signature
    if isinstance(signatures, str):
        signatures = [signatures]
    for sig in signatures:
        headerset.add_header("DKIM-Signature", sig)


def _milter_values(value: Any):
    if isinstance(value, list):
        for item in value:
            yield from _milter_values(item)
    elif isinstance(value, dict):
        if value.get("value") is not None:
            yield str(value["value"])
    elif value is not None:
        yield str(value)


def apply_milter_headers(headerset: HeaderSet, cfg: Config, verdict: Verdict) -> None:
    if not cfg.rmilter_headers.enabled or verdict.milter is None:
        return
    for name in verdict.milter.remove_headers:
        headerset.remove_header(name)
    for name, value in verdict.milter.add_headers.items():
        for v in _milter_values(value):
            headerset.add_header(name, v)


def rewrite_subject(headerset: HeaderSet, cfg: Config, verdict: Verdict,
                    original_subject: Optional[str] = None) -> None:
    if not cfg.rewrite_subject.enabled or verdict.action != "rewrite subject":
        return
    subject = verdict.subject
    if not subject:
        subject = cfg.rewrite_subject.template.replace("%s", original_subject or "")
    headerset.remove_header("Subject")
    headerset.add_header("Subject", subject)


def do_rejects(connection: Connection, cfg: Config, verdict: Verdict) -> Tuple[Decision, Optional[str]]:
    if cfg.soft_reject.enabled and verdict.action == "soft reject":
        return Decision.DENYSOFT, cfg.soft_reject.message

    if verdict.action != "reject":
        return Decision.CONTINUE, None

    trusted = connection.relaying or bool(connection.notes.auth_user)
    if not trusted and not cfg.reject.spam:
        return Decision.CONTINUE, None
    if trusted and not cfg.reject.authenticated:
        return Decision.CONTINUE, None

    message = None
    if cfg.smtp_message.enabled:
        message = verdict.messages.smtp_message
    return Decision.DENY, message or cfg.reject.message


def no_verdict_decision(cfg: Config) -> Tuple[Decision, Optional[str]]:
    if cfg.main.on_error == "defer":
        return Decision.DENYSOFT, cfg.main.error_message
    return Decision.CONTINUE, None
