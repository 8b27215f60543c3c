import os
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class AddHeadersMode(str, Enum):
    ALWAYS = "always"
    NEVER = "never"
    SOMETIMES = "sometimes"


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class MainSection(_Section):
    host: str = "localhost"
    port: int = 11333
    timeout: float = 29.0
    add_headers: AddHeadersMode = AddHeadersMode.SOMETIMES
    # what to do when no verdict could be obtained
    on_error: Literal["accept", "defer"] = "accept"
    error_message: str = "Message scanning temporarily unavailable"


class CheckSection(_Section):
    authenticated: bool = False
    relay: bool = False
    local_ip: bool = False
    private_ip: bool = False


class RejectSection(_Section):
    spam: bool = True
    authenticated: bool = False
    message: str = "Detected as spam"


class SoftRejectSection(_Section):
    enabled: bool = True
    message: str = "Deferred by policy"


class ToggleSection(_Section):
    enabled: bool = True


class DkimSection(_Section):
    enabled: bool = False


class HeaderSection(_Section):
    bar: bool = True
    report: bool = True


class SpambarSection(_Section):
    positive: str = "+"
    negative: str = "-"


class RewriteSubjectSection(_Section):
    enabled: bool = False
    template: str = "[SPAM] %s"


class Config(_Section):
    main: MainSection = Field(default_factory=MainSection)
    check: CheckSection = Field(default_factory=CheckSection)
    reject: RejectSection = Field(default_factory=RejectSection)
    soft_reject: SoftRejectSection = Field(default_factory=SoftRejectSection)
    smtp_message: ToggleSection = Field(default_factory=ToggleSection)
    rmilter_headers: ToggleSection = Field(default_factory=ToggleSection)
    dkim: DkimSection = Field(default_factory=DkimSection)
    header: HeaderSection = Field(default_factory=HeaderSection)
    spambar: SpambarSection = Field(default_factory=SpambarSection)
    rewrite_subject: RewriteSubjectSection = Field(default_factory=RewriteSubjectSection)


# Short names kept for the common connection settings
_MAIN_SHORTCUTS = {
    "host": "RSPAMD_HOST",
    "port": "RSPAMD_PORT",
    "timeout": "RSPAMD_TIMEOUT",
    "add_headers": "RSPAMD_ADD_HEADERS",
}


def _env_overrides() -> List[Tuple[str, str, str]]:
    """(section, key, variable) triples; later entries win."""
    overrides = [("main", key, var) for key, var in _MAIN_SHORTCUTS.items()]
    for section, section_field in Config.model_fields.items():
        for key in section_field.annotation.model_fields:
            overrides.append((section, key, f"RSPAMD_{section}_{key}".upper()))
    return overrides


# e.g. RSPAMD_CHECK_RELAY=true, RSPAMD_REJECT_SPAM=false, RSPAMD_HEADER_BAR=0
ENV_OVERRIDES = _env_overrides()


def load_config(mapping: Optional[Mapping[str, Mapping[str, Any]]] = None) -> Config:
    """
    Build the validated configuration from an already parsed mapping of
    sections (string values such as "true" or "29" are coerced), with
    RSPAMD_* environment variables taking precedence.
    Raises pydantic.ValidationError on invalid values.
    """
    data: Dict[str, Dict[str, Any]] = {
        section: dict(values or {}) for section, values in (mapping or {}).items()
    }
    for section, key, var in ENV_OVERRIDES:
        value = os.getenv(var)
        if value:
            data.setdefault(section, {})[key] = value
    return Config.model_validate(data)
