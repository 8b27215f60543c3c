import ipaddress
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator
from typing import Any, Dict, List, Optional, Tuple, Union

from .headers import HeaderSet


# Connection / transaction data handed over by the mail server

class Address(BaseModel):
    local_part: str = ""
    domain: str = ""

    def is_null(self) -> bool:
        return not self.local_part and not self.domain

    def address(self) -> str:
        if self.is_null():
            return ""
        if not self.domain:
            return self.local_part
        return f"{self.local_part}@{self.domain}"


class Remote(BaseModel):
    ip: Optional[str] = None
    host: Optional[str] = None
    is_local: Optional[bool] = None
    is_private: Optional[bool] = None

    @model_validator(mode="after")
    def _classify_ip(self):
        # Explicit flags win; otherwise derive them from the address.
        if self.ip and (self.is_local is None or self.is_private is None):
            try:
                addr = ipaddress.ip_address(self.ip)
            except ValueError:
                addr = None
            if self.is_local is None:
                self.is_local = bool(addr and addr.is_loopback)
            if self.is_private is None:
                self.is_private = bool(addr and addr.is_private)
        if self.is_local is None:
            self.is_local = False
        if self.is_private is None:
            self.is_private = False
        return self


class Hello(BaseModel):
    host: Optional[str] = None


class Notes(BaseModel):
    model_config = ConfigDict(extra="allow")

    auth_user: Optional[str] = None


class Tls(BaseModel):
    enabled: bool = False
    cipher: Optional[str] = None
    version: Optional[str] = None


class Transaction(BaseModel):
    uuid: Optional[str] = None
    mail_from: Optional[Address] = None
    rcpt_to: List[Address] = Field(default_factory=list)
    subject: Optional[str] = None
    _header: HeaderSet = PrivateAttr(default_factory=HeaderSet)

    @property
    def header(self) -> HeaderSet:
        return self._header


class Connection(BaseModel):
    remote: Remote = Field(default_factory=Remote)
    hello: Hello = Field(default_factory=Hello)
    relaying: bool = False
    notes: Notes = Field(default_factory=Notes)
    tls: Tls = Field(default_factory=Tls)
    transaction: Transaction = Field(default_factory=Transaction)


# Request metadata sent along with the message

class ScanOptions(BaseModel):
    host: str
    port: int
    path: str = "/checkv2"
    method: str = "POST"
    timeout: float
    headers: Dict[str, Union[str, List[str]]] = Field(default_factory=dict)


# Scanner verdict (/checkv2 reply)

class SymbolMatch(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    name: str
    score: float = 0.0
    description: Optional[str] = None
    options: List[str] = Field(default_factory=list)


class Messages(BaseModel):
    model_config = ConfigDict(extra="allow")

    smtp_message: Optional[str] = None


class MilterHeaders(BaseModel):
    model_config = ConfigDict(extra="ignore")

    add_headers: Dict[str, Any] = Field(default_factory=dict)
    remove_headers: Dict[str, Any] = Field(default_factory=dict)


class Verdict(BaseModel):
    """
    Structured reply of the scanner. `symbols` keeps the order in which the
    scanner listed them; the report header depends on it.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True, allow_inf_nan=False)

    score: float = 0.0
    action: str = "no action"
    symbols: Dict[str, SymbolMatch] = Field(default_factory=dict)
    subject: Optional[str] = None
    messages: Messages = Field(default_factory=Messages)
    milter: Optional[MilterHeaders] = None
    dkim_signature: Optional[Union[str, List[str]]] = Field(default=None, alias="dkim-signature")
    message_id: Optional[str] = Field(default=None, alias="message-id")

    @model_validator(mode="before")
    @classmethod
    def _name_symbols(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("symbols"), dict):
            symbols = {}
            for key, sym in data["symbols"].items():
                if isinstance(sym, dict) and not sym.get("name"):
                    sym = {**sym, "name": key}
                symbols[key] = sym
            data = {**data, "symbols": symbols}
        return data

    @property
    def is_spam(self) -> bool:
        return self.action in ("reject", "rewrite subject", "add header")


# HTTP front

class CheckRequest(BaseModel):
    connection: Connection = Field(default_factory=Connection)
    raw_mime: str = Field(..., description="Complete RFC 822 message as a string")


class CheckResult(BaseModel):
    decision: str
    smtpMessage: Optional[str] = None
    checked: bool
    score: Optional[float] = None
    action: Optional[str] = None
    isSpam: bool = False
    headers: List[Tuple[str, str]]
    removeHeaders: List[str] = Field(default_factory=list)
    processingMs: int
