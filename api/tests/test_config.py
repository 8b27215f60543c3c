import pytest
from pydantic import ValidationError

from rspamd_filter.config import AddHeadersMode, load_config


def test_defaults():
    cfg = load_config()
    assert cfg.main.host == "localhost"
    assert cfg.main.port == 11333
    assert cfg.main.add_headers == AddHeadersMode.SOMETIMES
    assert cfg.reject.spam is True
    assert cfg.header.bar is True
    assert cfg.check.relay is False


def test_string_values_are_coerced():
    cfg = load_config({"check": {"relay": "true", "local_ip": "0"}, "main": {"timeout": "10"}})
    assert cfg.check.relay is True
    assert cfg.check.local_ip is False
    assert cfg.main.timeout == 10.0


def test_invalid_add_headers_rejected():
    with pytest.raises(ValidationError):
        load_config({"main": {"add_headers": "maybe"}})


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("RSPAMD_HOST", "scanner")
    monkeypatch.setenv("RSPAMD_ADD_HEADERS", "always")
    cfg = load_config({"main": {"host": "localhost", "add_headers": "never"}})
    assert cfg.main.host == "scanner"
    assert cfg.main.add_headers == AddHeadersMode.ALWAYS


def test_config_is_frozen():
    cfg = load_config()
    with pytest.raises(ValidationError):
        cfg.main.host = "other"


def test_section_environment_overrides(monkeypatch):
    monkeypatch.setenv("RSPAMD_CHECK_RELAY", "true")
    monkeypatch.setenv("RSPAMD_REJECT_SPAM", "false")
    monkeypatch.setenv("RSPAMD_HEADER_BAR", "0")
    monkeypatch.setenv("RSPAMD_MAIN_ON_ERROR", "defer")
    cfg = load_config()
    assert cfg.check.relay is True
    assert cfg.reject.spam is False
    assert cfg.header.bar is False
    assert cfg.main.on_error == "defer"


def test_full_name_wins_over_shortcut(monkeypatch):
    monkeypatch.setenv("RSPAMD_HOST", "short")
    monkeypatch.setenv("RSPAMD_MAIN_HOST", "long")
    assert load_config().main.host == "long"
