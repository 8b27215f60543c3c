import pytest

from rspamd_filter.config import ENV_OVERRIDES


@pytest.fixture(autouse=True)
def _clean_rspamd_env(monkeypatch):
    for _section, _key, var in ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)
