"""
Settings lookup tests.
"""
import pytest

from passport_engine import config
from passport_engine.errors import ConfigError


@pytest.fixture(autouse=True)
def no_secrets(monkeypatch):
    monkeypatch.setattr(config, "_secret", lambda name: None)
    monkeypatch.setattr(config, "_supabase_client", None)


def test_setting_from_environment(monkeypatch):
    monkeypatch.setenv("PASSPORT_RECEIVABLES_ACCOUNT", "76")
    assert config.receivables_account() == "76"


def test_empty_value_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("PASSPORT_RECEIVABLES_ACCOUNT", "")
    assert config.receivables_account() == "62"


def test_missing_credentials(monkeypatch):
    for name in ("SUPABASE_URL", "SUPABASE_KEY", "SUPABASE_ANON_KEY"):
        monkeypatch.delenv(name, raising=False)
    with pytest.raises(ConfigError):
        config.get_supabase_client()
