import logging
import os
from typing import Optional

from dotenv import load_dotenv
from supabase import create_client, Client

from .errors import ConfigError

# Try to import streamlit if available (for st.secrets on Cloud)
try:
    import streamlit as st
except ImportError:
    st = None  # when running plain Python scripts


load_dotenv()

_supabase_client: Optional[Client] = None

# Chart of accounts used by the journal. Active accounts carry a debit balance.
ACCOUNT_NAMES = {
    "62": "Расчёты с покупателями",
    "98": "Доходы будущих периодов",
    "90": "Продажи",
    "51": "Расчётные счета",
}
ACTIVE_ACCOUNTS = frozenset({"62", "51"})

DEFAULT_SUBSCRIPTION_DAYS = 30


def _secret(name: str) -> Optional[str]:
    try:
        if st is not None and hasattr(st, "secrets") and name in st.secrets:
            return st.secrets[name]
    except FileNotFoundError:
        # no secrets.toml locally
        pass
    return None


def get_setting(name: str, default: Optional[str] = None) -> Optional[str]:
    """
    Read a setting:
    - Streamlit Cloud: st.secrets
    - local: environment variables (which come from .env)
    """
    value = _secret(name)
    if value is None:
        value = os.getenv(name)
    return value if value not in (None, "") else default


def receivables_account() -> str:
    return get_setting("PASSPORT_RECEIVABLES_ACCOUNT", "62")


def configure_logging(level: Optional[str] = None) -> None:
    level_name = (level or get_setting("PASSPORT_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def get_supabase_client() -> Client:
    """
    Returns a singleton Supabase client.
    Works both:
    - locally (reads from .env)
    - on Streamlit Cloud (reads from st.secrets)
    """
    global _supabase_client
    if _supabase_client is not None:
        return _supabase_client

    url = get_setting("SUPABASE_URL")
    key = get_setting("SUPABASE_KEY") or get_setting("SUPABASE_ANON_KEY")

    if not url or not key:
        raise ConfigError("Supabase URL/KEY not found. Check .env or Streamlit secrets.")

    _supabase_client = create_client(url, key)
    return _supabase_client
