# component/feedback_component.py
"""
Screen-local error banner and the two-step confirmation used before destructive writes.

Both live in st.session_state under a per-screen key so a message raised on one screen
never shows up on another.
"""
from typing import Any, Dict, Optional

import streamlit as st


def _error_key(screen: str) -> str:
    return f"pp_error_{screen}"


def _confirm_key(screen: str) -> str:
    return f"pp_confirm_{screen}"


# ---------- error banner ----------

def set_error(screen: str, message: str) -> None:
    st.session_state[_error_key(screen)] = message


def clear_error(screen: str) -> None:
    st.session_state.pop(_error_key(screen), None)


def get_error(screen: str) -> Optional[str]:
    return st.session_state.get(_error_key(screen))


def render_error_banner(screen: str) -> None:
    message = get_error(screen)
    if not message:
        return
    col_msg, col_btn = st.columns([12, 1])
    with col_msg:
        st.error(message)
    with col_btn:
        st.button("✕", key=f"{_error_key(screen)}_dismiss", on_click=clear_error, args=(screen,), help="Скрыть")


# ---------- confirmation ----------

def request_confirmation(screen: str, action: str, message: str, payload: Optional[Dict[str, Any]] = None) -> None:
    """Remember a pending action; the next render shows the Да / Отмена step."""
    st.session_state[_confirm_key(screen)] = {
        "action": action,
        "message": message,
        "payload": dict(payload or {}),
    }


def cancel_confirmation(screen: str) -> None:
    st.session_state.pop(_confirm_key(screen), None)


def pending_confirmation(screen: str) -> Optional[Dict[str, Any]]:
    return st.session_state.get(_confirm_key(screen))


def render_confirmation(screen: str) -> Optional[Dict[str, Any]]:
    """
    Draw the pending confirmation, if any. Returns the pending dict once the user presses
    «Да» (and forgets it), otherwise None.
    """
    pending = pending_confirmation(screen)
    if not pending:
        return None

    with st.container(border=True):
        st.warning(pending["message"])
        col_yes, col_no, _ = st.columns([1, 1, 6])
        confirmed = col_yes.button("Да", key=f"{_confirm_key(screen)}_yes", type="primary")
        col_no.button("Отмена", key=f"{_confirm_key(screen)}_no", on_click=cancel_confirmation, args=(screen,))

    if confirmed:
        cancel_confirmation(screen)
        return pending
    return None
