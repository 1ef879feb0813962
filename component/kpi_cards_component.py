# component/kpi_cards_component.py
from html import escape
from typing import Optional, Sequence

import streamlit as st

from ui.theme import COLORS, STATUS_STYLE


def inject_kpi_cards_css() -> None:
    """
    Card styling for the dashboard KPI grid.
    Safe to call multiple times.
    """
    st.markdown(
        f"""
        <style>
        .pp-kpi {{
          background: {COLORS.card_bg};
          border: 1px solid {COLORS.border};
          border-radius: 12px;
          padding: 14px 16px;
          margin-bottom: 12px;
          min-height: 112px;
        }}
        .pp-kpi-label {{
          font-size: 12px;
          line-height: 16px;
          font-weight: 500;
          color: {COLORS.text_muted};
          margin: 0 0 6px 0;
        }}
        .pp-kpi-value {{
          font-size: 20px;
          line-height: 26px;
          font-weight: 600;
          color: {COLORS.text_h1};
          margin: 0;
        }}
        .pp-kpi-desc {{
          font-size: 12px;
          line-height: 16px;
          color: {COLORS.text_muted};
          margin: 6px 0 0 0;
        }}
        </style>
        """,
        unsafe_allow_html=True,
    )


def _card_html(title: str, value: str, desc: str = "", status: Optional[str] = None) -> str:
    style = ""
    if status in STATUS_STYLE:
        bg, fg = STATUS_STYLE[status]
        style = f' style="background:{bg};border-color:{fg}33"'
    desc_html = f'<p class="pp-kpi-desc">{escape(desc)}</p>' if desc else ""
    return (
        f'<div class="pp-kpi"{style}>'
        f'<p class="pp-kpi-label">{escape(title)}</p>'
        f'<p class="pp-kpi-value">{escape(value)}</p>'
        f"{desc_html}"
        f"</div>"
    )


def render_kpi_cards(items: Sequence[dict], cols: int = 4) -> None:
    """
    items: [{"title": ..., "value": ..., "desc": ..., "status": "green" | "yellow" | "red" | None}]
    """
    columns = st.columns(cols, gap="small")
    for i, item in enumerate(items):
        with columns[i % cols]:
            st.markdown(
                _card_html(item["title"], item["value"], item.get("desc", ""), item.get("status")),
                unsafe_allow_html=True,
            )
