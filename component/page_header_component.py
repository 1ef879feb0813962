# component/page_header_component.py
from html import escape
from typing import Optional, Sequence

import streamlit as st


def render_page_header(data: dict) -> None:
    """
    data: {"title": ..., "subtitle": ..., "breadcrumbs": ["Главная", "Клиенты", ...]}
    Every piece is user text (client names) and is escaped before it goes into the markup.
    """
    title = escape(str((data or {}).get("title") or ""))
    subtitle = escape(str((data or {}).get("subtitle") or ""))
    crumbs: Optional[Sequence[str]] = (data or {}).get("breadcrumbs")

    crumbs_html = ""
    if crumbs:
        crumbs_html = f'<div class="pp-breadcrumbs">{" / ".join(escape(str(c)) for c in crumbs)}</div>'

    st.markdown(
        f"""
        <div class="pp-page-header">
          {crumbs_html}
          <div class="pp-h1">{title}</div>
          <div class="pp-sub">{subtitle}</div>
        </div>
        """,
        unsafe_allow_html=True,
    )
