# ui/styles.py
from html import escape

import streamlit as st

from ui.theme import COLORS, LAYOUT


def inject_global_passport_styles():
    st.markdown(
        f"""
        <style>
        /* ===============================
           Page canvas (GLOBAL)
           =============================== */

        div[data-testid="stAppViewContainer"],
        div[data-testid="stMain"] {{
          background: {COLORS.app_bg} !important;
        }}

        div.block-container {{
          max-width: {LAYOUT.max_width_px}px !important;
          padding-top: 24px !important;
          padding-bottom: 48px !important;
        }}

        /* ===============================
           Page header (GLOBAL)
           =============================== */

        .pp-page-header {{
          margin: 0 0 24px 0;
        }}

        .pp-h1 {{
          font-size: 20px;
          line-height: 28px;
          font-weight: 600;
          color: {COLORS.text_h1};
          margin: 0 0 6px 0;
        }}

        .pp-sub {{
          font-size: 14px;
          line-height: 22px;
          font-weight: 400;
          color: {COLORS.text_muted};
          margin: 0;
        }}

        .pp-breadcrumbs {{
          font-size: 12px;
          color: {COLORS.text_muted};
          margin-bottom: 4px;
        }}

        /* ===============================
           Section titles
           =============================== */

        .pp-section-title {{
          font-size: 16px;
          line-height: 24px;
          font-weight: 600;
          color: {COLORS.text_h2};
          margin: 16px 0 8px 0;
        }}

        .pp-section-sub {{
          font-size: 12px;
          line-height: 18px;
          color: {COLORS.text_muted};
          margin: 0 0 12px 0;
        }}

        /* Tighten metric cards */
        div[data-testid="stMetric"] {{
          padding: 0.5rem 0.75rem;
        }}
        </style>
        """,
        unsafe_allow_html=True,
    )


def section_title(title: str, subtitle: str = "") -> None:
    st.markdown(f'<div class="pp-section-title">{escape(title)}</div>', unsafe_allow_html=True)
    if subtitle:
        st.markdown(f'<div class="pp-section-sub">{escape(subtitle)}</div>', unsafe_allow_html=True)
