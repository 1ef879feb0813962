# ui/plotly_charts.py

from __future__ import annotations

from typing import List, Optional, Tuple

import pandas as pd
import plotly.graph_objects as go

from ui.formatting import format_week
from ui.theme import CHART, COLORS

# ---------- Minimal Plotly config ----------
PLOTLY_CONFIG_MINIMAL = {
    "displayModeBar": False,
    "scrollZoom": False,
    "doubleClick": "reset",
    "responsive": True,
}

CHURN_REFERENCE_PCT = 5


# ---------- Theme ----------
def apply_passport_plotly_theme(fig: go.Figure) -> go.Figure:
    fig.update_layout(
        font=dict(family="Inter, system-ui, -apple-system, Segoe UI, Roboto, Arial", size=12, color=COLORS.text_h2),
        paper_bgcolor=COLORS.app_bg,
        plot_bgcolor=COLORS.card_bg,
        margin=dict(l=10, r=10, t=35, b=10),
        legend=dict(
            orientation="h",
            yanchor="bottom",
            y=1.02,
            xanchor="left",
            x=0.0,
            font=dict(size=12, color=COLORS.text_muted),
        ),
        hoverlabel=dict(font=dict(size=12)),
    )
    fig.update_xaxes(
        showgrid=False,
        zeroline=False,
        tickfont=dict(color=COLORS.text_muted),
        linecolor=COLORS.border,
    )
    fig.update_yaxes(
        showgrid=True,
        gridcolor="#EEF2F7",
        zeroline=False,
        tickfont=dict(color=COLORS.text_muted),
        linecolor=COLORS.border,
    )
    return fig


def _money_hover(label: str) -> str:
    # d3 format inside hovertemplate; ru locale separators are not available here
    return f"{label}<br>%{{x}}<br>%{{y:,.0f}} ₽<extra></extra>"


def _window(df: pd.DataFrame, window: Optional[Tuple[int, int]]) -> pd.DataFrame:
    if window is None:
        return df
    start, end = window
    return df.iloc[start:end]


def _current_week_marker(fig: go.Figure, df: pd.DataFrame) -> None:
    hits = df[df["is_current"]]
    if hits.empty:
        return
    fig.add_vline(
        x=format_week(hits["week"].iloc[0]),
        line_width=1,
        line_dash="dot",
        line_color=CHART.current_outline,
    )


# ---------- Weekly charges (client card) ----------
def fig_weekly_charges(
    frame: pd.DataFrame,
    services: List[str],
    window: Optional[Tuple[int, int]] = None,
    by_service: bool = False,
) -> go.Figure:
    """
    Stacked weekly bars. Default: paid / unpaid part of each week's allocation, future weeks
    greyed out. With by_service=True one stacked trace per service instead.
    """
    if frame is None or frame.empty:
        return go.Figure()

    df = _window(frame, window).copy()
    x = df["week"].map(format_week)
    fig = go.Figure()

    if by_service:
        for i, name in enumerate(services):
            fig.add_trace(go.Bar(
                name=name,
                x=x,
                y=df[name],
                marker_color=CHART.services[i % len(CHART.services)],
                hovertemplate=_money_hover(name),
            ))
    else:
        unpaid = (df["total"] - df["paid"]).clip(lower=0.0)
        unpaid_colors = [CHART.future if f else CHART.unpaid for f in df["is_future"]]
        fig.add_trace(go.Bar(
            name="Оплачено",
            x=x,
            y=df["paid"],
            marker_color=CHART.paid,
            hovertemplate=_money_hover("Оплачено"),
        ))
        fig.add_trace(go.Bar(
            name="Не оплачено",
            x=x,
            y=unpaid,
            marker_color=unpaid_colors,
            hovertemplate=_money_hover("Не оплачено"),
        ))

    _current_week_marker(fig, df)
    fig.update_layout(barmode="stack", bargap=0.15, yaxis=dict(title="₽ за неделю"))
    return apply_passport_plotly_theme(fig)


# ---------- Weekly served clients (dashboard) ----------
def fig_weekly_clients(frame: pd.DataFrame, window: Optional[Tuple[int, int]] = None) -> go.Figure:
    if frame is None or frame.empty:
        return go.Figure()

    df = _window(frame, window)
    fig = go.Figure()
    fig.add_trace(go.Bar(
        name="Клиенты",
        x=df["week"].map(format_week),
        y=df["clients"],
        marker_color=CHART.clients,
        hovertemplate="Неделя с %{x}<br>Клиентов: %{y}<extra></extra>",
    ))
    _current_week_marker(fig, df)
    fig.update_layout(showlegend=False, yaxis=dict(title="Клиентов", rangemode="tozero"))
    return apply_passport_plotly_theme(fig)


# ---------- MRR by month ----------
def fig_mrr_by_month(mrr_df: pd.DataFrame) -> go.Figure:
    if mrr_df is None or mrr_df.empty:
        return go.Figure()

    fig = go.Figure()
    fig.add_trace(go.Bar(
        name="MRR",
        x=mrr_df["label"],
        y=mrr_df["mrr"],
        marker_color=CHART.mrr,
        hovertemplate=_money_hover("MRR"),
    ))
    fig.update_layout(showlegend=False, yaxis=dict(title="MRR, ₽"))
    return apply_passport_plotly_theme(fig)


# ---------- Churn ----------
def fig_churn_rate(churn_df: pd.DataFrame) -> go.Figure:
    if churn_df is None or churn_df.empty:
        return go.Figure()

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        name="Churn rate",
        x=churn_df["label"],
        y=churn_df["churn_rate"],
        mode="lines+markers",
        line=dict(color=CHART.churn),
        hovertemplate="Churn<br>%{x}<br>%{y:.1f}%<extra></extra>",
    ))
    fig.add_hline(
        y=CHURN_REFERENCE_PCT,
        line_dash="dash",
        line_color=CHART.churn_reference,
        annotation_text=f"{CHURN_REFERENCE_PCT}%",
        annotation_position="top left",
    )
    fig.update_layout(showlegend=False, yaxis=dict(title="%", rangemode="tozero"))
    return apply_passport_plotly_theme(fig)


def fig_new_vs_churned(churn_df: pd.DataFrame) -> go.Figure:
    if churn_df is None or churn_df.empty:
        return go.Figure()

    fig = go.Figure()
    fig.add_trace(go.Bar(
        name="Новые",
        x=churn_df["label"],
        y=churn_df["new_clients"],
        marker_color=CHART.new_clients,
        hovertemplate="Новые<br>%{x}<br>%{y}<extra></extra>",
    ))
    fig.add_trace(go.Bar(
        name="Ушедшие",
        x=churn_df["label"],
        y=churn_df["churned"],
        marker_color=CHART.churned,
        hovertemplate="Ушедшие<br>%{x}<br>%{y}<extra></extra>",
    ))
    fig.update_layout(barmode="group", yaxis=dict(title="Клиентов", rangemode="tozero"))
    return apply_passport_plotly_theme(fig)
