"""
Figure builder tests.
"""
import pandas as pd
import plotly.graph_objects as go

from ui.plotly_charts import CHURN_REFERENCE_PCT, apply_passport_plotly_theme, fig_churn_rate
from ui.theme import COLORS


def test_theme_sets_backgrounds():
    fig = apply_passport_plotly_theme(go.Figure())
    assert fig.layout.paper_bgcolor == COLORS.app_bg
    assert fig.layout.plot_bgcolor == COLORS.card_bg


def test_churn_chart_has_reference_line():
    df = pd.DataFrame({"label": ["янв 2024", "фев 2024"], "churn_rate": [0.0, 6.3]})
    fig = fig_churn_rate(df)

    assert list(fig.data[0].y) == [0.0, 6.3]
    assert any(s.y0 == CHURN_REFERENCE_PCT for s in fig.layout.shapes)
    assert fig.layout.paper_bgcolor == COLORS.app_bg


def test_empty_churn_frame_gives_blank_figure():
    assert len(fig_churn_rate(pd.DataFrame()).data) == 0
