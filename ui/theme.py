# ui/theme.py
from dataclasses import dataclass


@dataclass(frozen=True)
class Colors:
    # Base / Layout
    app_bg: str = "#F8FAFC"
    card_bg: str = "#FFFFFF"
    border: str = "#E5E7EB"

    # Text hierarchy
    text_h1: str = "#0F172A"
    text_h2: str = "#1F2937"
    text_muted: str = "#64748B"

    # KPI statuses
    status_success_bg: str = "#ECFDF3"
    status_warning_bg: str = "#FFFBEB"
    status_negative_bg: str = "#FEF2F2"
    status_success_text: str = "#166534"
    status_warning_text: str = "#92400E"
    status_negative_text: str = "#991B1B"


@dataclass(frozen=True)
class ChartColors:
    # weekly bars
    paid: str = "#22C55E"
    unpaid: str = "#EF4444"
    future: str = "#CBD5E1"
    current_outline: str = "#0F172A"
    clients: str = "#3B82F6"

    # monthly charts
    mrr: str = "#6366F1"
    churn: str = "#EF4444"
    churn_reference: str = "#F59E0B"
    new_clients: str = "#22C55E"
    churned: str = "#EF4444"

    # one colour per service in the stacked weekly chart
    services: tuple = (
        "#3B82F6", "#8B5CF6", "#14B8A6", "#F97316", "#EC4899",
        "#84CC16", "#06B6D4", "#EAB308", "#A855F7", "#10B981",
    )


@dataclass(frozen=True)
class Layout:
    max_width_px: int = 1200
    card_radius_px: int = 12
    card_pad_px: int = 20


COLORS = Colors()
CHART = ChartColors()
LAYOUT = Layout()

STATUS_STYLE = {
    "green": (COLORS.status_success_bg, COLORS.status_success_text),
    "yellow": (COLORS.status_warning_bg, COLORS.status_warning_text),
    "red": (COLORS.status_negative_bg, COLORS.status_negative_text),
}
