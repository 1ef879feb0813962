"""
Client list export for Excel in the Russian locale: semicolon separator, UTF-8 with BOM.
"""
import io
from datetime import date
from typing import Dict, List, Optional

import pandas as pd

from .logic.positions import ClientStats

CSV_SEP = ";"
CSV_BOM = "\ufeff"
CSV_COLUMNS = ["Название", "Начислено", "Оплачено", "Начало", "Завершение", "Менеджер"]


def _plain_number(value: float) -> str:
    """1500.0 -> '1500', 1500.5 -> '1500.5'."""
    value = float(value or 0.0)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _iso_or_blank(d: Optional[date]) -> str:
    return d.isoformat() if d else ""


def clients_frame(clients: List, stats: Dict[int, ClientStats], employees: Optional[List] = None) -> pd.DataFrame:
    """One row per client in list order, every cell already rendered as text."""
    records = []
    for client in clients:
        s = stats.get(client.id) or ClientStats()
        records.append({
            "Название": client.name,
            "Начислено": _plain_number(s.charged),
            "Оплачено": _plain_number(s.paid),
            "Начало": _iso_or_blank(s.start),
            "Завершение": _iso_or_blank(s.end),
            "Менеджер": client.manager_name(employees) or "",
        })
    return pd.DataFrame(records, columns=CSV_COLUMNS)


def build_clients_csv(clients: List, stats: Dict[int, ClientStats], employees: Optional[List] = None) -> bytes:
    """
    Cells containing the separator, a quote or a line break are quoted, with inner quotes
    doubled; everything else is written as is.
    """
    df = clients_frame(clients, stats, employees)
    body = df.to_csv(sep=CSV_SEP, index=False, lineterminator="\n")
    return (CSV_BOM + body).encode("utf-8")


def clients_csv_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"клиенты_{today.isoformat()}.csv"


def read_clients_csv(data: bytes) -> pd.DataFrame:
    return pd.read_csv(
        io.BytesIO(data),
        sep=CSV_SEP,
        encoding="utf-8-sig",
        dtype=str,
        keep_default_na=False,
    )
