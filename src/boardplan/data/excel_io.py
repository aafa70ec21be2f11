from __future__ import annotations

import io
from collections.abc import Iterable
from datetime import date

import pandas as pd

from boardplan.core.load import WeeklyLoad
from boardplan.core.models import Resource


def coerce_float(value) -> float | None:
    """Coerce stored/Excel numeric representations to float.

    Returns None when value is empty/NaN.
    Accepts numbers and strings (handles ',' as decimal separator).
    """
    if value is None:
        return None
    try:
        if isinstance(value, float) and pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass

    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)

    s = str(value).strip()
    if not s or s.lower() == "nan":
        return None

    # 1.234,56 -> 1234.56
    if "," in s and "." in s:
        s = s.replace(".", "").replace(",", ".")
    elif "," in s:
        s = s.replace(",", ".")

    try:
        return float(s)
    except ValueError:
        return None


def board_to_frame(
    resources: Iterable[Resource],
    weeks: Iterable[date],
    loads: dict[tuple[str, date], WeeklyLoad],
) -> pd.DataFrame:
    """One row per resource, one column per week, cells like '30h / 37h (81%)'."""
    weeks = list(weeks)
    records = []
    for res in resources:
        row: dict[str, str] = {"Resource": res.name, "Kind": res.kind.value}
        for week in weeks:
            cell = loads.get((res.resource_id, week))
            row[f"Week {week.isocalendar()[1]} ({week.isoformat()})"] = cell.label if cell else ""
        records.append(row)
    columns = ["Resource", "Kind"] + [f"Week {w.isocalendar()[1]} ({w.isoformat()})" for w in weeks]
    return pd.DataFrame.from_records(records, columns=columns)


def export_board_xlsx(
    resources: Iterable[Resource],
    weeks: Iterable[date],
    loads: dict[tuple[str, date], WeeklyLoad],
    *,
    sheet_name: str = "Resource planning",
) -> bytes:
    df = board_to_frame(resources, weeks, loads)
    bio = io.BytesIO()
    with pd.ExcelWriter(bio, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    return bio.getvalue()
