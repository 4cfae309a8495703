# src/shipment_sync/pipelines/report.py
from __future__ import annotations

import warnings
from pathlib import Path
from typing import Iterable

import pandas as pd
from openpyxl import load_workbook

from shipment_sync.models import SyncOutcome

REPORT_COLUMNS = ["order_id", "shipment_id", "ok", "awb", "status", "synced_from", "notified", "error"]
SHEET_NAME = "Outcomes"


def to_frame(outcomes: Iterable[SyncOutcome]) -> pd.DataFrame:
    rows = [o.to_dict() for o in outcomes]
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def write_report(outcomes: Iterable[SyncOutcome], path: Path) -> Path:
    """Write batch outcomes to .xlsx (openpyxl) or, for any other suffix, .csv."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = to_frame(outcomes)

    if path.suffix.lower() != ".xlsx":
        df.to_csv(path, index=False)
        return path

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        with pd.ExcelWriter(path, engine="openpyxl", mode="w") as xw:
            df.to_excel(xw, sheet_name=SHEET_NAME, index=False, na_rep="")

    # AWBs are identifiers: keep them as Excel text so leading zeros survive
    wb = load_workbook(path)
    ws = wb[SHEET_NAME]
    awb_col = REPORT_COLUMNS.index("awb") + 1
    for r in range(2, ws.max_row + 1):
        cell = ws.cell(row=r, column=awb_col)
        if cell.value is not None:
            cell.value = str(cell.value)
        cell.number_format = "@"
    wb.save(path)
    return path
