"""Tests for Excel/CSV report generation"""
import os

import pandas as pd
import pytest
from openpyxl import load_workbook

from backend.validator.load import ReportLoader
from backend.validator.models import VerdictStatus
from conftest import make_outcome


def _outcomes():
    return [
        make_outcome(VerdictStatus.VALIDATED),
        make_outcome(VerdictStatus.MISMATCH, observations="UTR differs."),
        make_outcome(error="Failed to fetch image from URL: 404 Not Found"),
    ]


def test_excel_has_results_and_summary(tmp_path):
    buffer = ReportLoader(str(tmp_path)).generate(_outcomes(), "xlsx")
    wb = load_workbook(buffer)

    assert wb.sheetnames == ["Validation Results", "Summary"]
    ws = wb["Validation Results"]
    headers = [c.value for c in ws[1]]
    assert headers[:7] == ["User ID", "Name", "Amount", "Campus Name", "Payment Date", "UTR", "Screenshot URL"]
    assert headers[-3:] == ["Validation Status", "Observations", "Last Validated"]
    assert ws.max_row == 4

    status_col = headers.index("Validation Status") + 1
    assert ws.cell(row=3, column=status_col).value == "Mismatch Found"
    assert ws.cell(row=4, column=status_col).value == "Processing Error"

    summary = wb["Summary"]
    values = {summary.cell(row=r, column=1).value: summary.cell(row=r, column=2).value for r in range(3, 8)}
    assert values["Total Records"] == 3
    assert values["Validated"] == 1
    assert values["Error"] == 1


def test_csv_export(tmp_path):
    buffer = ReportLoader(str(tmp_path)).generate(_outcomes(), "csv")
    df = pd.read_csv(buffer, keep_default_na=False)

    assert len(df) == 3
    assert list(df["Validation Status"]) == ["Receipt Validated", "Mismatch Found", "Processing Error"]
    assert df["Observations"][2] == "Failed to fetch image from URL: 404 Not Found"


def test_save_uses_fixed_name(tmp_path):
    loader = ReportLoader(str(tmp_path))
    first = loader.save(_outcomes(), "xlsx")
    second = loader.save(_outcomes()[:1], "xlsx")

    assert first == second == os.path.join(str(tmp_path), "validation_results.xlsx")
    assert load_workbook(second)["Validation Results"].max_row == 2


def test_unsupported_format(tmp_path):
    with pytest.raises(ValueError):
        ReportLoader(str(tmp_path)).generate(_outcomes(), "pdf")


def test_save_leaves_no_temp_files(tmp_path):
    loader = ReportLoader(str(tmp_path))
    loader.save(_outcomes(), "csv")
    loader.save(_outcomes(), "csv")

    assert sorted(os.listdir(str(tmp_path))) == ["validation_results.csv"]
