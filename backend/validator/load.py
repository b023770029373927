"""
Load Layer - Report generation for validation runs.

Generates:
1. Validation Results sheet - one row per processed record, source columns,
   extracted receipt fields and the verdict
2. Summary sheet - verdict tally and rows that could not be processed
CSV export carries the Validation Results table only.
"""
import os
import logging
import tempfile
import pandas as pd
from io import BytesIO
from typing import List, Dict, Any, Sequence
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter

from .aggregate import ResultAggregator, full_rows
from .config import Config
from .models import RecordOutcome


STATUS_FILLS = {
    "Receipt Validated": "DCFCE7",
    "Mismatch Found": "FEE2E2",
    "Not Readable – Human Review Required": "FEF3C7",
    "Processing Error": "E5E7EB",
}


class ReportLoader:
    """
    Exporter for validation results.
    Supported: 'xlsx', 'csv'
    """

    def __init__(self, output_folder: str = None):
        self.output_folder = output_folder or Config.OUTPUT_FOLDER
        self.header_font = Font(bold=True, color="FFFFFF")
        self.header_fill = PatternFill(start_color="3730A3", end_color="3730A3", fill_type="solid")
        self.border = Border(bottom=Side(style='thin', color='DDDDDD'))

    def generate(self, outcomes: Sequence[RecordOutcome], target_format: str = "xlsx") -> BytesIO:
        if target_format not in Config.ALLOWED_FORMATS:
            raise ValueError(f"Unsupported report format: {target_format}")
        if target_format == "csv":
            return self._generate_csv(outcomes)
        return self._generate_excel(outcomes)

    def report_filename(self, target_format: str = "xlsx") -> str:
        return f"{Config.REPORT_BASENAME}.{target_format}"

    def save(self, outcomes: Sequence[RecordOutcome], target_format: str = "xlsx") -> str:
        """
        Write the report under its fixed name, replacing the previous run's file.

        Written to a temp file in the same folder, then swapped in with
        os.replace. Concurrent runs share the one name; the last to finish wins.
        """
        buffer = self.generate(outcomes, target_format)
        os.makedirs(self.output_folder, exist_ok=True)
        filename = self.report_filename(target_format)
        path = os.path.join(self.output_folder, filename)

        tmp_fd, tmp_name = tempfile.mkstemp(prefix=f".{filename}.", dir=self.output_folder)
        try:
            with os.fdopen(tmp_fd, "wb") as f:
                f.write(buffer.getvalue())
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logging.info(f"Report written: {path} ({len(outcomes)} rows)")
        return path

    def _generate_excel(self, outcomes: Sequence[RecordOutcome]) -> BytesIO:
        output = BytesIO()
        wb = Workbook()

        # ════════════════════════════════════════════════════════════════
        # SHEET 1: VALIDATION RESULTS
        # ════════════════════════════════════════════════════════════════
        ws1 = wb.active
        ws1.title = "Validation Results"

        df = self._frame(outcomes)
        headers = list(df.columns)
        for col_idx, header in enumerate(headers, 1):
            cell = ws1.cell(row=1, column=col_idx, value=header)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = Alignment(horizontal='center')

        status_col = headers.index("Validation Status") + 1 if "Validation Status" in headers else None
        for row_idx, values in enumerate(df.itertuples(index=False), 2):
            for col_idx, val in enumerate(values, 1):
                cell = ws1.cell(row=row_idx, column=col_idx, value=val)
                cell.border = self.border
                if col_idx == status_col and val in STATUS_FILLS:
                    color = STATUS_FILLS[val]
                    cell.fill = PatternFill(start_color=color, end_color=color, fill_type="solid")

        self._auto_width(ws1)
        ws1.freeze_panes = "A2"

        # ════════════════════════════════════════════════════════════════
        # SHEET 2: SUMMARY
        # ════════════════════════════════════════════════════════════════
        ws2 = wb.create_sheet("Summary")
        aggregator = ResultAggregator()
        aggregator.assess(outcomes)
        report = aggregator.get_full_report()

        ws2.cell(row=1, column=1, value="VALIDATION SUMMARY").font = Font(bold=True, size=14)
        ws2.merge_cells('A1:B1')

        row = 3
        ws2.cell(row=row, column=1, value="Total Records").font = Font(bold=True)
        ws2.cell(row=row, column=2, value=report["summary"]["total"])
        row += 1
        for bucket, count in report["stats"].items():
            ws2.cell(row=row, column=1, value=bucket).font = Font(bold=True)
            ws2.cell(row=row, column=2, value=count)
            row += 1

        row += 1
        ws2.cell(row=row, column=1, value="Rows Not Processed").font = Font(bold=True, size=12)
        row += 1

        if report["error_rows"]:
            for col_idx, header in enumerate(["Row #", "Name", "UTR", "Reason"], 1):
                cell = ws2.cell(row=row, column=col_idx, value=header)
                cell.font = self.header_font
                cell.fill = self.header_fill
            row += 1
            for err in report["error_rows"]:
                ws2.cell(row=row, column=1, value=err["row"])
                ws2.cell(row=row, column=2, value=err["name"])
                ws2.cell(row=row, column=3, value=err["utr"])
                ws2.cell(row=row, column=4, value=err["reason"])
                row += 1
        else:
            ws2.cell(row=row, column=1, value="All rows were processed")

        self._auto_width(ws2)

        wb.save(output)
        output.seek(0)
        return output

    def _generate_csv(self, outcomes: Sequence[RecordOutcome]) -> BytesIO:
        output = BytesIO()
        self._frame(outcomes).to_csv(output, index=False)
        output.seek(0)
        return output

    def _frame(self, outcomes: Sequence[RecordOutcome]) -> pd.DataFrame:
        rows: List[Dict[str, Any]] = full_rows(outcomes)
        return pd.DataFrame(rows).astype(object).fillna("")

    def _auto_width(self, ws) -> None:
        """Auto-adjust column widths"""
        for col_idx, column in enumerate(ws.columns, 1):
            max_length = 0
            for cell in column:
                if cell.value is not None:
                    max_length = max(max_length, len(str(cell.value)))
            ws.column_dimensions[get_column_letter(col_idx)].width = min(max_length + 4, 60)
