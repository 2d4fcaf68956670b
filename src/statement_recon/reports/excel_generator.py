"""
Excel export of the reconciliation ledger.
Creates a summary sheet and one sheet per record status.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Border, Side
from openpyxl.worksheet.worksheet import Worksheet

from ..models.reconciliation import (
    ReconciliationRecord,
    ReconciliationStatus,
    StatusCounts,
)
from ..config import ReconConfig
from ..utils.exceptions import ReportGenerationError

logger = logging.getLogger(__name__)

# Style definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
STATUS_FILLS = {
    ReconciliationStatus.MATCHED: PatternFill(
        start_color="C6EFCE", end_color="C6EFCE", fill_type="solid"
    ),
    ReconciliationStatus.DIVERGENT: PatternFill(
        start_color="FFEB9C", end_color="FFEB9C", fill_type="solid"
    ),
    ReconciliationStatus.UNRESOLVED: PatternFill(
        start_color="FFC7CE", end_color="FFC7CE", fill_type="solid"
    ),
}
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

RECORD_HEADERS = [
    "Record ID",
    "Posting Date",
    "External ID",
    "Amount",
    "Memo",
    "Reference",
    "Status",
    "Ledger Entry",
    "Note",
    "Last Change",
]


class ExcelReportGenerator:
    """Generates Excel workbooks listing reconciliation records."""

    def __init__(self, config: Optional[ReconConfig] = None):
        """
        Initialize the report generator.

        Args:
            config: Application configuration
        """
        self.config = config or ReconConfig()
        self.output_config = self.config.output.excel
        self.sheet_config = self.config.output.sheets

    def default_filename(self, account_id: str) -> str:
        now = datetime.now()
        return self.output_config.filename_template.format(
            account=account_id,
            date=now.strftime("%Y%m%d"),
            time=now.strftime("%H%M%S"),
        )

    def generate_report(
        self,
        account_id: str,
        records: list[ReconciliationRecord],
        counts: StatusCounts,
        output_path: Path,
    ) -> Path:
        """
        Write the reconciliation workbook.

        Args:
            account_id: Account the records belong to
            records: Records to export
            counts: Per-status counts for the summary sheet
            output_path: Path for output file

        Returns:
            Path to generated report

        Raises:
            ReportGenerationError: If the workbook cannot be written
        """
        logger.info(f"Generating Excel report: {output_path}")

        wb = Workbook()
        if wb.active:
            wb.remove(wb.active)

        if self.sheet_config.summary.enabled:
            self._create_summary_sheet(wb, account_id, counts)

        per_status = [
            (self.sheet_config.matched, ReconciliationStatus.MATCHED),
            (self.sheet_config.unresolved, ReconciliationStatus.UNRESOLVED),
            (self.sheet_config.ignored, ReconciliationStatus.IGNORED),
            (self.sheet_config.divergent, ReconciliationStatus.DIVERGENT),
        ]
        for sheet, status in per_status:
            if sheet.enabled:
                self._create_record_sheet(
                    wb, sheet.name, [r for r in records if r.status is status]
                )

        if not wb.sheetnames:
            raise ReportGenerationError("All report sheets are disabled")

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(output_path)
        except OSError as e:
            raise ReportGenerationError(f"Cannot write report {output_path}: {e}") from e

        logger.info(f"Report saved: {output_path}")
        return output_path

    def _create_summary_sheet(self, wb: Workbook, account_id: str, counts: StatusCounts) -> None:
        """Create the summary sheet with key metrics."""
        ws = wb.create_sheet(self.sheet_config.summary.name)

        ws["A1"] = "Bank Reconciliation Summary"
        ws["A1"].font = Font(size=16, bold=True)
        ws.merge_cells("A1:D1")

        info = [
            ("Account:", account_id),
            ("Generated At:", datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
        ]
        for i, (label, value) in enumerate(info, start=3):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = value

        ws["A6"] = "Records"
        ws["A6"].font = Font(bold=True)

        count_data = [
            ("Total:", counts.total),
            ("Matched:", counts.matched),
            ("Unresolved:", counts.unresolved),
            ("Ignored:", counts.ignored),
            ("Divergent:", counts.divergent),
            ("Match Rate:", f"{counts.match_rate:.1f}%"),
        ]
        for i, (label, value) in enumerate(count_data, start=7):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = value

        ws.column_dimensions["A"].width = 20
        ws.column_dimensions["B"].width = 30

    def _create_record_sheet(
        self, wb: Workbook, sheet_name: str, records: list[ReconciliationRecord]
    ) -> None:
        ws = wb.create_sheet(sheet_name)

        for col, header in enumerate(RECORD_HEADERS, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

        for row_num, record in enumerate(records, start=2):
            txn = record.transaction
            row_data = [
                record.id,
                txn.posted_on,
                txn.external_id,
                float(txn.amount),
                txn.memo,
                txn.reference or "",
                record.status.value,
                record.entry_id or "",
                record.note or "",
                record.updated_at.strftime("%Y-%m-%d %H:%M:%S") if record.updated_at else "",
            ]

            fill = STATUS_FILLS.get(record.status)
            for col, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_num, column=col, value=value)
                cell.border = THIN_BORDER
                if fill is not None:
                    cell.fill = fill

        self._auto_fit_columns(ws)

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.columns:
            max_length = max((len(str(c.value)) for c in column_cells if c.value is not None), default=0)
            column = column_cells[0].column_letter
            ws.column_dimensions[column].width = min(max_length + 2, 50)
