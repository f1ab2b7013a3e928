"""Excel report generator for reconciliation results."""

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from gst_reco.engine.models import (
    InvoiceRecord,
    MatchStatus,
    ReconciliationResult,
    ReconciliationSummary,
    SupplierSuggestion,
    UnifiedInvoice,
)


class ExcelReportGenerator:
    """Generate Excel reports from reconciliation results."""

    # Style constants
    HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
    HEADER_FONT = Font(name="Calibri", size=11, bold=True, color="FFFFFF")
    MATCHED_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
    PARTIAL_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
    UNMATCHED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
    CARRIED_FILL = PatternFill(start_color="D9D9D9", end_color="D9D9D9", fill_type="solid")
    TITLE_FONT = Font(name="Calibri", size=16, bold=True, color="1F4E79")
    SUBTITLE_FONT = Font(name="Calibri", size=12, bold=True, color="1F4E79")
    KPI_FONT = Font(name="Calibri", size=14, bold=True)
    THIN_BORDER = Border(
        left=Side(style="thin"),
        right=Side(style="thin"),
        top=Side(style="thin"),
        bottom=Side(style="thin"),
    )

    PAIR_HEADERS = [
        "GSTIN", "Supplier Name", "Doc No",
        "2B Doc Type", "2B Date", "2B Taxable", "2B Total Tax",
        "Books Doc Type", "Books Date", "Books Taxable", "Books Total Tax",
        "Status", "Mismatch Reasons", "Remarks",
    ]

    SINGLE_HEADERS = [
        "GSTIN", "Supplier Name", "Doc Type", "Doc No", "Date",
        "Taxable Value", "IGST", "CGST", "SGST", "Cess", "Total Tax", "RCM", "Remarks",
    ]

    def generate(
        self,
        result: ReconciliationResult,
        output_path: str | Path,
        period: Optional[str] = None,
    ) -> Path:
        """
        Generate Excel report with 6 tabs.

        Args:
            result: Reconciliation result to report on.
            output_path: Path for the output Excel file.
            period: Return period shown in the title, if known.

        Returns:
            Path to the generated report.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        wb = Workbook()

        # Tab 1: Summary
        self._create_summary_tab(wb, result.summary, period)

        # Tab 2: Invoices found on both sides, whatever their score
        paired = [inv for inv in result.invoices if inv.in_gstr2b and inv.in_books
                  and inv.match_status != MatchStatus.CARRIED_FORWARD]
        self._create_pairs_tab(wb, paired)

        # Tab 3 / 4: Orphans
        self._create_single_tab(
            wb, "Only in GSTR-2B", "FF0000",
            [inv for inv in result.invoices if inv.match_status == MatchStatus.ONLY_IN_GSTR2B],
            self.UNMATCHED_FILL,
        )
        self._create_single_tab(
            wb, "Only in Books", "FF0000",
            [inv for inv in result.invoices if inv.match_status == MatchStatus.ONLY_IN_BOOKS],
            self.UNMATCHED_FILL,
        )

        # Tab 5: Carried Forward
        self._create_single_tab(
            wb, "Carried Forward", "808080",
            result.by_status(MatchStatus.CARRIED_FORWARD),
            self.CARRIED_FILL,
        )

        # Tab 6: Supplier Suggestions
        self._create_suggestions_tab(wb, list(result.supplier_suggestions))

        # Remove default sheet if extra
        if "Sheet" in wb.sheetnames and len(wb.sheetnames) > 1:
            del wb["Sheet"]

        wb.save(str(output_path))
        return output_path

    def _create_summary_tab(
        self,
        wb: Workbook,
        summary: ReconciliationSummary,
        period: Optional[str],
    ) -> None:
        """Create the Summary dashboard tab."""
        ws = wb.active
        ws.title = "Summary"
        ws.sheet_properties.tabColor = "1F4E79"

        # Title
        ws.merge_cells("A1:F1")
        ws["A1"] = "GSTR-2B Reconciliation Report" + (f" - {period}" if period else "")
        ws["A1"].font = self.TITLE_FONT
        ws["A1"].alignment = Alignment(horizontal="center")

        # Generated date
        ws.merge_cells("A2:F2")
        ws["A2"] = f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
        ws["A2"].alignment = Alignment(horizontal="center")

        ws["A4"] = "Invoice Counts"
        ws["A4"].font = self.SUBTITLE_FONT
        ws["B4"] = "Count"
        ws["C4"] = "Tax Amount"
        for cell in ("B4", "C4"):
            ws[cell].font = Font(bold=True)

        counts = [
            ("GSTR-2B Records", summary.total_gstr2b, summary.itc_as_per_gstr2b_total, None),
            ("Books Records", summary.total_books, summary.net_itc_as_per_books, None),
            ("Exact Match", summary.exact_matches, summary.exact_match_amount, self.MATCHED_FILL),
            ("Partial / Probable Match", summary.partial_probable_matches,
             summary.partial_probable_match_amount, self.PARTIAL_FILL),
            ("Unmatched", summary.unmatched, summary.unmatched_amount, self.UNMATCHED_FILL),
            ("Ineligible ITC", summary.ineligible, summary.ineligible_amount, None),
            ("Carried Forward", summary.carried_forward, summary.carried_forward_amount, self.CARRIED_FILL),
        ]

        row = 5
        for label, count, amount, fill in counts:
            ws[f"A{row}"] = label
            ws[f"A{row}"].font = Font(bold=True)
            ws[f"B{row}"] = count
            ws[f"B{row}"].font = self.KPI_FONT
            self._money(ws, f"C{row}", amount)
            if fill is not None and count > 0:
                ws[f"B{row}"].fill = fill
            row += 1

        ws[f"A{row}"] = "Match Rate"
        ws[f"A{row}"].font = Font(bold=True)
        ws[f"B{row}"] = f"{summary.match_rate:.1f}%"
        ws[f"B{row}"].fill = self.MATCHED_FILL if summary.match_rate >= 95 else self.UNMATCHED_FILL

        # ITC computation
        row += 2
        ws[f"A{row}"] = "ITC Computation"
        ws[f"A{row}"].font = self.SUBTITLE_FONT
        row += 1

        itc_rows = [
            ("Total ITC as per GSTR-2B", summary.itc_as_per_gstr2b_total),
            ("(-) ITC in GSTR-2B not in Books", summary.itc_not_in_books_amount),
            ("(-) Ineligible ITC", summary.ineligible_amount),
            ("Net ITC as per GSTR-2B", summary.final_eligible_itc),
            ("Total ITC as per Books", summary.net_itc_as_per_books),
            ("ITC in Books only", summary.itc_from_books_only_amount),
            ("Difference to be Reconciled", summary.difference_to_reconcile),
        ]
        for label, amount in itc_rows:
            ws[f"A{row}"] = label
            ws[f"A{row}"].font = Font(bold=True)
            self._money(ws, f"B{row}", amount)
            row += 1

        # Head-wise breakdown
        row += 1
        ws[f"A{row}"] = "Tax Heads"
        ws[f"A{row}"].font = self.SUBTITLE_FONT
        for col, head in zip("BCDEF", ("IGST", "CGST", "SGST", "Cess", "Total")):
            ws[f"{col}{row}"] = head
            ws[f"{col}{row}"].font = Font(bold=True)
        row += 1
        for label, breakdown in (
            ("As per GSTR-2B", summary.itc_as_per_gstr2b),
            ("As per Books", summary.itc_as_per_books),
            ("Eligible ITC", summary.eligible_itc),
        ):
            ws[f"A{row}"] = label
            ws[f"A{row}"].font = Font(bold=True)
            values = (breakdown.igst, breakdown.cgst, breakdown.sgst, breakdown.cess, breakdown.total)
            for col, amount in zip("BCDEF", values):
                self._money(ws, f"{col}{row}", amount)
            row += 1

        # Auto-width
        ws.column_dimensions["A"].width = 32
        for col in "BCDEF":
            ws.column_dimensions[col].width = 16

    def _create_pairs_tab(self, wb: Workbook, paired: List[UnifiedInvoice]) -> None:
        """Create the Paired tab, one row per invoice found on both sides."""
        ws = wb.create_sheet("Paired")
        ws.sheet_properties.tabColor = "00B050"

        headers = self.PAIR_HEADERS
        self._write_headers(ws, headers)

        for i, inv in enumerate(paired, start=2):
            gstr2b, books = inv.gstr2b, inv.books
            ws[f"A{i}"] = gstr2b.supplier_gstin
            ws[f"B{i}"] = gstr2b.supplier_name[:50]
            ws[f"C{i}"] = gstr2b.doc_no
            ws[f"D{i}"] = gstr2b.doc_type
            ws[f"E{i}"] = gstr2b.doc_date
            self._money(ws, f"F{i}", gstr2b.taxable_value)
            self._money(ws, f"G{i}", gstr2b.total_tax)
            ws[f"H{i}"] = books.doc_type
            ws[f"I{i}"] = books.doc_date
            self._money(ws, f"J{i}", books.taxable_value)
            self._money(ws, f"K{i}", books.total_tax)
            ws[f"L{i}"] = inv.match_status.value if inv.match_status else ""
            ws[f"M{i}"] = "; ".join(inv.mismatch_reasons)
            ws[f"N{i}"] = inv.remarks

            fill = self._status_fill(inv.match_status)
            for col in range(1, len(headers) + 1):
                ws.cell(row=i, column=col).fill = fill

        self._auto_width(ws, headers)

    def _create_single_tab(
        self,
        wb: Workbook,
        title: str,
        tab_color: str,
        invoices: List[UnifiedInvoice],
        fill: PatternFill,
    ) -> None:
        """Create a tab listing one record per invoice."""
        ws = wb.create_sheet(title)
        ws.sheet_properties.tabColor = tab_color

        headers = self.SINGLE_HEADERS
        self._write_headers(ws, headers)

        for i, inv in enumerate(invoices, start=2):
            rec: InvoiceRecord = inv.primary
            ws[f"A{i}"] = rec.supplier_gstin
            ws[f"B{i}"] = rec.supplier_name[:80]
            ws[f"C{i}"] = rec.doc_type
            ws[f"D{i}"] = rec.doc_no
            ws[f"E{i}"] = rec.doc_date
            for col, amount in zip("FGHIJK", (
                rec.taxable_value, rec.igst, rec.cgst, rec.sgst, rec.cess, rec.total_tax,
            )):
                self._money(ws, f"{col}{i}", amount)
            ws[f"L{i}"] = "Y" if rec.rcm else "N"
            ws[f"M{i}"] = inv.remarks

            for col in range(1, len(headers) + 1):
                ws.cell(row=i, column=col).fill = fill

        self._auto_width(ws, headers)

    def _create_suggestions_tab(self, wb: Workbook, suggestions: List[SupplierSuggestion]) -> None:
        """Create the Supplier Suggestions tab."""
        ws = wb.create_sheet("Supplier Suggestions")
        ws.sheet_properties.tabColor = "FFC000"

        headers = ["Books Supplier", "GSTR-2B Supplier", "GSTR-2B GSTIN", "Edit Distance"]
        self._write_headers(ws, headers)

        for i, s in enumerate(suggestions, start=2):
            ws[f"A{i}"] = s.books_supplier_name
            ws[f"B{i}"] = s.gstr2b_supplier_name
            ws[f"C{i}"] = s.gstr2b_gstin
            ws[f"D{i}"] = s.distance

        self._auto_width(ws, headers)

    def _status_fill(self, status: Optional[MatchStatus]) -> PatternFill:
        if status == MatchStatus.EXACT:
            return self.MATCHED_FILL
        if status in (MatchStatus.PARTIAL, MatchStatus.PROBABLE):
            return self.PARTIAL_FILL
        return self.UNMATCHED_FILL

    def _money(self, ws, ref: str, amount: Decimal) -> None:
        ws[ref] = float(amount)
        ws[ref].number_format = '#,##0.00'

    def _write_headers(self, ws, headers: List[str]) -> None:
        """Write styled header row."""
        for col_idx, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col_idx, value=header)
            cell.font = self.HEADER_FONT
            cell.fill = self.HEADER_FILL
            cell.alignment = Alignment(horizontal="center")
            cell.border = self.THIN_BORDER

        # Freeze top row
        ws.freeze_panes = "A2"

        # Auto-filter
        ws.auto_filter.ref = f"A1:{get_column_letter(len(headers))}1"

    def _auto_width(self, ws, headers: List[str]) -> None:
        """Auto-adjust column widths."""
        for col_idx, header in enumerate(headers, start=1):
            col_letter = get_column_letter(col_idx)
            max_len = len(header) + 4
            ws.column_dimensions[col_letter].width = min(max_len, 35)
