"""
Demo script for the GSTR-2B Reconciliation Engine.

Run this script to see the reconciliation tool in action using the
example files in the examples/ directory.

Usage:
    python demo.py
"""

import logging
import sys
import tempfile
from pathlib import Path

# Ensure the project root is in the Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from gst_reco.engine.models import MatchStatus, Period
from gst_reco.engine.reconciler import ReconciliationEngine
from gst_reco.parsers.csv_parser import InvoiceCSVParser
from gst_reco.parsers.gstr2b_json_parser import GSTR2BJSONParser
from gst_reco.reports.excel_report import ExcelReportGenerator
from gst_reco.storage.carry_forward import CarryForwardStore


def main():
    """Run the GSTR-2B reconciliation demo."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    examples_dir = project_root / "examples"
    gstr2b_file = examples_dir / "gstr2b_2024_04.json"
    books_file = examples_dir / "books_2024_04.csv"
    output_file = examples_dir / "reconciliation_report.xlsx"
    period = Period(month=4, year=2024)

    print("=" * 60)
    print("  GSTR-2B RECONCILIATION ENGINE - DEMO")
    print("=" * 60)

    # Verify example files exist
    if not gstr2b_file.exists():
        print(f"\n  ERROR: GSTR-2B file not found: {gstr2b_file}")
        sys.exit(1)
    if not books_file.exists():
        print(f"\n  ERROR: Purchase register not found: {books_file}")
        sys.exit(1)

    # Step 1: Parse GSTR-2B (JSON)
    print(f"\n  [1/5] Parsing GSTR-2B: {gstr2b_file.name}")
    try:
        gstr2b = GSTR2BJSONParser().parse(gstr2b_file)
    except Exception as e:
        print(f"  ERROR parsing GSTR-2B: {e}")
        sys.exit(1)
    print(f"        Found {len(gstr2b)} documents")
    for rec in gstr2b:
        print(f"        - {rec.doc_date} | {rec.doc_no:<10} | {rec.total_tax:>10} | {rec.supplier_name[:30]}")

    # Step 2: Parse books (CSV)
    print(f"\n  [2/5] Parsing purchase register: {books_file.name}")
    try:
        books = InvoiceCSVParser().parse(books_file)
    except Exception as e:
        print(f"  ERROR parsing CSV: {e}")
        sys.exit(1)
    print(f"        Found {len(books)} entries")
    for rec in books:
        print(f"        - {rec.doc_date} | {rec.doc_no:<10} | {rec.total_tax:>10} | {rec.supplier_name[:30]}")

    # Step 3: Reconcile
    print("\n  [3/5] Running reconciliation engine...")
    engine = ReconciliationEngine()
    result = engine.reconcile(gstr2b, books)

    # Step 4: Confirm supplier suggestions and carry forward one orphan
    print("\n  [4/5] Applying suggestions and carrying forward...")
    for suggestion in result.supplier_suggestions:
        print(f"        Linking {suggestion.books_supplier_name} -> {suggestion.gstr2b_gstin}")
        result = engine.confirm_supplier_link(result, suggestion)

    orphans = result.by_status(MatchStatus.ONLY_IN_BOOKS)
    if orphans:
        with tempfile.TemporaryDirectory() as tmp:
            store = CarryForwardStore(Path(tmp) / "carry_forward.json")
            result = engine.carry_forward(result, [orphans[0].id], period, store)
            print(f"        Carried {orphans[0].id} forward to {period.next()}")

    # Step 5: Generate report
    print(f"\n  [5/5] Generating Excel report: {output_file.name}")
    output_path = ExcelReportGenerator().generate(result, str(output_file), period=str(period))

    summary = result.summary
    print("\n" + "=" * 60)
    print("  RECONCILIATION SUMMARY")
    print("=" * 60)
    print(f"  GSTR-2B Documents:     {summary.total_gstr2b}")
    print(f"  Books Entries:         {summary.total_books}")
    print(f"  Match Rate:            {summary.match_rate:.1f}%")
    print(f"  Exact Matches:         {summary.exact_matches}")
    print(f"  Partial/Probable:      {summary.partial_probable_matches}")
    print(f"  Unmatched:             {summary.unmatched}")
    print(f"  Carried Forward:       {summary.carried_forward}")
    print(f"  ITC as per GSTR-2B:    {summary.itc_as_per_gstr2b_total:>12,.2f}")
    print(f"  Final Eligible ITC:    {summary.final_eligible_itc:>12,.2f}")
    print(f"  ITC as per Books:      {summary.net_itc_as_per_books:>12,.2f}")
    print(f"  Difference:            {summary.difference_to_reconcile:>12,.2f}")
    print("=" * 60)

    # Print detailed results
    print("\n  DETAILED RESULTS:")
    print("-" * 60)
    for inv in result.invoices:
        status = inv.match_status.value.upper() if inv.match_status else "PENDING"
        reasons = "; ".join(inv.mismatch_reasons)
        print(f"  [{status:>16}] {inv.id:<40} {reasons}")

    print(f"\n  Report saved to: {output_path.absolute()}")
    print("  Open the Excel file to see the formatted reconciliation report.\n")


if __name__ == "__main__":
    main()
