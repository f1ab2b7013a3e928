"""Flat CSV export of a reconciled invoice list."""

from pathlib import Path
from typing import Sequence

import pandas as pd

from gst_reco.engine.models import UnifiedInvoice

COLUMNS = [
    "Supplier Name", "GSTIN", "Doc No", "Date", "Taxable Value", "IGST", "CGST", "SGST",
    "In 2B", "In Books", "Match Status", "Match Basis", "Remarks",
]


def invoices_to_dataframe(invoices: Sequence[UnifiedInvoice]) -> pd.DataFrame:
    """One row per invoice, showing GSTR-2B data where present."""
    rows = []
    for inv in invoices:
        rec = inv.primary
        remarks = "; ".join(inv.mismatch_reasons)
        if inv.remarks:
            remarks = f"{remarks} {inv.remarks}".strip()
        rows.append({
            "Supplier Name": rec.supplier_name,
            "GSTIN": rec.supplier_gstin,
            "Doc No": rec.doc_no,
            "Date": rec.doc_date,
            "Taxable Value": f"{rec.taxable_value:.2f}",
            "IGST": f"{rec.igst:.2f}",
            "CGST": f"{rec.cgst:.2f}",
            "SGST": f"{rec.sgst:.2f}",
            "In 2B": "Y" if inv.in_gstr2b else "N",
            "In Books": "Y" if inv.in_books else "N",
            "Match Status": inv.match_status.value if inv.match_status else "",
            "Match Basis": inv.match_basis.value,
            "Remarks": remarks,
        })
    return pd.DataFrame(rows, columns=COLUMNS)


def export_csv(invoices: Sequence[UnifiedInvoice], output_path: str | Path) -> Path:
    """Write the invoice list to a CSV file and return its path."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    invoices_to_dataframe(invoices).to_csv(output_path, index=False)
    return output_path
