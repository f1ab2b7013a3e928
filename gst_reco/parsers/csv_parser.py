"""CSV/Excel parser for purchase registers and GSTR-2B CSV exports."""

import logging
import re
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from gst_reco.engine.models import InvoiceRecord

logger = logging.getLogger(__name__)


class InvoiceCSVParser:
    """Parse CSV/Excel invoice registers into InvoiceRecord objects.

    Columns are found by case-insensitive substring match on the header, so
    exports from different accounting packages work without a mapping.
    Every column whose header mentions a tax head is summed into that head.
    """

    # Candidate header fragments, tried in order
    HEADER_ALIASES: Dict[str, List[str]] = {
        "supplier_name": ["supplier name", "particulars", "trade/legal name"],
        "supplier_gstin": ["gstin"],
        "doc_no": ["doc no", "invoice number", "supplier invoice no"],
        "doc_date": ["date", "invoice date", "supplier invoice date"],
        "doc_type": ["doc type", "invoice type", "voucher type"],
        "supply_type": ["supply type"],
        "rcm": ["reverse charge", "rcm"],
    }

    # Fragments marking columns that are summed per row
    AMOUNT_FRAGMENTS: Dict[str, Sequence[str]] = {
        "taxable_value": ("taxable", "purchase"),
        "igst": ("igst",),
        "cgst": ("cgst",),
        "sgst": ("sgst",),
        "cess": ("cess",),
    }

    REQUIRED = ["supplier_name", "doc_no", "doc_date"]

    def parse(self, file_path: str | Path, **kwargs) -> List[InvoiceRecord]:
        """
        Parse a CSV or Excel file into InvoiceRecord objects.

        Args:
            file_path: Path to the CSV/Excel file.
            **kwargs: Additional arguments passed to pandas read function.

        Returns:
            List of InvoiceRecord objects, in file order.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ValueError: If required columns are missing.
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        df = self._read_file(file_path, **kwargs)
        return self.parse_dataframe(df)

    def parse_dataframe(self, df: pd.DataFrame) -> List[InvoiceRecord]:
        headers = [str(c).strip().lower() for c in df.columns]
        columns = self._locate_columns(headers, df.columns)
        amount_columns = self._locate_amount_columns(headers, df.columns)
        return self._convert_dataframe(df, columns, amount_columns)

    def _read_file(self, file_path: Path, **kwargs) -> pd.DataFrame:
        """Read file based on extension, keeping every cell as text."""
        suffix = file_path.suffix.lower()
        kwargs.setdefault("dtype", str)
        kwargs.setdefault("keep_default_na", False)

        if suffix == ".csv":
            return pd.read_csv(file_path, **kwargs)
        elif suffix in (".xlsx", ".xls"):
            return pd.read_excel(file_path, **kwargs)
        else:
            raise ValueError(f"Unsupported file format: {suffix}. Use .csv, .xlsx, or .xls")

    def _locate_columns(self, headers: List[str], original) -> Dict[str, Optional[str]]:
        """
        Find the column for each field.

        Raises:
            ValueError: If a required column is missing.
        """
        columns: Dict[str, Optional[str]] = {}
        for field, aliases in self.HEADER_ALIASES.items():
            columns[field] = None
            for alias in aliases:
                idx = next((i for i, h in enumerate(headers) if alias in h), None)
                if idx is not None:
                    columns[field] = original[idx]
                    break

        missing = [f for f in self.REQUIRED if columns[f] is None]
        if missing:
            available = ", ".join(str(c) for c in original)
            raise ValueError(
                "File must contain columns for Supplier Name/Particulars, Invoice Number "
                f"and Date. Missing: {', '.join(missing)}. Available columns: {available}."
            )
        return columns

    def _locate_amount_columns(self, headers: List[str], original) -> Dict[str, List[str]]:
        return {
            field: [original[i] for i, h in enumerate(headers) if any(f in h for f in fragments)]
            for field, fragments in self.AMOUNT_FRAGMENTS.items()
        }

    def _convert_dataframe(
        self,
        df: pd.DataFrame,
        columns: Dict[str, Optional[str]],
        amount_columns: Dict[str, List[str]],
    ) -> List[InvoiceRecord]:
        """Convert a DataFrame to a list of InvoiceRecord objects."""
        records: List[InvoiceRecord] = []

        for idx, row in df.iterrows():
            try:
                record = self._convert_row(row, columns, amount_columns)
            except (ValueError, InvalidOperation) as e:
                # Log warning but continue processing
                logger.warning("Skipping row %s: %s", idx, e)
                continue
            if record is not None:
                records.append(record)

        return records

    def _convert_row(
        self,
        row: pd.Series,
        columns: Dict[str, Optional[str]],
        amount_columns: Dict[str, List[str]],
    ) -> Optional[InvoiceRecord]:
        """Convert a single row, or return None for blank and footer rows."""
        def text(field: str, default: str = "") -> str:
            col = columns.get(field)
            if col is None:
                return default
            value = row[col]
            if pd.isna(value):
                return default
            return str(value).strip()

        # Footer and total rows carry amounts but no document number
        doc_no = text("doc_no")
        if not doc_no:
            return None

        amounts = {
            field: sum((self._parse_amount(row[c]) for c in cols), Decimal("0"))
            for field, cols in amount_columns.items()
        }

        return InvoiceRecord(
            supplier_name=text("supplier_name"),
            supplier_gstin=text("supplier_gstin"),
            doc_type=text("doc_type") or "INV",
            doc_no=doc_no,
            doc_date=text("doc_date"),
            supply_type=text("supply_type") or "B2B",
            rcm=text("rcm").upper() in ("Y", "YES"),
            **amounts,
        )

    def _parse_amount(self, value) -> Decimal:
        """Parse an amount, treating blanks as zero and ignoring symbols and separators."""
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return Decimal("0")
        if isinstance(value, (int, float)):
            return Decimal(str(value))

        cleaned = re.sub(r"[^\d.-]", "", str(value))
        if cleaned in ("", "-", ".", "-."):
            return Decimal("0")
        return Decimal(cleaned)
