"""GSTR-2B portal JSON parser."""

import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List

from gst_reco.engine.models import InvoiceRecord

logger = logging.getLogger(__name__)


class GSTR2BJSONParser:
    """Parse a GSTR-2B JSON download into InvoiceRecord objects."""

    # Section name -> key holding each supplier's documents
    SECTIONS = {
        "b2b": "inv",
        "b2ba": "inv",
        "cdnr": "nt",
        "cdnra": "nt",
    }

    def parse(self, file_path: str | Path) -> List[InvoiceRecord]:
        """
        Parse a GSTR-2B JSON file.

        Args:
            file_path: Path to the JSON file.

        Returns:
            List of InvoiceRecord objects, section by section.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ValueError: If the file is not valid JSON.
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"GSTR-2B file not found: {file_path}")

        if file_path.suffix.lower() != ".json":
            raise ValueError(f"Unsupported file format: {file_path.suffix}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse GSTR-2B JSON: {e}") from e

        return self.parse_payload(payload)

    def parse_payload(self, payload: Dict[str, Any]) -> List[InvoiceRecord]:
        data = payload.get("data", payload)
        doc_data = data.get("docdata", data)

        records: List[InvoiceRecord] = []
        for section, doc_key in self.SECTIONS.items():
            for supplier in doc_data.get(section) or []:
                for doc in supplier.get(doc_key) or []:
                    record = self._convert_document(doc, supplier, section.upper())
                    if record is not None:
                        records.append(record)

        logger.info("Parsed %d GSTR-2B document(s)", len(records))
        return records

    def _convert_document(self, doc: Dict[str, Any], supplier: Dict[str, Any], section: str):
        """Convert one invoice or note, or return None if it has no number or date."""
        doc_no = doc.get("inum") or doc.get("ntnum")
        doc_date = doc.get("dt")
        if not doc_no or not doc_date:
            logger.warning("Skipping %s document without number or date from %s", section, supplier.get("ctin"))
            return None

        rcm = doc.get("rev") == "Y"
        # Base type only: it must prefix books types such as "INV" or "INV-B2B".
        # The section stays in supply_type and reverse charge in rcm.
        if "CDN" in section:
            doc_type = "CRN" if doc.get("typ") == "C" else "DBN"
        else:
            doc_type = "INV"

        return InvoiceRecord(
            supplier_name=supplier.get("trdnm") or supplier.get("ctin") or "",
            supplier_gstin=supplier.get("ctin") or "",
            doc_type=doc_type,
            doc_no=str(doc_no),
            doc_date=str(doc_date),
            taxable_value=self._amount(doc.get("txval")),
            igst=self._amount(doc.get("igst")),
            cgst=self._amount(doc.get("cgst")),
            sgst=self._amount(doc.get("sgst")),
            cess=self._amount(doc.get("cess")),
            supply_type=section,
            rcm=rcm,
        )

    def _amount(self, value) -> Decimal:
        if value is None:
            return Decimal("0")
        return Decimal(str(value))
