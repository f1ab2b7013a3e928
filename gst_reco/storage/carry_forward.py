"""Period-keyed store for invoice records carried forward between periods."""

import json
import logging
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from gst_reco.engine.models import InvoiceRecord, Period

logger = logging.getLogger(__name__)

AMOUNT_FIELDS = ("taxable_value", "igst", "cgst", "sgst", "cess")


@dataclass
class CarriedForward:
    """Records waiting in a period, split by source."""
    gstr2b: List[InvoiceRecord] = field(default_factory=list)
    books: List[InvoiceRecord] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.gstr2b or self.books)


def record_to_dict(record: InvoiceRecord) -> dict:
    data = asdict(record)
    for name in AMOUNT_FIELDS:
        data[name] = str(data[name])
    return data


def record_from_dict(data: dict) -> InvoiceRecord:
    values = dict(data)
    for name in AMOUNT_FIELDS:
        values[name] = Decimal(str(values.get(name, "0")))
    return InvoiceRecord(**values)


class CarryForwardStore:
    """
    JSON file holding carried-forward records per period.

    Layout: {"YYYY-MM": {"gstr2b": [...], "books": [...]}}. Appending never
    de-duplicates; callers must not carry the same invoice twice.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self, period: str | Period) -> CarriedForward:
        """Return the records carried forward to a period, or an empty batch."""
        entry = self._read().get(str(period), {})
        return CarriedForward(
            gstr2b=[record_from_dict(d) for d in entry.get("gstr2b", [])],
            books=[record_from_dict(d) for d in entry.get("books", [])],
        )

    def append(
        self,
        period: str | Period,
        gstr2b: Sequence[InvoiceRecord],
        books: Sequence[InvoiceRecord],
    ) -> None:
        """Append records to a period's entry."""
        data = self._read()
        entry = data.setdefault(str(period), {"gstr2b": [], "books": []})
        entry.setdefault("gstr2b", []).extend(record_to_dict(r) for r in gstr2b)
        entry.setdefault("books", []).extend(record_to_dict(r) for r in books)
        self._write(data)
        logger.info(
            "Stored %d GSTR-2B and %d books record(s) for %s",
            len(gstr2b), len(books), period,
        )

    def _read(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f) or {}
        except json.JSONDecodeError as e:
            raise ValueError(f"Carry-forward store is not valid JSON: {self.path}") from e

    def _write(self, data: Dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)


def with_carried_forward(
    store: CarryForwardStore,
    period: str | Period,
    gstr2b: Sequence[InvoiceRecord],
    books: Sequence[InvoiceRecord],
) -> Tuple[List[InvoiceRecord], List[InvoiceRecord]]:
    """Prepend the records carried forward to period to freshly parsed inputs."""
    carried = store.load(period)
    if carried:
        logger.info(
            "Including %d GSTR-2B and %d books record(s) carried forward to %s",
            len(carried.gstr2b), len(carried.books), period,
        )
    return carried.gstr2b + list(gstr2b), carried.books + list(books)
