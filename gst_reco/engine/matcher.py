"""Keyed matching of GSTR-2B and books records, and classification of the rest."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from gst_reco.engine.models import (
    InvoiceRecord,
    MatchBasis,
    MatchStatus,
    Source,
    UnifiedInvoice,
)
from gst_reco.engine.normalizer import gstin_key, single_sided_key

logger = logging.getLogger(__name__)


@dataclass
class KeyedMatch:
    """Outcome of the GSTIN + document number pass."""
    pairs: List[UnifiedInvoice] = field(default_factory=list)
    unmatched_gstr2b: List[InvoiceRecord] = field(default_factory=list)
    unmatched_books: List[InvoiceRecord] = field(default_factory=list)


def carried_forward_remark(record: Optional[InvoiceRecord]) -> str:
    if record is not None and record.carried_forward_from:
        return f"Carried forward from {record.carried_forward_from}"
    return ""


def build_gstin_index(records: Sequence[InvoiceRecord]) -> Dict[str, int]:
    """
    Index records by GSTIN key, mapping each key to the record's position.

    The first record seen for a key owns it; later duplicates are left out of
    the index and can only end up single-sided.
    """
    index: Dict[str, int] = {}
    for pos, record in enumerate(records):
        key = gstin_key(record)
        if key is None:
            continue
        if key in index:
            logger.debug("Duplicate GSTR-2B key %s at position %d, keeping first", key, pos)
            continue
        index[key] = pos
    return index


def match_by_gstin(
    gstr2b_records: Sequence[InvoiceRecord],
    books_records: Sequence[InvoiceRecord],
) -> KeyedMatch:
    """
    Pair books records with GSTR-2B records sharing GSTIN and document number.

    Paired invoices are returned unscored (match_status None). Each GSTR-2B
    record is consumed by at most one books record. Records that cannot be
    keyed are passed through as unmatched.

    Args:
        gstr2b_records: Records from the GSTR-2B statement.
        books_records: Records from the purchase register.

    Returns:
        KeyedMatch with pairs in books order and the leftovers of each side
        in input order.
    """
    result = KeyedMatch()
    index = build_gstin_index(gstr2b_records)
    consumed: Set[int] = set()

    for book in books_records:
        key = gstin_key(book)
        pos = index.pop(key, None) if key else None
        if pos is None:
            result.unmatched_books.append(book)
            continue

        gstr2b = gstr2b_records[pos]
        consumed.add(pos)
        result.pairs.append(UnifiedInvoice(
            id=key,
            gstr2b=gstr2b,
            books=book,
            match_status=None,
            match_basis=MatchBasis.GSTIN,
            remarks=carried_forward_remark(gstr2b) or carried_forward_remark(book),
        ))

    result.unmatched_gstr2b = [
        rec for pos, rec in enumerate(gstr2b_records) if pos not in consumed
    ]

    logger.info(
        "Keyed pass: %d pairs, %d GSTR-2B and %d books records left",
        len(result.pairs), len(result.unmatched_gstr2b), len(result.unmatched_books),
    )
    return result


def unique_id(key: str, taken: Set[str]) -> str:
    """Return key, or key with the lowest free numeric suffix if already taken."""
    if key not in taken:
        return key
    n = 2
    while f"{key}-{n}" in taken:
        n += 1
    return f"{key}-{n}"


def classify_remainder(
    unmatched_gstr2b: Sequence[InvoiceRecord],
    unmatched_books: Sequence[InvoiceRecord],
    taken_ids: Set[str],
) -> List[UnifiedInvoice]:
    """
    Create a single-sided invoice for every record left over by keyed matching.

    Books leftovers come first, then GSTR-2B leftovers. Ids are kept unique
    against taken_ids, which is updated in place.
    """
    invoices: List[UnifiedInvoice] = []

    for source, records, status in (
        (Source.BOOKS, unmatched_books, MatchStatus.ONLY_IN_BOOKS),
        (Source.GSTR2B, unmatched_gstr2b, MatchStatus.ONLY_IN_GSTR2B),
    ):
        for record in records:
            invoice_id = unique_id(single_sided_key(record, source), taken_ids)
            taken_ids.add(invoice_id)
            invoices.append(UnifiedInvoice(
                id=invoice_id,
                gstr2b=record if source == Source.GSTR2B else None,
                books=record if source == Source.BOOKS else None,
                match_status=status,
                match_basis=MatchBasis.NONE,
                remarks=carried_forward_remark(record),
            ))

    return invoices
