"""Suggest GSTINs for books suppliers recorded without one."""

import logging
from typing import Dict, List, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from gst_reco.engine.models import InvoiceRecord, SupplierSuggestion
from gst_reco.engine.normalizer import normalize_gstin, normalize_name

logger = logging.getLogger(__name__)

MAX_SUGGESTION_DISTANCE = 3


def levenshtein(a: str, b: str) -> int:
    """Case-insensitive edit distance between two names."""
    return Levenshtein.distance(a.lower(), b.lower())


def _gstr2b_suppliers(records: Sequence[InvoiceRecord]) -> Dict[str, Tuple[str, str]]:
    """Unique GSTIN-bearing suppliers: normalized name -> (display name, GSTIN)."""
    suppliers: Dict[str, Tuple[str, str]] = {}
    for rec in records:
        name = normalize_name(rec.supplier_name)
        if name and rec.supplier_gstin and name not in suppliers:
            suppliers[name] = (rec.supplier_name, rec.supplier_gstin)
    return suppliers


def _books_suppliers_without_gstin(records: Sequence[InvoiceRecord]) -> List[str]:
    """Unique normalized names of books suppliers with no GSTIN, in first-seen order."""
    names: Dict[str, None] = {}
    for rec in records:
        if normalize_gstin(rec.supplier_gstin):
            continue
        name = normalize_name(rec.supplier_name)
        if name:
            names.setdefault(name, None)
    return list(names)


def suggest_supplier_links(
    unmatched_gstr2b: Sequence[InvoiceRecord],
    unmatched_books: Sequence[InvoiceRecord],
    max_distance: int = MAX_SUGGESTION_DISTANCE,
) -> List[SupplierSuggestion]:
    """
    Propose GSTR-2B suppliers for books suppliers that have no GSTIN.

    Only unmatched records take part. Each books name gets at most one
    suggestion: the closest GSTR-2B name (first one on ties), provided it is
    within max_distance edits. Books records that do carry a GSTIN are left
    alone; their mismatch is not a naming problem.

    Args:
        unmatched_gstr2b: GSTR-2B records left after keyed matching.
        unmatched_books: Books records left after keyed matching.
        max_distance: Largest edit distance that still yields a suggestion.

    Returns:
        Suggestions in the order the books names were first seen.
    """
    candidates = _gstr2b_suppliers(unmatched_gstr2b)
    suggestions: List[SupplierSuggestion] = []
    if not candidates:
        return suggestions

    for books_name in _books_suppliers_without_gstin(unmatched_books):
        best = None
        best_distance = None
        for gstr2b_name, supplier in candidates.items():
            distance = levenshtein(books_name, gstr2b_name)
            if best_distance is None or distance < best_distance:
                best, best_distance = supplier, distance

        if best is not None and best_distance <= max_distance:
            suggestions.append(SupplierSuggestion(
                books_supplier_name=books_name,
                gstr2b_supplier_name=best[0],
                gstr2b_gstin=best[1],
                distance=best_distance,
            ))

    logger.info("Supplier linker produced %d suggestion(s)", len(suggestions))
    return suggestions


def apply_supplier_link(
    books_records: Sequence[InvoiceRecord],
    suggestion: SupplierSuggestion,
) -> List[InvoiceRecord]:
    """Give every books record of the suggested supplier the suggested GSTIN."""
    return [
        rec.with_gstin(suggestion.gstr2b_gstin)
        if normalize_name(rec.supplier_name) == suggestion.books_supplier_name
        else rec
        for rec in books_records
    ]
