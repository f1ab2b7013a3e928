"""User-directed changes to a reconciled invoice list.

Every function here takes the current list and returns a new one; invoices
are replaced, never modified. The caller recomputes the summary afterwards.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Collection, List, Optional, Protocol, Sequence, Tuple

from gst_reco.engine.matcher import unique_id
from gst_reco.engine.models import (
    InvoiceRecord,
    MatchBasis,
    MatchConfig,
    MatchStatus,
    Period,
    Presence,
    UnifiedInvoice,
)
from gst_reco.engine.normalizer import gstin_key, normalize_doc_no, normalize_gstin, normalize_name
from gst_reco.engine.scoring import score_invoice
from gst_reco.engine.supplier_linker import levenshtein

logger = logging.getLogger(__name__)

MANUAL_PREFIX = "[Manual]"
BULK_MANUAL_PREFIX = "[Bulk Manual]"
ASSISTED_MATCH_REMARK = "[Assisted Match]"

DATE_FORMATS = ["%d-%m-%Y", "%d/%m/%Y"]


class CarryForwardSink(Protocol):
    """Anything that accepts records carried forward to a period."""

    def append(
        self,
        period: str,
        gstr2b: Sequence[InvoiceRecord],
        books: Sequence[InvoiceRecord],
    ) -> None:
        ...


def override_status(
    invoices: Sequence[UnifiedInvoice],
    invoice_ids: Collection[str],
    status: MatchStatus,
    remark: str,
    bulk: bool = False,
) -> List[UnifiedInvoice]:
    """
    Set a user-chosen status and remark on the selected invoices.

    Raises:
        ValueError: If status is CARRIED_FORWARD; use carry_forward instead.
    """
    if status == MatchStatus.CARRIED_FORWARD:
        raise ValueError("Carried Forward must be applied through carry_forward()")

    prefix = BULK_MANUAL_PREFIX if bulk else MANUAL_PREFIX
    ids = set(invoice_ids)
    return [
        replace(inv, match_status=status, remarks=f"{prefix} {remark}", is_manual_match=True)
        if inv.id in ids else inv
        for inv in invoices
    ]


def carry_forward(
    invoices: Sequence[UnifiedInvoice],
    invoice_ids: Collection[str],
    period: Period,
    store: CarryForwardSink,
) -> List[UnifiedInvoice]:
    """
    Defer the selected invoices to the next period.

    The source records of each selected invoice are tagged with the current
    period and appended to the store under the next period, then the
    invoices are marked Carried Forward. The store is append-only, so
    carrying the same invoice twice stores it twice.

    Args:
        invoices: The current invoice list.
        invoice_ids: Ids of the invoices to carry forward.
        period: The period being reconciled.
        store: Where the records for the next period are kept.

    Returns:
        The new invoice list.
    """
    ids = set(invoice_ids)
    selected = [inv for inv in invoices if inv.id in ids]
    current, target = str(period), str(period.next())

    gstr2b = [inv.gstr2b.carried_forward(current) for inv in selected if inv.gstr2b is not None]
    books = [inv.books.carried_forward(current) for inv in selected if inv.books is not None]
    store.append(target, gstr2b, books)
    logger.info(
        "Carried %d invoice(s) forward to %s (%d GSTR-2B, %d books records)",
        len(selected), target, len(gstr2b), len(books),
    )

    return [
        replace(
            inv,
            match_status=MatchStatus.CARRIED_FORWARD,
            remarks=f"Carried forward to {target}",
            is_manual_match=True,
        )
        if inv.id in ids else inv
        for inv in invoices
    ]


def _find(invoices: Sequence[UnifiedInvoice], invoice_id: str) -> UnifiedInvoice:
    for inv in invoices:
        if inv.id == invoice_id:
            return inv
    raise ValueError(f"Unknown invoice id: {invoice_id!r}")


def merge_invoices(
    invoices: Sequence[UnifiedInvoice],
    first_id: str,
    second_id: str,
    config: MatchConfig,
) -> List[UnifiedInvoice]:
    """
    Pair an orphaned GSTR-2B invoice with an orphaned books invoice.

    The ids may be given in either order. The merged invoice replaces both
    orphans at the end of the list and is scored like any keyed pair; only
    the pairing is manual.

    Raises:
        ValueError: If either id is unknown or the two invoices are not one
            Only in GSTR-2B and one Only in Books invoice, each holding one side.
    """
    first, second = _find(invoices, first_id), _find(invoices, second_id)
    statuses = {first.match_status, second.match_status}
    if statuses != {MatchStatus.ONLY_IN_GSTR2B, MatchStatus.ONLY_IN_BOOKS}:
        raise ValueError(
            "Manual merge needs one 'Only in GSTR-2B' and one 'Only in Books' invoice, "
            f"got {first.match_status} and {second.match_status}"
        )
    # An overridden pair can carry an orphan status while holding both records.
    presences = {first.presence, second.presence}
    if presences != {Presence.GSTR2B_ONLY, Presence.BOOKS_ONLY}:
        raise ValueError(
            "Manual merge needs one GSTR-2B-only and one books-only invoice, "
            f"got {first.presence.value} and {second.presence.value}"
        )

    gstr2b_side, books_side = (first, second) if first.in_gstr2b else (second, first)
    remaining = [inv for inv in invoices if inv.id not in (first.id, second.id)]

    gstr2b = gstr2b_side.gstr2b
    key = gstin_key(gstr2b) or (
        f"{normalize_gstin(gstr2b.supplier_gstin)}-{normalize_doc_no(gstr2b.doc_no)}"
    )
    merged = UnifiedInvoice(
        id=unique_id(key, {inv.id for inv in remaining}),
        gstr2b=gstr2b,
        books=books_side.books,
        match_status=None,
        match_basis=MatchBasis.GSTIN,
        remarks=ASSISTED_MATCH_REMARK,
        is_manual_match=True,
    )
    merged = score_invoice(merged, config)
    logger.info("Merged %s and %s into %s (%s)", first.id, second.id, merged.id, merged.match_status.value)

    remaining.append(merged)
    return remaining


# Weights for ranking merge candidates.
CANDIDATE_WEIGHTS = {
    "gstin": 100,
    "supplier_name": 40,
    "doc_no": 60,
    "date": 30,
    "amount": 50,
}


@dataclass(frozen=True)
class MergeCandidate:
    """An orphan from the other side, ranked against a chosen orphan."""
    invoice: UnifiedInvoice
    score: float
    amount_diff: Decimal
    doc_no_similarity: float
    date_diff_days: Optional[int]


def parse_doc_date(value: str) -> Optional[datetime]:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt)
        except (AttributeError, ValueError):
            continue
    return None


def _similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0
    return (longest - levenshtein(a, b)) / longest


def _score_candidate(source: InvoiceRecord, candidate: InvoiceRecord) -> Tuple[float, Decimal, float, Optional[int]]:
    score = 0.0

    gstin = normalize_gstin(source.supplier_gstin)
    if gstin and gstin == normalize_gstin(candidate.supplier_gstin):
        score += CANDIDATE_WEIGHTS["gstin"]

    score += _similarity(
        normalize_name(source.supplier_name), normalize_name(candidate.supplier_name)
    ) * CANDIDATE_WEIGHTS["supplier_name"]

    doc_no_similarity = _similarity(normalize_doc_no(source.doc_no), normalize_doc_no(candidate.doc_no))
    score += doc_no_similarity * CANDIDATE_WEIGHTS["doc_no"]

    date_diff = None
    d1, d2 = parse_doc_date(source.doc_date), parse_doc_date(candidate.doc_date)
    if d1 and d2:
        date_diff = abs((d1 - d2).days)
        if date_diff <= 3:
            score += CANDIDATE_WEIGHTS["date"]
        elif date_diff <= 15:
            score += CANDIDATE_WEIGHTS["date"] * 0.5
        score -= min(date_diff / 3, 30)

    amount_diff = abs(source.total_tax - candidate.total_tax)
    base = max(source.total_tax, Decimal("1"))
    proximity = max(0.0, 1 - float(amount_diff / base))
    score += proximity * CANDIDATE_WEIGHTS["amount"]

    return score, amount_diff, doc_no_similarity, date_diff


def rank_merge_candidates(
    invoices: Sequence[UnifiedInvoice],
    source_id: str,
) -> List[MergeCandidate]:
    """
    Rank the orphans on the other side as merge partners for source_id.

    Raises:
        ValueError: If source_id is unknown or not an orphan.
    """
    source = _find(invoices, source_id)
    if source.match_status == MatchStatus.ONLY_IN_GSTR2B:
        wanted = MatchStatus.ONLY_IN_BOOKS
    elif source.match_status == MatchStatus.ONLY_IN_BOOKS:
        wanted = MatchStatus.ONLY_IN_GSTR2B
    else:
        raise ValueError(f"Invoice {source_id!r} is not an orphan ({source.match_status})")

    ranked: List[MergeCandidate] = []
    for inv in invoices:
        if inv.match_status != wanted:
            continue
        score, amount_diff, doc_sim, date_diff = _score_candidate(source.primary, inv.primary)
        ranked.append(MergeCandidate(
            invoice=inv,
            score=score,
            amount_diff=amount_diff,
            doc_no_similarity=doc_sim,
            date_diff_days=date_diff,
        ))

    ranked.sort(key=lambda c: c.score, reverse=True)
    return ranked
