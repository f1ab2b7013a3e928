"""Criteria-based scoring of paired invoices."""

import logging
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from gst_reco.engine.models import (
    InvoiceRecord,
    MatchConfig,
    MatchCriterion,
    MatchStatus,
    UnifiedInvoice,
)

logger = logging.getLogger(__name__)

# Pairs scoring at least (enabled criteria - PARTIAL_SLACK) are partial matches.
PARTIAL_SLACK = 2

# A check returns None when the criterion holds, otherwise the mismatch reason.
Check = Callable[[InvoiceRecord, InvoiceRecord, MatchConfig], Optional[str]]


def _keyed(gstr2b: InvoiceRecord, books: InvoiceRecord, config: MatchConfig) -> Optional[str]:
    # GSTIN and doc number are what paired the invoice in the first place.
    return None


def _doc_type(gstr2b: InvoiceRecord, books: InvoiceRecord, config: MatchConfig) -> Optional[str]:
    if books.doc_type.upper().startswith(gstr2b.doc_type.upper()):
        return None
    return "Doc Type Mismatch"


def _doc_date(gstr2b: InvoiceRecord, books: InvoiceRecord, config: MatchConfig) -> Optional[str]:
    if gstr2b.doc_date == books.doc_date:
        return None
    return "Date Mismatch"


def _taxable_value(gstr2b: InvoiceRecord, books: InvoiceRecord, config: MatchConfig) -> Optional[str]:
    diff = abs(gstr2b.taxable_value - books.taxable_value)
    if diff <= config.taxable_value_tolerance:
        return None
    return f"Taxable Val Mismatch (Diff: {diff:.2f})"


def _total_tax(gstr2b: InvoiceRecord, books: InvoiceRecord, config: MatchConfig) -> Optional[str]:
    diff = abs(gstr2b.total_tax - books.total_tax)
    if diff <= config.total_tax_tolerance:
        return None
    return f"Total Tax Mismatch (Diff: {diff:.2f})"


def _tax_heads(gstr2b: InvoiceRecord, books: InvoiceRecord, config: MatchConfig) -> Optional[str]:
    tol = config.total_tax_tolerance
    heads_match = (
        abs(gstr2b.igst - books.igst) <= tol
        and abs(gstr2b.cgst - books.cgst) <= tol
        and abs(gstr2b.sgst - books.sgst) <= tol
    )
    return None if heads_match else "Tax Head Mismatch"


CHECKS: Dict[MatchCriterion, Check] = {
    MatchCriterion.SUPPLIER_GSTIN: _keyed,
    MatchCriterion.DOC_TYPE: _doc_type,
    MatchCriterion.DOC_NO: _keyed,
    MatchCriterion.DOC_DATE: _doc_date,
    MatchCriterion.TAXABLE_VALUE: _taxable_value,
    MatchCriterion.TOTAL_TAX: _total_tax,
    MatchCriterion.TAX_HEADS: _tax_heads,
}


def classify(score: int, enabled: int) -> MatchStatus:
    """Map a criteria score onto a match status."""
    if enabled == 0:
        return MatchStatus.UNMATCHED
    if score == enabled:
        return MatchStatus.EXACT
    if score >= enabled - PARTIAL_SLACK:
        return MatchStatus.PARTIAL
    return MatchStatus.UNMATCHED


def score_invoice(invoice: UnifiedInvoice, config: MatchConfig) -> UnifiedInvoice:
    """
    Score a paired invoice against the enabled criteria.

    Returns a new invoice with match_status and mismatch_reasons set; the
    reasons follow the fixed criterion order. Carried-forward invoices come
    back untouched, and single-sided ones get their "only in" status.

    Args:
        invoice: Invoice to score.
        config: Criteria and tolerances to apply.

    Returns:
        The scored invoice.
    """
    if invoice.match_status == MatchStatus.CARRIED_FORWARD:
        logger.warning("Refusing to re-score carried forward invoice %s", invoice.id)
        return invoice

    if invoice.gstr2b is None or invoice.books is None:
        status = MatchStatus.ONLY_IN_GSTR2B if invoice.in_gstr2b else MatchStatus.ONLY_IN_BOOKS
        return replace(invoice, match_status=status, mismatch_reasons=())

    enabled = config.enabled_criteria
    reasons: List[str] = []
    score = 0
    for criterion in enabled:
        reason = CHECKS[criterion](invoice.gstr2b, invoice.books, config)
        if reason is None:
            score += 1
        else:
            reasons.append(reason)

    status = classify(score, len(enabled))
    logger.debug("Scored %s: %d/%d -> %s", invoice.id, score, len(enabled), status.value)
    return replace(invoice, match_status=status, mismatch_reasons=tuple(reasons))
