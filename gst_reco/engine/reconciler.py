"""Reconciliation engine tying the matching passes and user actions together."""

import logging
from dataclasses import replace
from typing import Collection, Optional, Sequence

from gst_reco.engine import actions
from gst_reco.engine.matcher import classify_remainder, match_by_gstin
from gst_reco.engine.models import (
    InvoiceRecord,
    MatchConfig,
    MatchStatus,
    Period,
    ReconciliationResult,
    SupplierSuggestion,
    UnifiedInvoice,
)
from gst_reco.engine.scoring import score_invoice
from gst_reco.engine.summary import calculate_summary
from gst_reco.engine.supplier_linker import apply_supplier_link, suggest_supplier_links

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """
    Reconciles GSTR-2B records against the purchase register (books).

    Matching Strategy:
    1. Keyed Match: same GSTIN and document number on both sides
    2. Supplier Suggestions: books suppliers without a GSTIN whose name is
       within a few edits of an unmatched GSTR-2B supplier (advisory only)
    3. Remainder: everything unpaired becomes "Only in GSTR-2B" / "Only in Books"
    4. Scoring: keyed pairs are graded against the enabled criteria

    The engine keeps no state between calls. Every method returns a new
    ReconciliationResult with a freshly computed summary.
    """

    def __init__(
        self,
        config: Optional[MatchConfig] = None,
        include_rcm_in_itc: bool = True,
    ):
        """
        Initialize the reconciliation engine.

        Args:
            config: Criteria and tolerances for scoring. Defaults to all
                criteria with a tolerance of 10.00.
            include_rcm_in_itc: Count reverse-charge invoices towards eligible ITC.
        """
        self.config = config or MatchConfig()
        self.include_rcm_in_itc = include_rcm_in_itc

    def reconcile(
        self,
        gstr2b_records: Sequence[InvoiceRecord],
        books_records: Sequence[InvoiceRecord],
    ) -> ReconciliationResult:
        """
        Perform reconciliation between GSTR-2B and books records.

        Args:
            gstr2b_records: Records from the GSTR-2B statement.
            books_records: Records from the purchase register.

        Returns:
            ReconciliationResult with invoices, summary and supplier suggestions.
        """
        # Phase 1: GSTIN + doc number
        keyed = match_by_gstin(gstr2b_records, books_records)

        # Phase 2: supplier suggestions, never applied here
        suggestions = suggest_supplier_links(keyed.unmatched_gstr2b, keyed.unmatched_books)

        # Phase 3: single-sided invoices
        taken = {inv.id for inv in keyed.pairs}
        remainder = classify_remainder(keyed.unmatched_gstr2b, keyed.unmatched_books, taken)

        # Phase 4: score the keyed pairs
        pairs = [score_invoice(inv, self.config) for inv in keyed.pairs]

        logger.info(
            "Reconciled %d GSTR-2B and %d books records into %d invoices",
            len(gstr2b_records), len(books_records), len(pairs) + len(remainder),
        )
        return self._result(
            pairs + remainder,
            gstr2b_records,
            books_records,
            suggestions,
            self.include_rcm_in_itc,
        )

    def recalculate(
        self,
        result: ReconciliationResult,
        invoices: Optional[Sequence[UnifiedInvoice]] = None,
        include_rcm_in_itc: Optional[bool] = None,
    ) -> ReconciliationResult:
        """Rebuild the summary for new invoices and/or a new RCM policy."""
        return self._result(
            result.invoices if invoices is None else invoices,
            result.gstr2b_records,
            result.books_records,
            result.supplier_suggestions,
            result.include_rcm_in_itc if include_rcm_in_itc is None else include_rcm_in_itc,
        )

    def set_rcm_policy(self, result: ReconciliationResult, include_rcm_in_itc: bool) -> ReconciliationResult:
        return self.recalculate(result, include_rcm_in_itc=include_rcm_in_itc)

    def override(
        self,
        result: ReconciliationResult,
        invoice_ids: Collection[str],
        status: MatchStatus,
        remark: str = "",
        bulk: bool = False,
        period: Optional[Period] = None,
        store: Optional[actions.CarryForwardSink] = None,
    ) -> ReconciliationResult:
        """
        Apply a manual status to the selected invoices.

        A Carried Forward status is handed to carry_forward(), which needs
        the current period and a store.

        Raises:
            ValueError: If status is CARRIED_FORWARD without period and store.
        """
        if status == MatchStatus.CARRIED_FORWARD:
            if period is None or store is None:
                raise ValueError("Carrying forward requires the current period and a store")
            return self.carry_forward(result, invoice_ids, period, store)

        invoices = actions.override_status(result.invoices, invoice_ids, status, remark, bulk=bulk)
        return self.recalculate(result, invoices)

    def carry_forward(
        self,
        result: ReconciliationResult,
        invoice_ids: Collection[str],
        period: Period,
        store: actions.CarryForwardSink,
    ) -> ReconciliationResult:
        invoices = actions.carry_forward(result.invoices, invoice_ids, period, store)
        return self.recalculate(result, invoices)

    def merge(self, result: ReconciliationResult, first_id: str, second_id: str) -> ReconciliationResult:
        """Pair two orphans chosen by the user and score the pair."""
        invoices = actions.merge_invoices(result.invoices, first_id, second_id, self.config)
        return self.recalculate(result, invoices)

    def confirm_supplier_link(
        self,
        result: ReconciliationResult,
        suggestion: SupplierSuggestion,
    ) -> ReconciliationResult:
        """
        Accept a supplier suggestion and reconcile again from scratch.

        The suggested GSTIN is written into the books records, which changes
        their keys, so manual edits made on the previous result do not carry
        over. The confirmed suggestion is not offered again.
        """
        books = apply_supplier_link(result.books_records, suggestion)
        fresh = self.reconcile(result.gstr2b_records, books)
        remaining = tuple(
            s for s in fresh.supplier_suggestions
            if s.books_supplier_name != suggestion.books_supplier_name
        )
        return replace(fresh, supplier_suggestions=remaining)

    def reject_supplier_link(
        self,
        result: ReconciliationResult,
        suggestion: SupplierSuggestion,
    ) -> ReconciliationResult:
        remaining = tuple(
            s for s in result.supplier_suggestions
            if s.books_supplier_name != suggestion.books_supplier_name
        )
        return replace(result, supplier_suggestions=remaining)

    def _result(
        self,
        invoices: Sequence[UnifiedInvoice],
        gstr2b_records: Sequence[InvoiceRecord],
        books_records: Sequence[InvoiceRecord],
        suggestions: Sequence[SupplierSuggestion],
        include_rcm_in_itc: bool,
    ) -> ReconciliationResult:
        summary = calculate_summary(invoices, gstr2b_records, books_records, include_rcm_in_itc)
        return ReconciliationResult(
            invoices=tuple(invoices),
            summary=summary,
            supplier_suggestions=tuple(suggestions),
            gstr2b_records=tuple(gstr2b_records),
            books_records=tuple(books_records),
            include_rcm_in_itc=include_rcm_in_itc,
        )
