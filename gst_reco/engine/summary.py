"""Summary statistics and ITC computation over a reconciled invoice list."""

from decimal import Decimal
from typing import Sequence

from gst_reco.engine.models import (
    ZERO,
    InvoiceRecord,
    MatchStatus,
    ReconciliationSummary,
    TaxBreakdown,
    UnifiedInvoice,
)


def calculate_summary(
    invoices: Sequence[UnifiedInvoice],
    gstr2b_records: Sequence[InvoiceRecord],
    books_records: Sequence[InvoiceRecord],
    include_rcm_in_itc: bool = True,
) -> ReconciliationSummary:
    """
    Compute the summary for an invoice list.

    This is a pure function of its arguments: call it again after every
    change to the list rather than adjusting a previous summary.

    Args:
        invoices: The current unified invoice list.
        gstr2b_records: All GSTR-2B records the list was built from.
        books_records: All books records the list was built from.
        include_rcm_in_itc: Count reverse-charge invoices towards eligible ITC.

    Returns:
        ReconciliationSummary for the list.
    """
    itc_as_per_gstr2b = TaxBreakdown.from_records(gstr2b_records)
    itc_as_per_books = TaxBreakdown.from_records(books_records)

    exact = partial = unmatched = ineligible = carried = 0
    exact_amount = partial_amount = unmatched_amount = ZERO
    ineligible_amount = carried_amount = ZERO
    not_in_books = books_only = ZERO
    igst = cgst = sgst = cess = ZERO

    for inv in invoices:
        amount: Decimal = inv.total_tax
        status = inv.match_status

        if status == MatchStatus.EXACT:
            exact += 1
            exact_amount += amount
        elif status in (MatchStatus.PARTIAL, MatchStatus.PROBABLE):
            partial += 1
            partial_amount += amount
        elif status == MatchStatus.INELIGIBLE_ITC:
            ineligible += 1
            ineligible_amount += amount
        elif status == MatchStatus.CARRIED_FORWARD:
            carried += 1
            carried_amount += amount
        else:
            unmatched += 1
            unmatched_amount += amount
            if status == MatchStatus.ONLY_IN_GSTR2B:
                not_in_books += amount
            elif status == MatchStatus.ONLY_IN_BOOKS:
                books_only += amount

        if inv.gstr2b is not None and inv.is_matched and (include_rcm_in_itc or not inv.gstr2b.rcm):
            igst += inv.gstr2b.igst
            cgst += inv.gstr2b.cgst
            sgst += inv.gstr2b.sgst
            cess += inv.gstr2b.cess

    final_eligible_itc = itc_as_per_gstr2b.total - not_in_books - ineligible_amount

    return ReconciliationSummary(
        total_gstr2b=len(gstr2b_records),
        total_books=len(books_records),
        exact_matches=exact,
        partial_probable_matches=partial,
        unmatched=unmatched,
        ineligible=ineligible,
        carried_forward=carried,
        exact_match_amount=exact_amount,
        partial_probable_match_amount=partial_amount,
        unmatched_amount=unmatched_amount,
        ineligible_amount=ineligible_amount,
        carried_forward_amount=carried_amount,
        itc_as_per_gstr2b_total=itc_as_per_gstr2b.total,
        itc_not_in_books_amount=not_in_books,
        itc_from_books_only_amount=books_only,
        net_itc_as_per_books=itc_as_per_books.total,
        final_eligible_itc=max(final_eligible_itc, ZERO),
        itc_as_per_gstr2b=itc_as_per_gstr2b,
        itc_as_per_books=itc_as_per_books,
        eligible_itc=TaxBreakdown(igst=igst, cgst=cgst, sgst=sgst, cess=cess),
    )
