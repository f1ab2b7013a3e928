"""Tests for manual overrides, carry forward and merges."""

from decimal import Decimal

import pytest

from gst_reco.engine.actions import (
    carry_forward,
    merge_invoices,
    override_status,
    parse_doc_date,
    rank_merge_candidates,
)
from gst_reco.engine.models import (
    InvoiceRecord,
    MatchBasis,
    MatchConfig,
    MatchStatus,
    Period,
    UnifiedInvoice,
)


def make_record(doc_no: str, gstin: str = "29AABCU9567L1Z1", igst: str = "180.00",
                date: str = "01-04-2024", name: str = "ABC Corp") -> InvoiceRecord:
    return InvoiceRecord(
        supplier_name=name,
        supplier_gstin=gstin,
        doc_type="INV",
        doc_no=doc_no,
        doc_date=date,
        taxable_value=Decimal("1000.00"),
        igst=Decimal(igst),
    )


def gstr2b_only(inv_id: str, record: InvoiceRecord) -> UnifiedInvoice:
    return UnifiedInvoice(id=inv_id, gstr2b=record, books=None, match_status=MatchStatus.ONLY_IN_GSTR2B)


def books_only(inv_id: str, record: InvoiceRecord) -> UnifiedInvoice:
    return UnifiedInvoice(id=inv_id, gstr2b=None, books=record, match_status=MatchStatus.ONLY_IN_BOOKS)


class RecordingStore:
    """Collects what would have been written to the carry-forward store."""

    def __init__(self):
        self.calls = []

    def append(self, period, gstr2b, books):
        self.calls.append((period, list(gstr2b), list(books)))


@pytest.fixture
def invoices():
    rec = make_record("INV/001")
    return [
        UnifiedInvoice(
            id="29AABCU9567L1Z1-INV001", gstr2b=rec, books=rec,
            match_status=MatchStatus.EXACT, match_basis=MatchBasis.GSTIN,
        ),
        gstr2b_only("29AABCU9567L1Z1-INV005", make_record("INV/005")),
        books_only("29AABCU9567L1Z1-INV5", make_record("INV-5")),
    ]


class TestOverrideStatus:
    """Test manual status overrides."""

    def test_single_override(self, invoices):
        updated = override_status(invoices, ["29AABCU9567L1Z1-INV5"], MatchStatus.INELIGIBLE_ITC, "blocked credit")

        inv = updated[2]
        assert inv.match_status == MatchStatus.INELIGIBLE_ITC
        assert inv.remarks == "[Manual] blocked credit"
        assert inv.is_manual_match is True
        assert updated[0] is invoices[0]
        assert invoices[2].match_status == MatchStatus.ONLY_IN_BOOKS

    def test_bulk_override(self, invoices):
        ids = ["29AABCU9567L1Z1-INV005", "29AABCU9567L1Z1-INV5"]
        updated = override_status(invoices, ids, MatchStatus.PROBABLE, "checked", bulk=True)

        assert [inv.remarks for inv in updated[1:]] == ["[Bulk Manual] checked"] * 2
        assert all(inv.match_status == MatchStatus.PROBABLE for inv in updated[1:])

    def test_unknown_id_ignored(self, invoices):
        updated = override_status(invoices, ["nope"], MatchStatus.EXACT, "")
        assert updated == invoices

    def test_carried_forward_rejected(self, invoices):
        with pytest.raises(ValueError, match="carry_forward"):
            override_status(invoices, ["29AABCU9567L1Z1-INV5"], MatchStatus.CARRIED_FORWARD, "")


class TestCarryForward:
    """Test deferring invoices to the next period."""

    def test_records_stored_for_next_period(self, invoices):
        store = RecordingStore()
        updated = carry_forward(invoices, ["29AABCU9567L1Z1-INV5"], Period(month=4, year=2024), store)

        assert len(store.calls) == 1
        period, gstr2b, books = store.calls[0]
        assert period == "2024-05"
        assert gstr2b == []
        assert len(books) == 1
        assert books[0].doc_no == "INV-5"
        assert books[0].carried_forward_from == "2024-04"

        inv = updated[2]
        assert inv.match_status == MatchStatus.CARRIED_FORWARD
        assert inv.remarks == "Carried forward to 2024-05"
        assert inv.is_manual_match is True

    def test_paired_invoice_stores_both_sides(self, invoices):
        store = RecordingStore()
        carry_forward(invoices, ["29AABCU9567L1Z1-INV001"], Period(month=4, year=2024), store)

        _, gstr2b, books = store.calls[0]
        assert len(gstr2b) == 1
        assert len(books) == 1

    def test_december_rolls_to_january(self, invoices):
        store = RecordingStore()
        updated = carry_forward(invoices, ["29AABCU9567L1Z1-INV5"], Period(month=12, year=2024), store)

        assert store.calls[0][0] == "2025-01"
        assert updated[2].remarks == "Carried forward to 2025-01"


class TestMergeInvoices:
    """Test manual merging of two orphans."""

    def test_merge_orphans(self, invoices):
        merged = merge_invoices(
            invoices, "29AABCU9567L1Z1-INV005", "29AABCU9567L1Z1-INV5", MatchConfig(),
        )

        assert len(merged) == 2
        inv = merged[-1]
        assert inv.id == "29AABCU9567L1Z1-INV005"
        assert inv.gstr2b.doc_no == "INV/005"
        assert inv.books.doc_no == "INV-5"
        assert inv.match_status == MatchStatus.EXACT
        assert inv.match_basis == MatchBasis.GSTIN
        assert inv.remarks == "[Assisted Match]"
        assert inv.is_manual_match is True

    def test_merge_order_insensitive(self, invoices):
        a = merge_invoices(invoices, "29AABCU9567L1Z1-INV005", "29AABCU9567L1Z1-INV5", MatchConfig())
        b = merge_invoices(invoices, "29AABCU9567L1Z1-INV5", "29AABCU9567L1Z1-INV005", MatchConfig())

        assert a == b

    def test_merged_pair_is_scored(self):
        invoices = [
            gstr2b_only("G", make_record("INV/005", igst="180.00")),
            books_only("B", make_record("INV-5", igst="100.00")),
        ]
        merged = merge_invoices(invoices, "G", "B", MatchConfig())

        assert merged[0].match_status == MatchStatus.PARTIAL
        assert "Total Tax Mismatch (Diff: 80.00)" in merged[0].mismatch_reasons

    def test_merge_two_books_orphans_rejected(self):
        invoices = [books_only("B1", make_record("1")), books_only("B2", make_record("2"))]

        with pytest.raises(ValueError, match="Only in GSTR-2B"):
            merge_invoices(invoices, "B1", "B2", MatchConfig())

    def test_merge_matched_invoice_rejected(self, invoices):
        with pytest.raises(ValueError):
            merge_invoices(invoices, "29AABCU9567L1Z1-INV001", "29AABCU9567L1Z1-INV5", MatchConfig())

    def test_merge_overridden_pair_rejected(self, invoices):
        overridden = override_status(
            invoices, ["29AABCU9567L1Z1-INV001"], MatchStatus.ONLY_IN_GSTR2B, "not in books yet",
        )

        with pytest.raises(ValueError, match="books-only"):
            merge_invoices(overridden, "29AABCU9567L1Z1-INV001", "29AABCU9567L1Z1-INV5", MatchConfig())

    def test_merge_overridden_pair_keeps_records(self, invoices):
        overridden = override_status(
            invoices, ["29AABCU9567L1Z1-INV001"], MatchStatus.ONLY_IN_GSTR2B, "not in books yet",
        )

        with pytest.raises(ValueError):
            merge_invoices(overridden, "29AABCU9567L1Z1-INV5", "29AABCU9567L1Z1-INV001", MatchConfig())
        assert [inv.books.doc_no for inv in overridden if inv.books] == ["INV/001", "INV-5"]

    def test_merge_unknown_id_rejected(self, invoices):
        with pytest.raises(ValueError, match="Unknown invoice id"):
            merge_invoices(invoices, "missing", "29AABCU9567L1Z1-INV5", MatchConfig())


class TestRankMergeCandidates:
    """Test ranking of merge partners."""

    def test_best_candidate_first(self):
        invoices = [
            gstr2b_only("G", make_record("INV/005")),
            books_only("FAR", make_record("Z-999", gstin="", name="Other Supplier",
                                          igst="5000.00", date="30-04-2024")),
            books_only("NEAR", make_record("INV-5", date="02-04-2024")),
        ]

        ranked = rank_merge_candidates(invoices, "G")

        assert [c.invoice.id for c in ranked] == ["NEAR", "FAR"]
        assert ranked[0].date_diff_days == 1
        assert ranked[0].amount_diff == Decimal("0")
        assert ranked[0].score > ranked[1].score

    def test_only_other_side_considered(self):
        invoices = [
            gstr2b_only("G1", make_record("1")),
            gstr2b_only("G2", make_record("2")),
            books_only("B1", make_record("3")),
        ]

        ranked = rank_merge_candidates(invoices, "B1")

        assert {c.invoice.id for c in ranked} == {"G1", "G2"}

    def test_non_orphan_rejected(self, invoices):
        with pytest.raises(ValueError, match="not an orphan"):
            rank_merge_candidates(invoices, "29AABCU9567L1Z1-INV001")


class TestParseDocDate:

    def test_formats(self):
        assert parse_doc_date("05-04-2024").day == 5
        assert parse_doc_date("05/04/2024").month == 4

    def test_unparseable(self):
        assert parse_doc_date("April 5") is None
