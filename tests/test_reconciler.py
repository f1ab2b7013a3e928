"""Tests for the reconciliation engine."""

from decimal import Decimal

import pytest

from gst_reco.engine.models import (
    InvoiceRecord,
    MatchBasis,
    MatchConfig,
    MatchCriterion,
    MatchStatus,
    Period,
    Presence,
)
from gst_reco.engine.reconciler import ReconciliationEngine
from gst_reco.storage.carry_forward import CarryForwardStore


def make_record(
    doc_no: str,
    name: str = "ABC Corp",
    gstin: str = "29AABCU9567L1Z1",
    doc_type: str = "INV",
    igst: str = "0",
    cgst: str = "0",
    sgst: str = "0",
    rcm: bool = False,
) -> InvoiceRecord:
    """Helper to create test records."""
    return InvoiceRecord(
        supplier_name=name,
        supplier_gstin=gstin,
        doc_type=doc_type,
        doc_no=doc_no,
        doc_date="01-04-2024",
        taxable_value=Decimal("10000.00"),
        igst=Decimal(igst),
        cgst=Decimal(cgst),
        sgst=Decimal(sgst),
        rcm=rcm,
    )


@pytest.fixture
def gstr2b():
    return [
        make_record("INV/001", igst="1800.00"),
        make_record("INV/002", igst="3600.00"),
        make_record("KT-77", name="Kolkata Traders", gstin="19AAACK1234M1Z2", cgst="450.00", sgst="450.00"),
        make_record("CN/010", doc_type="CRN", igst="180.00"),
    ]


@pytest.fixture
def books():
    return [
        make_record("INV/001", igst="1800.00"),
        make_record("INV-002", igst="3000.00"),
        make_record("KT-77", name="Kolkatta Tradrs", gstin="", cgst="450.00", sgst="450.00"),
        make_record("B2B/567", name="XYZ Pvt Ltd", gstin="", cgst="450.00", sgst="450.00"),
    ]


class TestReconcile:
    """Test the matching passes end to end."""

    def test_statuses(self, gstr2b, books):
        result = ReconciliationEngine().reconcile(gstr2b, books)

        assert result.get("29AABCU9567L1Z1-INV001").match_status == MatchStatus.EXACT
        assert result.get("29AABCU9567L1Z1-INV002").match_status == MatchStatus.PARTIAL
        assert result.get("19AAACK1234M1Z2-KT77").match_status == MatchStatus.ONLY_IN_GSTR2B
        assert result.get("29AABCU9567L1Z1-CN010").match_status == MatchStatus.ONLY_IN_GSTR2B
        assert result.get("KOLKATTA TRADRS-KT77-books").match_status == MatchStatus.ONLY_IN_BOOKS
        assert result.get("XYZ PRIVATE LIMITED-B2B567-books").match_status == MatchStatus.ONLY_IN_BOOKS

    def test_pairs_have_both_sides(self, gstr2b, books):
        result = ReconciliationEngine().reconcile(gstr2b, books)

        inv = result.get("29AABCU9567L1Z1-INV001")
        assert inv.presence == Presence.BOTH
        assert inv.in_gstr2b and inv.in_books
        assert inv.match_basis == MatchBasis.GSTIN

    def test_every_record_in_exactly_one_invoice(self, gstr2b, books):
        result = ReconciliationEngine().reconcile(gstr2b, books)

        ids = [inv.id for inv in result.invoices]
        assert len(ids) == len(set(ids))
        used_gstr2b = [inv.gstr2b for inv in result.invoices if inv.gstr2b is not None]
        used_books = [inv.books for inv in result.invoices if inv.books is not None]
        assert sorted(map(id, used_gstr2b)) == sorted(map(id, gstr2b))
        assert sorted(map(id, used_books)) == sorted(map(id, books))

    def test_pairs_come_first(self, gstr2b, books):
        result = ReconciliationEngine().reconcile(gstr2b, books)

        presences = [inv.presence for inv in result.invoices]
        assert presences[:2] == [Presence.BOTH, Presence.BOTH]
        assert Presence.BOTH not in presences[2:]

    def test_duplicate_gstr2b_rows_both_kept(self):
        gstr2b = [make_record("INV/001", igst="100.00"), make_record("INV/001", igst="100.00")]
        books = [make_record("INV/001", igst="100.00")]

        result = ReconciliationEngine().reconcile(gstr2b, books)

        assert [inv.id for inv in result.invoices] == [
            "29AABCU9567L1Z1-INV001",
            "29AABCU9567L1Z1-INV001-2",
        ]
        assert result.invoices[1].match_status == MatchStatus.ONLY_IN_GSTR2B

    def test_supplier_suggestion_offered_not_applied(self, gstr2b, books):
        result = ReconciliationEngine().reconcile(gstr2b, books)

        assert len(result.supplier_suggestions) == 1
        suggestion = result.supplier_suggestions[0]
        assert suggestion.books_supplier_name == "KOLKATTA TRADRS"
        assert suggestion.gstr2b_gstin == "19AAACK1234M1Z2"
        assert result.books_records[2].supplier_gstin == ""

    def test_summary(self, gstr2b, books):
        result = ReconciliationEngine().reconcile(gstr2b, books)
        summary = result.summary

        assert summary.total_gstr2b == 4
        assert summary.total_books == 4
        assert summary.exact_matches == 1
        assert summary.partial_probable_matches == 1
        assert summary.unmatched == 4
        assert summary.match_rate == 50.0
        assert summary.itc_as_per_gstr2b_total == Decimal("6480.00")
        assert summary.itc_not_in_books_amount == Decimal("1080.00")
        assert summary.final_eligible_itc == Decimal("5400.00")

    def test_custom_criteria(self, gstr2b, books):
        config = MatchConfig(criteria=frozenset({MatchCriterion.SUPPLIER_GSTIN, MatchCriterion.DOC_NO}))
        result = ReconciliationEngine(config=config).reconcile(gstr2b, books)

        assert result.get("29AABCU9567L1Z1-INV002").match_status == MatchStatus.EXACT

    def test_empty_inputs(self):
        result = ReconciliationEngine().reconcile([], [])

        assert result.invoices == ()
        assert result.summary.match_rate == 0.0

    def test_views(self, gstr2b, books):
        result = ReconciliationEngine().reconcile(gstr2b, books)

        assert len(result.gstr2b_view) == 4
        assert len(result.books_view) == 4


class TestSupplierLinks:
    """Test confirming and rejecting supplier suggestions."""

    def test_confirm_reconciles_again(self, gstr2b, books):
        engine = ReconciliationEngine()
        result = engine.reconcile(gstr2b, books)

        linked = engine.confirm_supplier_link(result, result.supplier_suggestions[0])

        inv = linked.get("19AAACK1234M1Z2-KT77")
        assert inv.presence == Presence.BOTH
        assert inv.match_status == MatchStatus.EXACT
        assert linked.get("KOLKATTA TRADRS-KT77-books") is None
        assert linked.supplier_suggestions == ()
        assert linked.summary.exact_matches == 2

    def test_reject_removes_suggestion(self, gstr2b, books):
        engine = ReconciliationEngine()
        result = engine.reconcile(gstr2b, books)

        rejected = engine.reject_supplier_link(result, result.supplier_suggestions[0])

        assert rejected.supplier_suggestions == ()
        assert rejected.invoices == result.invoices


class TestActions:
    """Test user actions through the engine."""

    def test_override_recomputes_summary(self, gstr2b, books):
        engine = ReconciliationEngine()
        result = engine.reconcile(gstr2b, books)

        updated = engine.override(result, ["29AABCU9567L1Z1-CN010"], MatchStatus.INELIGIBLE_ITC, "credit note")

        assert updated.get("29AABCU9567L1Z1-CN010").remarks == "[Manual] credit note"
        assert updated.summary.ineligible == 1
        assert updated.summary.ineligible_amount == Decimal("180.00")
        assert updated.summary.unmatched == 3
        assert result.summary.ineligible == 0

    def test_override_to_carried_forward_needs_store(self, gstr2b, books):
        engine = ReconciliationEngine()
        result = engine.reconcile(gstr2b, books)

        with pytest.raises(ValueError, match="period"):
            engine.override(result, ["29AABCU9567L1Z1-CN010"], MatchStatus.CARRIED_FORWARD)

    def test_override_to_carried_forward_uses_store(self, tmp_path, gstr2b, books):
        engine = ReconciliationEngine()
        result = engine.reconcile(gstr2b, books)
        store = CarryForwardStore(tmp_path / "cf.json")

        updated = engine.override(
            result, ["XYZ PRIVATE LIMITED-B2B567-books"], MatchStatus.CARRIED_FORWARD,
            period=Period(month=4, year=2024), store=store,
        )

        assert updated.summary.carried_forward == 1
        assert len(store.load("2024-05").books) == 1

    def test_carry_forward_then_next_period(self, tmp_path, gstr2b, books):
        engine = ReconciliationEngine()
        store = CarryForwardStore(tmp_path / "cf.json")
        result = engine.reconcile(gstr2b, books)
        engine.carry_forward(result, ["XYZ PRIVATE LIMITED-B2B567-books"], Period(month=4, year=2024), store)

        carried = store.load(Period(month=5, year=2024))
        may = engine.reconcile(carried.gstr2b, carried.books)

        inv = may.invoices[0]
        assert inv.match_status == MatchStatus.ONLY_IN_BOOKS
        assert inv.remarks == "Carried forward from 2024-04"

    def test_merge(self, gstr2b, books):
        engine = ReconciliationEngine()
        result = engine.reconcile(gstr2b, books)

        merged = engine.merge(result, "KOLKATTA TRADRS-KT77-books", "19AAACK1234M1Z2-KT77")

        inv = merged.get("19AAACK1234M1Z2-KT77")
        assert inv.is_manual_match
        assert inv.match_status == MatchStatus.EXACT
        assert merged.invoices[-1] is inv
        assert merged.summary.exact_matches == 2

    def test_rcm_policy(self):
        gstr2b = [make_record("RCM/001", cgst="1080.00", sgst="1080.00", rcm=True)]
        books = [make_record("RCM/001", cgst="1080.00", sgst="1080.00", rcm=True)]
        engine = ReconciliationEngine()
        result = engine.reconcile(gstr2b, books)

        assert result.summary.eligible_itc.total == Decimal("2160.00")

        excluded = engine.set_rcm_policy(result, False)
        assert excluded.include_rcm_in_itc is False
        assert excluded.summary.eligible_itc.total == Decimal("0")

    def test_recalculate_idempotent(self, gstr2b, books):
        engine = ReconciliationEngine()
        result = engine.reconcile(gstr2b, books)

        assert engine.recalculate(result).summary == result.summary
