"""Data models for the reconciliation engine."""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, List, Optional, Sequence, Tuple


ZERO = Decimal("0")


class Source(Enum):
    """Origin of an invoice record."""
    GSTR2B = "gstr2b"
    BOOKS = "books"


class MatchStatus(Enum):
    """Status of a unified invoice."""
    EXACT = "Exact Match"
    PARTIAL = "Partial Match"
    PROBABLE = "Probable Match"
    UNMATCHED = "Unmatched"
    ONLY_IN_GSTR2B = "Only in GSTR-2B"
    ONLY_IN_BOOKS = "Only in Books"
    INELIGIBLE_ITC = "Ineligible ITC"
    CARRIED_FORWARD = "Carried Forward"


class MatchBasis(Enum):
    """Which identity paired the two sides of an invoice."""
    GSTIN = "GSTIN"
    NAME = "Name"
    NONE = "N/A"


class Presence(Enum):
    """Which sources an invoice was found in."""
    GSTR2B_ONLY = "gstr2b_only"
    BOOKS_ONLY = "books_only"
    BOTH = "both"


class MatchCriterion(Enum):
    """Comparison criteria, declared in evaluation order."""
    SUPPLIER_GSTIN = "supplier_gstin"
    DOC_TYPE = "doc_type"
    DOC_NO = "doc_no"
    DOC_DATE = "doc_date"
    TAXABLE_VALUE = "taxable_value"
    TOTAL_TAX = "total_tax"
    TAX_HEADS = "tax_heads"


@dataclass(frozen=True)
class InvoiceRecord:
    """A single invoice line as read from one source."""
    supplier_name: str
    supplier_gstin: str
    doc_type: str
    doc_no: str
    doc_date: str
    taxable_value: Decimal = ZERO
    igst: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    cess: Decimal = ZERO
    supply_type: str = "B2B"
    rcm: bool = False
    carried_forward_from: Optional[str] = None

    @property
    def total_tax(self) -> Decimal:
        """Sum of the four tax heads."""
        return self.igst + self.cgst + self.sgst + self.cess

    def with_gstin(self, gstin: str) -> "InvoiceRecord":
        return replace(self, supplier_gstin=gstin)

    def carried_forward(self, period: str) -> "InvoiceRecord":
        return replace(self, carried_forward_from=period)

    def __repr__(self) -> str:
        return (
            f"InvoiceRecord(gstin={self.supplier_gstin!r}, doc_no={self.doc_no!r}, "
            f"date={self.doc_date!r}, tax={self.total_tax}, name={self.supplier_name[:30]!r})"
        )


@dataclass(frozen=True)
class MatchConfig:
    """Criteria and tolerances used to score a paired invoice."""
    criteria: FrozenSet[MatchCriterion] = frozenset(MatchCriterion)
    taxable_value_tolerance: Decimal = Decimal("10.00")
    total_tax_tolerance: Decimal = Decimal("10.00")

    @property
    def enabled_criteria(self) -> List[MatchCriterion]:
        """Enabled criteria in their fixed declaration order."""
        return [c for c in MatchCriterion if c in self.criteria]


@dataclass(frozen=True)
class UnifiedInvoice:
    """One row of the reconciled view, pairing up to one record per source."""
    id: str
    gstr2b: Optional[InvoiceRecord]
    books: Optional[InvoiceRecord]
    match_status: Optional[MatchStatus]
    match_basis: MatchBasis = MatchBasis.NONE
    mismatch_reasons: Tuple[str, ...] = ()
    remarks: str = ""
    is_manual_match: bool = False

    @property
    def in_gstr2b(self) -> bool:
        return self.gstr2b is not None

    @property
    def in_books(self) -> bool:
        return self.books is not None

    @property
    def presence(self) -> Presence:
        if self.gstr2b is not None and self.books is not None:
            return Presence.BOTH
        if self.gstr2b is not None:
            return Presence.GSTR2B_ONLY
        return Presence.BOOKS_ONLY

    @property
    def primary(self) -> InvoiceRecord:
        """The record shown for this invoice: GSTR-2B data wins over books."""
        return self.gstr2b if self.gstr2b is not None else self.books

    @property
    def total_tax(self) -> Decimal:
        return self.primary.total_tax

    @property
    def rcm(self) -> bool:
        return self.primary.rcm

    @property
    def is_matched(self) -> bool:
        return self.match_status in (MatchStatus.EXACT, MatchStatus.PARTIAL, MatchStatus.PROBABLE)


@dataclass(frozen=True)
class SupplierSuggestion:
    """A proposed GSTIN for a books supplier recorded without one."""
    books_supplier_name: str
    gstr2b_supplier_name: str
    gstr2b_gstin: str
    distance: int


@dataclass(frozen=True)
class TaxBreakdown:
    """Tax amounts split by head."""
    igst: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    cess: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.igst + self.cgst + self.sgst + self.cess

    @classmethod
    def from_records(cls, records: Sequence[InvoiceRecord]) -> "TaxBreakdown":
        return cls(
            igst=sum((r.igst for r in records), ZERO),
            cgst=sum((r.cgst for r in records), ZERO),
            sgst=sum((r.sgst for r in records), ZERO),
            cess=sum((r.cess for r in records), ZERO),
        )


@dataclass(frozen=True)
class ReconciliationSummary:
    """Summary statistics and ITC computation for a reconciled invoice list."""
    total_gstr2b: int = 0
    total_books: int = 0
    exact_matches: int = 0
    partial_probable_matches: int = 0
    unmatched: int = 0
    ineligible: int = 0
    carried_forward: int = 0
    exact_match_amount: Decimal = ZERO
    partial_probable_match_amount: Decimal = ZERO
    unmatched_amount: Decimal = ZERO
    ineligible_amount: Decimal = ZERO
    carried_forward_amount: Decimal = ZERO
    itc_as_per_gstr2b_total: Decimal = ZERO
    itc_not_in_books_amount: Decimal = ZERO
    itc_from_books_only_amount: Decimal = ZERO
    net_itc_as_per_books: Decimal = ZERO
    final_eligible_itc: Decimal = ZERO
    itc_as_per_gstr2b: TaxBreakdown = field(default_factory=TaxBreakdown)
    itc_as_per_books: TaxBreakdown = field(default_factory=TaxBreakdown)
    eligible_itc: TaxBreakdown = field(default_factory=TaxBreakdown)

    @property
    def total_matched(self) -> int:
        return self.exact_matches + self.partial_probable_matches

    @property
    def match_rate(self) -> float:
        """Matched invoices as a percentage of GSTR-2B records."""
        if self.total_gstr2b == 0:
            return 0.0
        return (self.total_matched / self.total_gstr2b) * 100

    @property
    def difference_to_reconcile(self) -> Decimal:
        return self.final_eligible_itc - self.net_itc_as_per_books


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of a reconciliation pass or of an action applied to one."""
    invoices: Tuple[UnifiedInvoice, ...]
    summary: ReconciliationSummary
    supplier_suggestions: Tuple[SupplierSuggestion, ...]
    gstr2b_records: Tuple[InvoiceRecord, ...]
    books_records: Tuple[InvoiceRecord, ...]
    include_rcm_in_itc: bool = True

    def get(self, invoice_id: str) -> Optional[UnifiedInvoice]:
        for invoice in self.invoices:
            if invoice.id == invoice_id:
                return invoice
        return None

    def by_status(self, *statuses: MatchStatus) -> List[UnifiedInvoice]:
        return [inv for inv in self.invoices if inv.match_status in statuses]

    @property
    def gstr2b_view(self) -> List[UnifiedInvoice]:
        return [inv for inv in self.invoices if inv.in_gstr2b]

    @property
    def books_view(self) -> List[UnifiedInvoice]:
        return [inv for inv in self.invoices if inv.in_books]


@dataclass(frozen=True)
class Period:
    """A monthly return period."""
    month: int
    year: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {self.month}")

    @classmethod
    def parse(cls, value: str) -> "Period":
        """Parse a period in YYYY-MM format."""
        try:
            year, month = value.strip().split("-")
            return cls(month=int(month), year=int(year))
        except (AttributeError, ValueError) as e:
            raise ValueError(f"Invalid period {value!r}, expected YYYY-MM") from e

    def next(self) -> "Period":
        if self.month == 12:
            return Period(month=1, year=self.year + 1)
        return Period(month=self.month + 1, year=self.year)

    def __str__(self) -> str:
        return f"{self.year}-{self.month:02d}"
