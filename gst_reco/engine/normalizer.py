"""Canonical forms of GSTINs, supplier names and document numbers."""

import re
from typing import Optional

from gst_reco.engine.models import InvoiceRecord, Source

_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")
# "PVT LTD" has to be expanded before the bare "LTD" rule can see it.
_PVT_LTD = re.compile(r"\s*PVT\s*LTD\.?")
_LTD = re.compile(r"\s*\bLTD\b\.?")


def normalize_gstin(gstin: Optional[str]) -> str:
    """
    Normalize a GSTIN for keying.

    ' 29aabcu9567l1z1 ', '29-AABCU-9567-L1Z1' and '29AABCU 9567L1Z1' all
    become '29AABCU9567L1Z1'.
    """
    if not gstin:
        return ""
    return _NON_ALNUM.sub("", gstin.strip().upper())


def normalize_name(name: Optional[str]) -> str:
    """Normalize a supplier name, expanding PVT LTD and LTD suffixes."""
    if not name:
        return ""
    s = _WHITESPACE.sub(" ", name.strip().upper())
    s = _PUNCTUATION.sub("", s)
    s = _PVT_LTD.sub(" PRIVATE LIMITED", s, count=1)
    s = _LTD.sub(" LIMITED", s, count=1)
    return s.strip()


def normalize_doc_no(doc_no: Optional[str]) -> str:
    if not doc_no:
        return ""
    return _NON_ALNUM.sub("", doc_no.upper())


def gstin_key(record: InvoiceRecord) -> Optional[str]:
    """Key a record by GSTIN and document number, or None if either is blank."""
    doc_no = normalize_doc_no(record.doc_no)
    gstin = normalize_gstin(record.supplier_gstin)
    if not doc_no or not gstin:
        return None
    return f"{gstin}-{doc_no}"


def name_key(record: InvoiceRecord) -> Optional[str]:
    """Key a record by supplier name and document number, or None if either is blank."""
    doc_no = normalize_doc_no(record.doc_no)
    name = normalize_name(record.supplier_name)
    if not doc_no or not name:
        return None
    return f"{name}-{doc_no}"


def single_sided_key(record: InvoiceRecord, source: Source) -> str:
    """
    Identity of a record that found no counterpart.

    GSTIN-bearing records keep their GSTIN key. Everything else falls back to
    the supplier name, suffixed with the source so the two sides never share
    a name-based id.
    """
    key = gstin_key(record)
    if key:
        return key
    base = name_key(record) or (
        f"{normalize_name(record.supplier_name)}-{normalize_doc_no(record.doc_no)}"
    )
    return f"{base}-{source.value}"
