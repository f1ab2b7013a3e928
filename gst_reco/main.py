"""CLI entry point for GSTR-2B reconciliation."""

import logging
import sys
from decimal import Decimal
from pathlib import Path
from typing import List, Optional, Tuple

import click

from gst_reco.engine.models import InvoiceRecord, MatchConfig, MatchCriterion, Period
from gst_reco.engine.reconciler import ReconciliationEngine
from gst_reco.parsers.csv_parser import InvoiceCSVParser
from gst_reco.parsers.gstr2b_json_parser import GSTR2BJSONParser
from gst_reco.reports.csv_export import export_csv
from gst_reco.reports.excel_report import ExcelReportGenerator
from gst_reco.storage.carry_forward import CarryForwardStore, with_carried_forward

logger = logging.getLogger(__name__)


def validate_tolerance(ctx, param, value):
    """Validate a tolerance is non-negative."""
    if value < 0:
        raise click.BadParameter("Tolerance must be non-negative.")
    return value


def validate_period(ctx, param, value):
    """Validate the period is in YYYY-MM format."""
    if value is None:
        return None
    try:
        return Period.parse(value)
    except ValueError as e:
        raise click.BadParameter(str(e))


def parse_records(path: Path) -> List[InvoiceRecord]:
    """Parse GSTR-2B JSON or a CSV/Excel register, depending on the extension."""
    if path.suffix.lower() == ".json":
        return GSTR2BJSONParser().parse(path)
    return InvoiceCSVParser().parse(path)


@click.command()
@click.option(
    "--gstr2b", "-g",
    required=True,
    type=click.Path(exists=True),
    help="Path to the GSTR-2B file (portal JSON, CSV or Excel).",
)
@click.option(
    "--books", "-b",
    required=True,
    type=click.Path(exists=True),
    help="Path to the purchase register (CSV or Excel).",
)
@click.option(
    "--output", "-o",
    required=True,
    type=click.Path(),
    help="Path for the output Excel report.",
)
@click.option(
    "--csv", "csv_output",
    type=click.Path(),
    default=None,
    help="Also write a flat CSV of all invoices to this path.",
)
@click.option(
    "--period", "-p",
    default=None,
    callback=validate_period,
    help="Return period being reconciled, as YYYY-MM.",
)
@click.option(
    "--store", "-s",
    type=click.Path(),
    default=None,
    help="Carry-forward store (JSON). Records carried forward to --period are included.",
)
@click.option(
    "--criterion", "-c",
    "criteria",
    multiple=True,
    type=click.Choice([c.value for c in MatchCriterion]),
    help="Criterion to score pairs on; repeat for several (default: all).",
)
@click.option(
    "--taxable-tolerance",
    default=10.0,
    type=float,
    callback=validate_tolerance,
    help="Allowed taxable value difference (default: 10.00).",
)
@click.option(
    "--tax-tolerance",
    default=10.0,
    type=float,
    callback=validate_tolerance,
    help="Allowed total tax and per-head difference (default: 10.00).",
)
@click.option(
    "--exclude-rcm",
    is_flag=True,
    default=False,
    help="Leave reverse-charge invoices out of eligible ITC.",
)
def main(
    gstr2b: str,
    books: str,
    output: str,
    csv_output: Optional[str],
    period: Optional[Period],
    store: Optional[str],
    criteria: Tuple[str, ...],
    taxable_tolerance: float,
    tax_tolerance: float,
    exclude_rcm: bool,
) -> None:
    """
    GSTR-2B Reconciliation Tool

    Matches the GSTR-2B statement against the purchase register and
    generates an Excel report with the ITC computation.

    Example:
        gst-reco --gstr2b 2b.json --books books.csv --output report.xlsx --period 2024-04
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    click.echo("=" * 60)
    click.echo("  GSTR-2B RECONCILIATION ENGINE")
    click.echo("=" * 60)

    try:
        if store and period is None:
            raise ValueError("--store needs --period to know which carried-forward entry to read.")

        # Step 1: Parse GSTR-2B
        click.echo(f"\n  Parsing GSTR-2B: {gstr2b}...")
        gstr2b_records = parse_records(Path(gstr2b))
        click.echo(f"   Found {len(gstr2b_records)} GSTR-2B documents")

        # Step 2: Parse books
        click.echo(f"\n  Parsing purchase register: {books}...")
        books_records = parse_records(Path(books))
        click.echo(f"   Found {len(books_records)} books entries")

        if not gstr2b_records:
            raise ValueError(f"No valid invoices found in {gstr2b}")
        if not books_records:
            raise ValueError(f"No valid invoices found in {books}")

        if store:
            gstr2b_records, books_records = with_carried_forward(
                CarryForwardStore(store), period, gstr2b_records, books_records,
            )

        # Step 3: Reconcile
        config = MatchConfig(
            criteria=frozenset(MatchCriterion(c) for c in criteria) if criteria else frozenset(MatchCriterion),
            taxable_value_tolerance=Decimal(str(taxable_tolerance)),
            total_tax_tolerance=Decimal(str(tax_tolerance)),
        )
        click.echo(
            f"\n  Reconciling ({len(config.criteria)} criteria, "
            f"tolerance: {config.taxable_value_tolerance} / {config.total_tax_tolerance})..."
        )
        engine = ReconciliationEngine(config=config, include_rcm_in_itc=not exclude_rcm)
        result = engine.reconcile(gstr2b_records, books_records)
        summary = result.summary

        # Step 4: Generate reports
        click.echo(f"\n  Generating report: {output}...")
        output_path = ExcelReportGenerator().generate(
            result, output, period=str(period) if period else None,
        )
        if csv_output:
            export_csv(result.invoices, csv_output)
            click.echo(f"   CSV written to {csv_output}")

        # Step 5: Print summary
        click.echo("\n" + "=" * 60)
        click.echo("  RECONCILIATION SUMMARY")
        click.echo("=" * 60)
        click.echo(f"  Match Rate:            {summary.match_rate:.1f}%")
        click.echo(f"  Exact Matches:         {summary.exact_matches}")
        click.echo(f"  Partial/Probable:      {summary.partial_probable_matches}")
        click.echo(f"  Unmatched:             {summary.unmatched}")
        click.echo(f"  ITC as per GSTR-2B:    {summary.itc_as_per_gstr2b_total:,.2f}")
        click.echo(f"  Less: not in Books:    {summary.itc_not_in_books_amount:,.2f}")
        click.echo(f"  Final Eligible ITC:    {summary.final_eligible_itc:,.2f}")
        click.echo(f"  ITC as per Books:      {summary.net_itc_as_per_books:,.2f}")
        click.echo(f"  Difference:            {summary.difference_to_reconcile:,.2f}")
        click.echo("=" * 60)

        if result.supplier_suggestions:
            click.echo("\n  SUPPLIER SUGGESTIONS (books entries without GSTIN)")
            for s in result.supplier_suggestions:
                click.echo(
                    f"   {s.books_supplier_name} -> {s.gstr2b_supplier_name} "
                    f"({s.gstr2b_gstin}, distance {s.distance})"
                )

        click.echo(f"\n  Report saved to: {output_path.absolute()}")

    except FileNotFoundError as e:
        click.echo(f"\n  ERROR: {e}", err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(f"\n  ERROR: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error during reconciliation")
        click.echo(f"\n  UNEXPECTED ERROR: {e}", err=True)
        sys.exit(2)


if __name__ == "__main__":
    main()
