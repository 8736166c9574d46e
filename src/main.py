from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from config import config
from db.db import DB_PATH, init_db
from domain.calculation import CalculationResult, Skipped
from domain.context import CartContext, OrderContext
from services.nexus import NexusChecker
from services.tax_calculator import CalculationOutcome, build_client, build_tax_calculator
from utils.formatting import format_currency, format_rate

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def run(kind: str, context_path: Path, *, db_file: Path, refresh_nexus: bool) -> CalculationOutcome:
    settings = config()
    session = init_db(db_file=db_file)
    client = build_client(settings)
    nexus = NexusChecker.from_source(client) if refresh_nexus else None
    calculator = build_tax_calculator(settings, session, client=client, nexus=nexus)

    raw = context_path.read_text(encoding="utf-8")
    if kind == "cart":
        outcome = calculator.calculate_for_cart(CartContext.model_validate_json(raw))
    else:
        outcome = calculator.calculate_for_order(OrderContext.model_validate_json(raw))

    render_outcome(outcome)
    return outcome


def render_outcome(outcome: CalculationOutcome) -> None:
    if isinstance(outcome, Skipped):
        print(f"No tax calculated ({outcome.reason.value}): {outcome.detail}")
        return

    print_result(outcome)


def print_result(result: CalculationResult) -> None:
    source = "cache" if result.from_cache else "tax API"
    print(f"Tax calculated from {source}:")
    print(f"  Has nexus:       {'yes' if result.has_nexus else 'no'}")
    print(f"  Freight taxable: {'yes' if result.freight_taxable else 'no'}")
    print(f"  Shipping rate:   {format_rate(result.shipping_rate)} (rate id {result.shipping_rate_id})")
    for line_id, line_rate in sorted(result.line_item_rates.items()):
        print(
            f"  {line_id}: {format_rate(line_rate.combined_tax_rate)}"
            f" tax {format_currency(line_rate.tax_collectable)}"
            f" on {format_currency(line_rate.line_total)}"
            f" (rate id {result.rate_ids.get(line_id)})"
        )
    if result.rate_errors:
        print(f"  Rates not stored: {', '.join(result.rate_errors)}")


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Calculate sales tax for a cart or order and sync local tax rates.")
    parser.add_argument("kind", choices=("cart", "order"))
    parser.add_argument("context", type=Path, help="JSON file describing the cart or order")
    parser.add_argument("--db", type=Path, default=PROJECT_ROOT / DB_PATH)
    parser.add_argument("--refresh-nexus", action="store_true", help="Load nexus regions from the tax API first")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    run(args.kind, args.context, db_file=args.db, refresh_nexus=args.refresh_nexus)


if __name__ == "__main__":
    main()
