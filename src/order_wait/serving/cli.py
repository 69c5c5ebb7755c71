"""Command-line entry point.

Usage:
    # Create the orders/merchants tables
    python wait_time.py init-db

    # Print the current wait window for an order
    python wait_time.py estimate ORD-1001

    # Issue a tracking token for the public wait-time endpoint
    python wait_time.py token MERCHANT01 ORD-1001

    # Start the API server
    python wait_time.py serve
"""

import argparse
import json
import sys

from order_wait.config import configure_logging, settings
from order_wait.data.store import DataAccessError, OrderNotFoundError, OrderStore
from order_wait.estimation.window import build_wait_window_computer
from order_wait.serving.tokens import create_order_tracking_token


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Order wait-time estimation")
    parser.add_argument(
        "--db",
        default=None,
        help=f"SQLite database path (default: {settings.sqlite_db_path})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the order store tables")

    estimate_parser = subparsers.add_parser(
        "estimate", help="Estimate the wait window for an order"
    )
    estimate_parser.add_argument("order_number")
    estimate_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the wire response body instead of a summary",
    )

    token_parser = subparsers.add_parser(
        "token", help="Issue an order tracking token"
    )
    token_parser.add_argument("merchant_code")
    token_parser.add_argument("order_number")

    subparsers.add_parser("serve", help="Run the API server")

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    configure_logging()

    if args.command == "serve":
        from order_wait.serving.api import run_server

        run_server()
        return 0

    if args.command == "token":
        print(
            create_order_tracking_token(
                settings.order_tracking_token_secret,
                args.merchant_code,
                args.order_number,
            )
        )
        return 0

    store = OrderStore(args.db)

    if args.command == "init-db":
        store.initialize_schema()
        print(f"Initialized order store at {store.db_path}")
        return 0

    try:
        order, merchant = store.fetch_order_and_merchant(args.order_number)
    except OrderNotFoundError:
        print(f"Order not found: {args.order_number}", file=sys.stderr)
        return 1
    except DataAccessError as e:
        print(f"Failed to load order {args.order_number}: {e}", file=sys.stderr)
        return 1

    estimate = build_wait_window_computer(store).estimate(order, merchant)

    if args.json:
        print(json.dumps({"success": True, "data": estimate.to_response_data()}))
    elif estimate.is_terminal:
        print(f"{order.order_number} [{estimate.status}]: no wait")
    else:
        capped = "+" if estimate.capped_at_60 else ""
        print(
            f"{order.order_number} [{estimate.status}]: "
            f"{estimate.min_minutes}-{estimate.max_minutes}{capped} minutes "
            f"(base prep {estimate.base_prep_minutes} min, "
            f"queue ahead {estimate.queue_ahead})"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
