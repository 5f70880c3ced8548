from __future__ import annotations

import argparse
import json

from backoffice.core.config import get_settings
from backoffice.core.logging import configure_logging
from backoffice.core.security import issue_claims_token
from backoffice.domain.errors import BackofficeError
from backoffice.domain.orders.models import ORDER_STATUSES
from backoffice.domain.orders.service import OrderService
from backoffice.governance import AdminClaims, parse_claims
from backoffice.persistence.pg import configure_engine, init_db, session_scope


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Card grading back office CLI")
    parser.add_argument("--database-url", default=None, help="Override GB_DATABASE_URL")
    top = parser.add_subparsers(dest="command", required=True)

    db = top.add_parser("db", help="Database operations")
    db_sub = db.add_subparsers(dest="db_command", required=True)
    db_sub.add_parser("init", help="Create tables")

    token = top.add_parser("token", help="Claims token operations")
    token_sub = token.add_subparsers(dest="token_command", required=True)
    issue = token_sub.add_parser("issue", help="Issue a signed claims token")
    issue.add_argument("--role", choices=["admin", "store_owner", "customer"], required=True)
    issue.add_argument("--store-id", default=None)
    issue.add_argument("--customer-id", default=None)
    issue.add_argument("--subject", default=None)
    issue.add_argument("--ttl", type=int, default=None, help="Lifetime in seconds")
    issue.add_argument("--no-api-access", action="store_true")

    orders = top.add_parser("orders", help="Order operations")
    orders_sub = orders.add_subparsers(dest="orders_command", required=True)
    advance = orders_sub.add_parser("advance", help="Move an order to its next status")
    advance.add_argument("order_id")
    advance.add_argument("status", choices=list(ORDER_STATUSES))
    advance.add_argument("--performed-by", default=None)

    return parser


def _issue_token(args: argparse.Namespace) -> int:
    claims = parse_claims(
        {
            "role": args.role,
            "store_id": args.store_id,
            "customer_id": args.customer_id,
            "subject": args.subject,
            "api_access": not args.no_api_access,
        }
    )
    print(issue_claims_token(claims, ttl_seconds=args.ttl))
    return 0


def _advance_order(args: argparse.Namespace) -> int:
    init_db()
    claims = AdminClaims(subject=get_settings().admin_actor_id)
    with session_scope() as session:
        order = OrderService(session).update_status(
            args.order_id,
            args.status,
            args.performed_by or claims.subject,
            claims,
        )
        print(json.dumps(order.model_dump(mode="json"), ensure_ascii=False, indent=2))
    return 0


def main() -> int:
    configure_logging()
    parser = _build_parser()
    args = parser.parse_args()
    if args.database_url:
        configure_engine(args.database_url)

    try:
        if args.command == "db" and args.db_command == "init":
            init_db()
            return 0
        if args.command == "token" and args.token_command == "issue":
            return _issue_token(args)
        if args.command == "orders" and args.orders_command == "advance":
            return _advance_order(args)
    except BackofficeError as exc:
        parser.exit(1, f"error: {exc}\n")

    parser.error("unsupported command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
