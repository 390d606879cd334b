import argparse
import json
import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any
from uuid import UUID

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.api.auth_utils import ACCESS_TOKEN_EXPIRE_MINUTES, create_access_token
from src.app_shell.context import ServiceContext, default_db_path, default_rules_path
from src.core.entities import Actor
from src.core.errors import NewsletterError
from src.rules.loader import load_rules

logger = logging.getLogger("cli")


def get_context(db_path: str, rules_path: Path) -> ServiceContext:
    if not rules_path.exists():
        logger.error("Rules file %s not found.", rules_path)
        sys.exit(1)

    rules = load_rules(rules_path)
    return ServiceContext.create(db_path, rules)


def emit(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def handle_migrate(args: argparse.Namespace) -> None:
    applied = SQLiteMigrator(args.db).run_migrations()
    emit({"applied": applied})


def handle_send_due(ctx: ServiceContext, args: argparse.Namespace) -> None:
    results = ctx.newsletter_service.scan_and_send_due()
    emit(
        {
            "message": f"Processed {len(results)} owners",
            "results": [r.to_dict() for r in results],
        }
    )


def handle_send_now(ctx: ServiceContext, args: argparse.Namespace) -> None:
    owner = ctx.owner_repo.get_by_username(args.username)
    if owner is None:
        logger.error("Owner %s not found.", args.username)
        sys.exit(1)

    try:
        item_ids = [UUID(i) for i in args.item_id] if args.item_id else None
    except ValueError:
        logger.error("Invalid item id in %s.", args.item_id)
        sys.exit(1)
    try:
        outcome = ctx.newsletter_service.send_now(Actor.system(), owner.id, item_ids)
    except NewsletterError as e:
        logger.error("Send failed for %s: %s", args.username, e)
        sys.exit(1)
    emit(outcome.to_dict())


def handle_reconcile(ctx: ServiceContext, args: argparse.Namespace) -> None:
    result = ctx.newsletter_service.reconcile()
    emit({"reconciled": [str(i) for i in result.reconciled], "count": result.count})


def handle_issue_token(ctx: ServiceContext, args: argparse.Namespace) -> None:
    owner = ctx.owner_repo.get_by_username(args.username)
    if owner is None:
        logger.error("Owner %s not found.", args.username)
        sys.exit(1)

    token = create_access_token(
        {"sub": str(owner.id), "role": owner.role},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    emit({"owner_id": str(owner.id), "access_token": token, "token_type": "bearer"})


def main() -> None:
    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(description="Creator Newsletter CLI")
    parser.add_argument("--db", default=default_db_path(), help="SQLite database path")
    parser.add_argument("--rules", default=str(default_rules_path()), help="Path to rules.yaml")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # migrate
    subparsers.add_parser("migrate", help="Apply pending database migrations")

    # send-due
    subparsers.add_parser("send-due", help="Send digests to every owner that is due")

    # send-now
    send_parser = subparsers.add_parser("send-now", help="Send one owner's newsletter now")
    send_parser.add_argument("username", help="Owner username")
    send_parser.add_argument(
        "--item-id", action="append", help="Item to include (repeatable); omit for automatic mode"
    )

    # reconcile
    subparsers.add_parser("reconcile", help="Fail deliveries abandoned in 'sending'")

    # issue-token
    token_parser = subparsers.add_parser("issue-token", help="Print an admin API token for an owner")
    token_parser.add_argument("username", help="Owner username")

    args = parser.parse_args()

    if args.command == "migrate":
        handle_migrate(args)
        return

    ctx = get_context(args.db, Path(args.rules))

    if args.command == "send-due":
        handle_send_due(ctx, args)
    elif args.command == "send-now":
        handle_send_now(ctx, args)
    elif args.command == "reconcile":
        handle_reconcile(ctx, args)
    elif args.command == "issue-token":
        handle_issue_token(ctx, args)


if __name__ == "__main__":
    main()
