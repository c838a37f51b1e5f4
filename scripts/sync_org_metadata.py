#!/usr/bin/env python3
"""CLI script to crawl Salesforce org metadata into the cache.

Usage:
    uv run python scripts/sync_org_metadata.py --instance-url https://acme.my.salesforce.com --access-token 00D...
    uv run python scripts/sync_org_metadata.py --instance-url https://acme.my.salesforce.com --access-token 00D... --save-credential --user-id 005...
    uv run python scripts/sync_org_metadata.py --all
    uv run python scripts/sync_org_metadata.py --clear

Connects directly to the database using DATABASE_URL from environment or .env file.
Runs the same pipeline as the weekly scheduler; exits non-zero when any org fails.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Ensure project root is on sys.path so we can import src.orgmeta
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def run(args: argparse.Namespace) -> int:
    """Execute the requested action and return the process exit code."""
    from src.orgmeta.api.middleware.logging import configure_structlog
    from src.orgmeta.core.database import close_db, get_session, init_db
    from src.orgmeta.main import build_sync_service
    from src.orgmeta.metadata.credentials import SalesforceAuthRepository
    from src.orgmeta.metadata.schemas import SalesforceCredential

    configure_structlog()
    await init_db()
    service = build_sync_service()
    exit_code = 0

    try:
        if args.clear:
            deleted = await service.clear_cache()
            print(f"Cleared {deleted} cached org record(s)")

        if args.save_credential:
            await SalesforceAuthRepository(get_session).add(
                SalesforceCredential(
                    access_token=args.access_token,
                    instance_url=args.instance_url,
                    user_id=args.user_id,
                )
            )
            print(f"Stored credential for {args.instance_url}")

        if args.instance_url:
            result = await service.sync_organization(args.access_token, args.instance_url)
            if result.success:
                print(f"Synced {result.instance_key}:")
                print(f"  Standard objects: {result.standard_object_count}")
                print(f"  Custom objects:   {result.custom_object_count}")
                for name in result.custom_objects:
                    print(f"    - {name}")
            else:
                print(f"Sync failed for {result.instance_key}: {result.error}")
                exit_code = 1

        if args.all:
            fan_out = await service.sync_all_orgs()
            print(f"Synced {fan_out.synced_orgs} org(s):")
            for org in fan_out.results:
                status = "ok" if org.success else f"FAILED ({org.error})"
                print(f"  {org.instance_key}: {status}")
            if any(not org.success for org in fan_out.results):
                exit_code = 1
    finally:
        await close_db()

    return exit_code


def main() -> None:
    parser = argparse.ArgumentParser(description="Crawl Salesforce org metadata into the cache")
    parser.add_argument("--instance-url", default=None, help="Org base URL (any form)")
    parser.add_argument("--access-token", default=None, help="OAuth access token for the org")
    parser.add_argument("--user-id", default=None, help="Owner of the credential (with --save-credential)")
    parser.add_argument(
        "--save-credential",
        action="store_true",
        help="Store the credential so the weekly fan-out picks the org up",
    )
    parser.add_argument("--all", action="store_true", help="Crawl every org with a stored credential")
    parser.add_argument("--clear", action="store_true", help="Delete every cached org record first")
    args = parser.parse_args()

    if bool(args.instance_url) != bool(args.access_token):
        parser.error("--instance-url and --access-token must be provided together")
    if args.save_credential and not args.instance_url:
        parser.error("--save-credential requires --instance-url and --access-token")
    if not (args.instance_url or args.all or args.clear):
        parser.error("nothing to do: pass --instance-url/--access-token, --all or --clear")

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
