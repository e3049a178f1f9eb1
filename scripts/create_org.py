from __future__ import annotations

import argparse
import asyncio
import sys

from querybridge.persistence.db import Database
from querybridge.persistence.repos.organizations import create_organization, get_organization


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Register an organization in the metadata store")
    parser.add_argument("--org-id", required=True, help="Organization identifier sent as X-Org-Id")
    parser.add_argument("--name", required=True, help="Display name")
    return parser


async def _create_org(args: argparse.Namespace) -> int:
    database = Database.from_settings()
    try:
        async with database.session() as session:
            if await get_organization(session, args.org_id) is not None:
                print(f"organization already exists: {args.org_id}", file=sys.stderr)
                return 1
            await create_organization(session, org_id=args.org_id, name=args.name)
            await session.commit()
    finally:
        await database.dispose()
    print(f"organization created: {args.org_id}")
    return 0


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(_create_org(args))
    except Exception as exc:  # noqa: BLE001 - surface provisioning failures clearly
        print(f"create_org failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
