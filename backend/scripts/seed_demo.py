#!/usr/bin/env python3
"""
Seed the demo organisation: 8 relationship managers, 3 teams, 5 client records.

Users, teams and resources are inserted directly. Manager edges, team
memberships and resource assignments go through the access engine so the
seeded team_members table already contains every manager-derived row.

Usage:
    python scripts/seed_demo.py
    python scripts/seed_demo.py --reset
    python scripts/seed_demo.py --database-url sqlite+aiosqlite:///./demo.db --create-tables

Run from backend/ or project root. Reads .env from project root.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from pathlib import Path

from dotenv import load_dotenv

_backend_dir: Path = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_backend_dir))

# .env at project root (backend/scripts -> backend -> project root)
load_dotenv(_backend_dir.parent / ".env")

from sqlalchemy import delete

from models.database import close_db, configure_database, get_session, init_db
from models.resource import Resource
from models.team import Team
from models.team_member import TeamMember
from models.team_resource import TeamResource
from models.user import User
from models.user_manager import UserManager
from services import team_access

logger = logging.getLogger("seed_demo")

DEMO_NAMESPACE = uuid.UUID("6f1c2b1e-4f7a-4d55-9a55-1b0c8f3e2a10")

USERS: list[tuple[str, str, str, str]] = [
    ("john", "john.doe@alpheya.com", "John Doe", "Head of RM"),
    ("sarah", "sarah.smith@alpheya.com", "Sarah Smith", "Senior RM"),
    ("mike", "mike.johnson@alpheya.com", "Mike Johnson", "Senior RM"),
    ("emma", "emma.wilson@alpheya.com", "Emma Wilson", "RM"),
    ("david", "david.brown@alpheya.com", "David Brown", "RM"),
    ("lisa", "lisa.garcia@alpheya.com", "Lisa Garcia", "RM"),
    ("tom", "tom.lee@alpheya.com", "Tom Lee", "RM"),
    ("anna", "anna.taylor@alpheya.com", "Anna Taylor", "Senior RM"),
]

TEAMS: list[tuple[str, str, bool]] = [
    ("apac", "Private Banking - APAC", True),
    ("emea", "Corporate Banking - EMEA", False),
    ("americas", "Retail Banking - Americas", True),
]

RESOURCES: list[tuple[str, str, str]] = [
    ("techcorp", "TechCorp Industries", "Corporate"),
    ("global_finance", "Global Finance Ltd", "Private"),
    ("startup", "Startup Ventures", "Retail"),
    ("megacorp", "MegaCorp Holdings", "Corporate"),
    ("family_trust", "Family Trust Fund", "Private"),
]

# (user, manager)
MANAGER_EDGES: list[tuple[str, str]] = [
    ("sarah", "john"),
    ("mike", "john"),
    ("emma", "sarah"),
    ("david", "sarah"),
    ("lisa", "mike"),
    ("tom", "mike"),
    ("anna", "john"),
]

# (team, user)
DIRECT_MEMBERS: list[tuple[str, str]] = [
    ("apac", "sarah"),
    ("apac", "emma"),
    ("apac", "david"),
    ("emea", "mike"),
    ("emea", "lisa"),
    ("emea", "tom"),
    ("americas", "anna"),
]

# (team, resource)
TEAM_RESOURCES: list[tuple[str, str]] = [
    ("apac", "global_finance"),
    ("apac", "family_trust"),
    ("emea", "techcorp"),
    ("emea", "megacorp"),
    ("americas", "startup"),
]


def demo_id(kind: str, key: str) -> uuid.UUID:
    """Stable id for a demo record so repeated seeds produce the same ids."""
    return uuid.uuid5(DEMO_NAMESPACE, f"{kind}:{key}")


async def clear_existing_data() -> None:
    async with get_session() as session:
        for model in (TeamResource, TeamMember, UserManager, Resource, Team, User):
            await session.execute(delete(model))
        await session.commit()
    print("Cleared existing data")


async def insert_records() -> None:
    async with get_session() as session:
        for key, email, name, role in USERS:
            session.add(User(id=demo_id("user", key), email=email, name=name, role=role))
        for key, name, auto_assign in TEAMS:
            session.add(
                Team(id=demo_id("team", key), name=name, auto_assign_clients=auto_assign)
            )
        for key, name, segment in RESOURCES:
            session.add(
                Resource(id=demo_id("resource", key), name=name, type="client", segment=segment)
            )
        await session.commit()
    print(f"Inserted {len(USERS)} users, {len(TEAMS)} teams, {len(RESOURCES)} resources")


async def apply_access_actions() -> int:
    """Build the hierarchy and memberships through the engine. Returns the mutation count."""
    mutations = 0
    for user_key, manager_key in MANAGER_EDGES:
        result = await team_access.assign_manager(
            demo_id("user", user_key), demo_id("user", manager_key)
        )
        mutations += len(result.log)
    for team_key, user_key in DIRECT_MEMBERS:
        result = await team_access.add_user_to_team(
            demo_id("user", user_key), demo_id("team", team_key)
        )
        mutations += len(result.log)
    for team_key, resource_key in TEAM_RESOURCES:
        result = await team_access.assign_resource_to_team(
            demo_id("team", team_key), demo_id("resource", resource_key)
        )
        mutations += len(result.log)
    return mutations


async def seed(reset: bool, create_tables: bool) -> None:
    try:
        if create_tables:
            await init_db()
        if reset:
            await clear_existing_data()
        await insert_records()
        mutations = await apply_access_actions()
    finally:
        await close_db()

    print("Database seeded successfully")
    print(f"   - Manager edges: {len(MANAGER_EDGES)}")
    print(f"   - Direct members: {len(DIRECT_MEMBERS)}")
    print(f"   - Team resources: {len(TEAM_RESOURCES)}")
    print(f"   - Engine log lines: {mutations}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the demo organisation")
    parser.add_argument("--reset", action="store_true", help="Delete existing rows first")
    parser.add_argument(
        "--create-tables", action="store_true", help="Create tables instead of relying on Alembic"
    )
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(name)s | %(message)s")
    if args.database_url:
        configure_database(args.database_url)
    asyncio.run(seed(reset=args.reset, create_tables=args.create_tables))


if __name__ == "__main__":
    main()
