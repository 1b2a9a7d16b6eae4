"""Initialize the database schema for the report search backend.

Creates the report, tag and report_tag tables. Run this before starting the
API server. Pass ``--seed-tags`` to load the starter tag catalog and
``--drop`` for a clean start.
"""

import argparse
import asyncio
import sys

from sqlalchemy import select

from config.tag_catalog import TAG_CATALOG
from reportsearch.config import get_settings
from reportsearch.db import Database
from reportsearch.models import Base, Tag


async def seed_tags(database: Database) -> int:
    """Insert catalog tags that are not present yet; returns the number added."""
    added = 0
    async with database.session() as session:
        existing = set((await session.execute(select(Tag.name))).scalars().all())
        for entry in TAG_CATALOG:
            if entry["name"] in existing:
                continue
            session.add(Tag(name=entry["name"], color=entry.get("color")))
            added += 1
        await session.commit()
    return added


async def init_database(drop: bool, seed: bool):
    """Create all database tables."""
    settings = get_settings()
    database = Database.from_settings(settings.db)
    print(f"Initializing database: {settings.db.url}")

    try:
        if drop:
            await database.drop_all()
            print("✓ Dropped existing tables")

        await database.create_all()
        print("✓ Created all tables")

        if seed:
            added = await seed_tags(database)
            print(f"✓ Seeded {added} tags")
    finally:
        await database.close()

    print("\n✅ Database initialization complete!")
    print(f"Tables: {', '.join(Base.metadata.tables.keys())}")


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--drop", action="store_true", help="Drop existing tables first")
    parser.add_argument("--seed-tags", action="store_true", help="Load config/tag_catalog.py")
    args = parser.parse_args()

    try:
        await init_database(drop=args.drop, seed=args.seed_tags)
    except Exception as e:
        print(f"\n❌ Error initializing database: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
