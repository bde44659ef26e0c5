#!/usr/bin/env python3
"""
Initialize SQLite database for the Process Guide API
Creates the database file and its tables, optionally seeding the sample guides
"""
import asyncio
import sqlite3
import os
import sys

from services.process_guide_service import SCHEMA_SQL, ProcessGuideService

def init_database(db_path="process_guide.db", seed=False, overwrite=False):
    """Initialize the SQLite database"""

    # Make path absolute relative to this script
    if not os.path.isabs(db_path):
        script_dir = os.path.dirname(__file__)
        db_path = os.path.join(script_dir, db_path)

    print(f"Initializing database at: {db_path}")

    if os.path.exists(db_path):
        if not overwrite:
            response = input(f"Database file '{db_path}' already exists. Overwrite? (y/N): ")
            if response.lower() != 'y':
                print("Aborted.")
                return False
        os.remove(db_path)
        print("Existing database removed.")

    try:
        conn = sqlite3.connect(db_path)
        cursor = conn.cursor()
        cursor.executescript(SCHEMA_SQL)
        conn.commit()

        cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
        tables = cursor.fetchall()

        print(f"\n✓ Database initialized successfully!")
        print(f"✓ Created {len(tables)} tables:")
        for table in tables:
            print(f"  - {table[0]}")

        conn.close()
    except sqlite3.Error as e:
        print(f"\n✗ Error initializing database: {e}")
        return False

    if seed:
        seeded = asyncio.run(_seed(db_path))
        print(f"✓ Seeded {len(seeded)} sample guides")

    return True


async def _seed(db_path):
    service = ProcessGuideService(db_path)
    await service.connect()
    try:
        return await service.seed_samples()
    finally:
        await service.close()


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    db_path = args[0] if args else "process_guide.db"

    success = init_database(db_path, seed="--seed" in sys.argv, overwrite="--force" in sys.argv)
    sys.exit(0 if success else 1)
