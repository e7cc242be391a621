# init_db.py (in backend folder)

import sys

from sqlalchemy import inspect

from mailslot.infra.database import get_engine, init_db, test_connection
from mailslot.models.base import Base
from mailslot.models.message import StoredMessage  # noqa: F401  registers the table


def reset_db(drop: bool = False):
    """Create the pending-message table, optionally dropping everything first"""
    engine = get_engine()
    if not test_connection(engine):
        print("❌ Database connection failed")
        sys.exit(1)

    if drop:
        print("⚠️  Dropping all tables...")
        Base.metadata.drop_all(bind=engine)
        print("✓ Tables dropped")

    print("📦 Creating tables...")
    init_db(engine)
    print("✅ Database initialized successfully!")

    inspector = inspect(engine)
    for table in inspector.get_table_names():
        print(f"\n{table}:")
        for col in inspector.get_columns(table):
            print(f"  - {col['name']}: {col['type']}")


if __name__ == "__main__":
    reset_db(drop="--drop" in sys.argv)
