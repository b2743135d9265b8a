"""
Database initialization and maintenance utilities.
"""
import sys
import argparse
from database import get_db_manager
from shared.services.cache_service import CacheService


def migrate():
    """Create any missing study tables."""
    print("Creating database tables...")
    try:
        tables = get_db_manager().create_all()
        print(f"✓ Tables ready: {', '.join(tables)}")
    except Exception as e:
        print(f"Error during migration: {e}")
        raise


def purge_cache():
    """Delete expired entries from the quiz question cache."""
    with get_db_manager().session_scope() as db:
        removed = CacheService(db).purge_expired()
    print(f"✓ Removed {removed} expired cache entries")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Study database management CLI")
    parser.add_argument("--migrate", action="store_true", help="Create database tables")
    parser.add_argument("--purge-cache", action="store_true", help="Delete expired cache entries")

    args = parser.parse_args()

    if args.migrate:
        migrate()
    elif args.purge_cache:
        purge_cache()
    else:
        print("Usage:")
        print("  python db.py --migrate       # Create tables")
        print("  python db.py --purge-cache   # Delete expired cache entries")
        sys.exit(1)
