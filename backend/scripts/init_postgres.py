"""
Check the PostgreSQL database for the achievement reporting API.
Run once before migrating: python scripts/init_postgres.py

Requires: PostgreSQL installed and running. Create user and database:

  sudo -u postgres psql
  CREATE USER achievements WITH PASSWORD 'achievements';
  CREATE DATABASE achievements_db OWNER achievements;
  GRANT ALL PRIVILEGES ON DATABASE achievements_db TO achievements;
  \q

Then apply the schema: alembic upgrade head
"""

import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from app.config import settings


def main():
    url = settings.get_database_url()
    if not url.startswith("postgresql"):
        print("Database URL is not PostgreSQL. Skipping.")
        return
    try:
        engine = create_engine(url)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("PostgreSQL connection OK. Database exists.")
    except SQLAlchemyError as e:
        print(f"Cannot connect to PostgreSQL: {e}")
        print("\nCreate database first:")
        print("  psql -U postgres -c \"CREATE USER achievements WITH PASSWORD 'achievements';\"")
        print("  psql -U postgres -c \"CREATE DATABASE achievements_db OWNER achievements;\"")
        print("  psql -U postgres -c \"GRANT ALL PRIVILEGES ON DATABASE achievements_db TO achievements;\"")
        sys.exit(1)


if __name__ == "__main__":
    main()
