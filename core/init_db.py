"""
Initialize the database: create the tables
for a local or development database.

Production databases are migrated with alembic instead:
    alembic upgrade head
"""
from core.db import create_db_and_tables
from core.logger import logger


def main():
  logger.info("Create tables...")
  create_db_and_tables()
  logger.info("Tables created")


if __name__ == "__main__":
  main()
