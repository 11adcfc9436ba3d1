"""
Script to seed the database with sample data.
Run with: python seed_db.py
"""
import logging

from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from app.core.logging import configure_logging  # noqa: E402
from app.db.session import SessionLocal, init_db  # noqa: E402
from app.seed.seed_data import seed_db  # noqa: E402

logger = logging.getLogger(__name__)


def main():
    """Main function to seed the database."""
    configure_logging()
    logger.info("Initializing database...")
    init_db()

    logger.info("Seeding database...")
    db = SessionLocal()
    try:
        seed_db(db)
    finally:
        db.close()
    logger.info("Done!")


if __name__ == "__main__":
    main()
