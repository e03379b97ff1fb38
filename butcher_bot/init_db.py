"""
Create the tables and seed the demo catalog.

Usage:
    DATABASE_URL="sqlite:///./butcher_bot.db" python -m butcher_bot.init_db
"""

from butcher_bot import db
from butcher_bot.seed_products import seed_products


def main() -> None:
    db.init_db()
    print("Database tables created")
    seed_products()


if __name__ == "__main__":
    main()
