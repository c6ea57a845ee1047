# alapio/infra/init_db.py

import argparse

from sqlalchemy import inspect

from alapio.config import settings
from alapio.infra.database import build_engine, drop_db, init_db
from alapio.utils.logger import setup_logger


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create the Alapio database tables")
    parser.add_argument("--reset", action="store_true", help="drop all tables before creating them")
    parser.add_argument("--database-url", default=None, help="override DATABASE_URL")
    args = parser.parse_args(argv)

    logger = setup_logger(settings.log_level)
    engine = build_engine(args.database_url)

    if args.reset:
        drop_db(engine)
    init_db(engine)

    inspector = inspect(engine)
    for table in inspector.get_table_names():
        columns = ", ".join(col["name"] for col in inspector.get_columns(table))
        logger.info(f"{table}: {columns}")


if __name__ == "__main__":
    main()
