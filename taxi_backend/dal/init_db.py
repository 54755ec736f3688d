# taxi_backend\dal\init_db.py
# Database Initialization Script: Creates the SQLite database and initializes tables using schema.sql.

import logging

from taxi_backend.config import get_settings, configure_logging
from taxi_backend.dal.taxi_dal import TaxiDAL

logger = logging.getLogger("InitDB")


def init_db(db_path=None):
    db_path = db_path or get_settings()['DATABASE_PATH']
    logger.info(f"Initializing SQLite database at: {db_path}")
    dal = TaxiDAL(db_path).open()
    dal.close()
    logger.info("Success! SQLite database initialized and tables created.")
    return db_path


if __name__ == "__main__":
    configure_logging()
    init_db()
