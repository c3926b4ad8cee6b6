# database/db_connection.py
"""
Process-wide MongoDB client.

Built once from Config at import; app._build_store wraps it in a MongoStore.
Both accessors raise ConnectionError when the URI could not be parsed.
"""

import logging

from pymongo import MongoClient
from pymongo.errors import ConfigurationError

from config import Config

logger = logging.getLogger(__name__)

# MongoClient connects lazily, so building it here does not block imports
try:
    client = MongoClient(Config.MONGO_URI, tz_aware=True)
    db = client[Config.MONGO_DB]
    logger.info("MongoDB client configured for database: %s", Config.MONGO_DB)
except ConfigurationError:
    logger.exception("MongoDB configuration failed")
    client = None
    db = None


def get_client():
    if client is None:
        raise ConnectionError("MongoDB client unavailable, check MONGO_URI")
    return client


def get_db():
    if db is None:
        raise ConnectionError("MongoDB client unavailable, check MONGO_URI")
    return db
