"""MongoDB Client - Connection and Collection Management"""
from typing import Any, Dict, Optional
from pymongo import MongoClient as PyMongoClient
from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

REVIEW_WORKFLOWS = "review_workflows"
REVIEW_HISTORY = "review_history"
REVIEW_EVENTS = "review_events"

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            tz_aware=True,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
        )
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        _database = get_client()[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def set_database(database: Optional[Database]) -> None:
    """Bind an already-open database (test doubles, alternate deployments)"""
    global _database
    _database = database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    return get_database()[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")

    # One active workflow per natural key; superseded records stay for audit
    workflows = db[REVIEW_WORKFLOWS]
    workflows.create_index("workflow_id", unique=True)
    workflows.create_index(
        [("item_type", ASCENDING), ("item_id", ASCENDING), ("engagement", ASCENDING)],
        unique=True,
        partialFilterExpression={"is_superseded": False},
        name="uniq_active_natural_key",
    )
    workflows.create_index([("engagement", ASCENDING), ("status", ASCENDING)])
    workflows.create_index([("assigned_reviewer", ASCENDING), ("status", ASCENDING)])
    workflows.create_index("due_date", sparse=True)
    workflows.create_index("created_at", background=True)

    history = db[REVIEW_HISTORY]
    history.create_index("history_id", unique=True)
    history.create_index([("workflow_id", ASCENDING), ("performed_at", ASCENDING), ("sequence", ASCENDING)])
    history.create_index([("engagement", ASCENDING), ("performed_at", DESCENDING)])

    events = db[REVIEW_EVENTS]
    events.create_index("event_id", unique=True)
    events.create_index([("workflow_id", ASCENDING), ("timestamp", ASCENDING)])
    events.create_index("timestamp", background=True)

    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        get_client().admin.command("ping")
        return {
            "status": "healthy",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except PyMongoError as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": settings.mongo_db,
            "error": str(e)
        }
