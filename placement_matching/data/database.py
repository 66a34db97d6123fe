"""
Database connection manager for the matching engine.

Provides MongoDB connection management through a single synchronous
PyMongo client shared by the processor thread and callers.
"""

from contextlib import contextmanager
from typing import Any, Iterator, Optional
from urllib.parse import quote_plus

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.client_session import ClientSession
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from placement_matching.utils.config import get_settings
from placement_matching.utils.logger import get_logger

logger = get_logger(__name__)

# Collection names
MATCH_SCORES_COLLECTION = "match_scores"
RECOMPUTATION_QUEUE_COLLECTION = "recomputation_queue"
MATCHING_RUNS_COLLECTION = "matching_runs"
CANDIDATE_PROFILES_COLLECTION = "candidate_profiles"
OPPORTUNITY_PROFILES_COLLECTION = "opportunity_profiles"


class DatabaseManager:
    """
    Manages the MongoDB connection.

    Implements singleton pattern for connection reuse; PyMongo clients
    are thread-safe and pool their own connections.
    """

    _instance: Optional["DatabaseManager"] = None
    _client: Optional[MongoClient] = None

    def __new__(cls) -> "DatabaseManager":
        """Ensure singleton instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Initialize database manager with settings."""
        if getattr(self, "_initialized", False):
            return

        self._settings = get_settings()
        self._db_name = self._settings.database.name
        self._uri = self._build_uri()
        self._initialized = True

    def _build_uri(self) -> str:
        """
        Build MongoDB connection URI from settings.

        Credentials are URL-encoded; hosts containing shell metacharacters
        are rejected.
        """
        db_settings = self._settings.database

        host = db_settings.host.strip()
        if not host or any(c in host for c in [";", "&", "|", "$", "`"]):
            raise ValueError(f"Invalid database host: {host}")

        auth = ""
        if db_settings.username and db_settings.password:
            auth = f"{quote_plus(db_settings.username)}:{quote_plus(db_settings.password)}@"

        return f"mongodb://{auth}{host}:{db_settings.port}"

    @property
    def use_transactions(self) -> bool:
        return self._settings.database.use_transactions

    # -------------------------------------------------------------------------
    # Client Access
    # -------------------------------------------------------------------------

    def get_client(self) -> MongoClient:
        """Get or create the MongoDB client."""
        if self._client is None:
            logger.info("Creating MongoDB client")
            try:
                self._client = MongoClient(
                    self._uri,
                    serverSelectionTimeoutMS=5000,
                    connectTimeoutMS=5000,
                    maxPoolSize=50,
                    minPoolSize=1,
                    tz_aware=False,
                )
            except Exception as e:
                self._client = None
                logger.error(f"Failed to create MongoDB client: {e}")
                raise
        return self._client

    def get_database(self) -> Database:
        """Get the configured database."""
        return self.get_client()[self._db_name]

    def get_collection(self, collection_name: str) -> Any:
        """Get a collection by name."""
        return self.get_database()[collection_name]

    @contextmanager
    def session(self) -> Iterator[ClientSession]:
        """Context manager for a client session."""
        session = self.get_client().start_session()
        try:
            yield session
        finally:
            session.end_session()

    def check_connection(self) -> bool:
        """Check if the connection is healthy."""
        try:
            self.get_client().admin.command("ping")
            return True
        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(f"Connection check failed: {e}")
            self._client = None
            return False

    # -------------------------------------------------------------------------
    # Lifecycle Management
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the client connection."""
        if self._client:
            logger.info("Closing MongoDB client")
            self._client.close()
            self._client = None

    # -------------------------------------------------------------------------
    # Index Management
    # -------------------------------------------------------------------------

    def ensure_indexes(self) -> None:
        """Create indexes for all collections the engine touches."""
        logger.info("Ensuring database indexes")

        # One record per pair; upserts rely on this
        match_scores = self.get_collection(MATCH_SCORES_COLLECTION)
        match_scores.create_index(
            [("candidate_id", ASCENDING), ("opportunity_id", ASCENDING)], unique=True
        )
        match_scores.create_index([("opportunity_id", ASCENDING), ("total_score", DESCENDING)])
        match_scores.create_index([("candidate_id", ASCENDING), ("total_score", DESCENDING)])
        match_scores.create_index("created_at")

        # Claim order
        queue = self.get_collection(RECOMPUTATION_QUEUE_COLLECTION)
        queue.create_index(
            [("status", ASCENDING), ("priority", DESCENDING), ("created_at", ASCENDING)]
        )
        queue.create_index("created_at")

        runs = self.get_collection(MATCHING_RUNS_COLLECTION)
        runs.create_index([("created_at", DESCENDING)])

        self.get_collection(CANDIDATE_PROFILES_COLLECTION).create_index("is_active")
        self.get_collection(OPPORTUNITY_PROFILES_COLLECTION).create_index("is_active")

        logger.info("Database indexes created successfully")


# Global database manager instance
_db_manager: Optional[DatabaseManager] = None


def get_database_manager() -> DatabaseManager:
    """Get the global database manager instance."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager
