"""
MongoDB Session Store.

Persists each session as a single document keyed by session id:
  - Connection management with graceful fallback
  - Upsert / fetch / list-by-status
  - Process-local copy of every session when MongoDB is not configured,
    and of sessions whose latest write failed when it is
"""

import logging
import threading

from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

import config
from triage.models import Session
from triage.states import SessionStatus

logger = logging.getLogger(__name__)


class SessionStore:
    """Session documents in MongoDB, with an in-memory copy for unsaved writes."""

    def __init__(
        self,
        uri: str | None = None,
        db_name: str | None = None,
        collection_name: str | None = None,
        collection=None,
    ):
        self.uri = uri if uri is not None else config.MONGODB_URI
        self.db_name = db_name or config.MONGODB_DB_NAME
        self.collection_name = collection_name or config.MONGODB_COLLECTION
        self.client = None
        self.db = None
        self.collection = collection
        self.connected = collection is not None

        self._memory: dict[str, dict] = {}
        self._lock = threading.Lock()

        if self.collection is None and self.uri:
            self._connect()
        if not self.connected:
            logger.info("[MongoDB] Using in-memory session storage")

    def _connect(self):
        """Establish MongoDB connection."""
        try:
            self.client = MongoClient(
                self.uri,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=5000,
            )
            self.client.admin.command("ping")
            self.db = self.client[self.db_name]
            self.collection = self.db[self.collection_name]
            self.collection.create_index("status")
            self.connected = True
            logger.info("[MongoDB] ✅ Connected to database: %s", self.db_name)
        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error("[MongoDB] ❌ Connection failed: %s", e)
            self.connected = False
        except PyMongoError as e:
            logger.error("[MongoDB] ❌ Unexpected error: %s", e)
            self.connected = False

    def save(self, session: Session) -> bool:
        """
        Upsert a session document.

        With MongoDB connected, the in-memory copy is kept only while the
        latest write for that session is failing, so memory does not grow
        with every session ever served.

        Returns:
            True if the document reached MongoDB, False if only the
            in-memory copy was updated.
        """
        document = session.to_dict()
        if self.connected:
            try:
                self.collection.replace_one({"_id": session.id}, document, upsert=True)
            except PyMongoError as e:
                logger.error("[MongoDB] ❌ Failed to save session %s: %s", session.id, e)
            else:
                with self._lock:
                    self._memory.pop(session.id, None)
                return True

        with self._lock:
            self._memory[session.id] = document
        return False

    def get(self, session_id: str) -> Session | None:
        """Fetch a session by id; each call returns a fresh object."""
        with self._lock:
            document = self._memory.get(session_id)
        if document is None and self.connected:
            try:
                document = self.collection.find_one({"_id": session_id})
            except PyMongoError as e:
                logger.error("[MongoDB] ❌ Failed to retrieve session %s: %s", session_id, e)
        return Session.from_dict(document) if document else None

    def list_by_status(self, status: SessionStatus, limit: int = 50) -> list[Session]:
        """Most recently active sessions with the given status."""
        documents: dict[str, dict] = {}
        if self.connected:
            try:
                cursor = (
                    self.collection.find({"status": status.value})
                    .sort("last_activity", -1)
                    .limit(limit)
                )
                documents = {doc["_id"]: doc for doc in cursor}
            except PyMongoError as e:
                logger.error("[MongoDB] ❌ Failed to list sessions: %s", e)

        # Unsaved local copies are newer than whatever MongoDB returned
        with self._lock:
            pending = list(self._memory.values())
        for document in pending:
            documents.pop(document["_id"], None)
            if document["status"] == status.value:
                documents[document["_id"]] = document

        ordered = sorted(documents.values(), key=lambda d: d["last_activity"], reverse=True)
        return [Session.from_dict(d) for d in ordered[:limit]]

    def close(self):
        """Close the MongoDB connection."""
        if self.client:
            self.client.close()
            self.connected = False
            logger.info("[MongoDB] Connection closed.")
