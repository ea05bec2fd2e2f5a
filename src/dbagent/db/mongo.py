"""
Thin wrapper around :class:`pymongo.MongoClient`.

The store owns the client lifecycle (connect / disconnect / ping) and hands out collections to the
tools.  A pre-built client can be injected, which is how the tests plug in ``mongomock``.
"""

import logging
from typing import (
    Any,
    List,
    Optional,
)

import pymongo
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConfigurationError,
    PyMongoError,
)

from dbagent.config import settings

logger = logging.getLogger(__name__)


class StoreNotConnectedError(RuntimeError):
    """Raised when a collection is requested before :meth:`MongoStore.connect`."""

    def __init__(self) -> None:
        super().__init__("Database not connected")


class MongoStore:
    """
    MongoDB connection holder.
    """

    def __init__(
        self,
        uri: str | None = None,
        database: str | None = None,
        client: Optional[Any] = None,
    ):
        self._uri = uri or settings.MONGO_URI
        self._database_name = database or settings.MONGO_DB
        self._client = client
        self._db: Optional[Database] = None
        self._connected = False
        if client is not None:
            # An injected client is assumed to be usable right away
            self._db = self._resolve_database(client)
            self._connected = True

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def connect(self) -> None:
        """Open the client and verify the server answers a ping."""
        if self._connected:
            return
        logger.info("Connecting to MongoDB...")
        client = pymongo.MongoClient(self._uri)
        try:
            client.admin.command("ping")
        except PyMongoError:
            client.close()
            logger.exception("MongoDB connection failed")
            raise
        self._client = client
        self._db = self._resolve_database(client)
        self._connected = True
        logger.info("Connected to MongoDB database '%s'", self._db.name)

    def disconnect(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("Disconnected from MongoDB")
        self._client = None
        self._db = None
        self._connected = False

    def ping(self) -> bool:
        """Return *True* if the server answers, *False* otherwise."""
        if not self._connected or self._client is None:
            return False
        try:
            self._client.admin.command("ping")
            return True
        except Exception:  # pylint: disable=broad-except
            logger.debug("MongoDB ping failed", exc_info=True)
            return False

    @property
    def is_connected(self) -> bool:
        return self._connected

    # ------------------------------------------------------------------ #
    # Accessors
    # ------------------------------------------------------------------ #
    def get_database(self) -> Database:
        if not self._connected or self._db is None:
            raise StoreNotConnectedError()
        return self._db

    def get_collection(self, name: str) -> Collection:
        return self.get_database()[name]

    def list_collection_names(self) -> List[str]:
        return sorted(self.get_database().list_collection_names())

    def _resolve_database(self, client: Any) -> Database:
        if self._database_name:
            return client[self._database_name]
        try:
            return client.get_default_database()
        except ConfigurationError as exc:
            raise ConfigurationError(
                "MONGO_URI does not name a database; set MONGO_DB as well"
            ) from exc
