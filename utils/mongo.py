"""
MongoDB gateway shared by the account, inventory, booking and session stores.
"""
import logging
from datetime import timezone

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from core.constants import ResponseCode
from core.exceptions import TrainException

logger = logging.getLogger(__name__)

USERS = 'users'
TRAINS = 'trains'
HISTORY = 'history'
SESSIONS = 'sessions'


def as_utc(value):
    """Mongo hands back naive UTC datetimes unless the client is tz-aware."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class MongoGateway:
    """Holds one client and database handle for the whole process."""

    def __init__(self, client, db_name):
        self.client = client
        self.db_name = db_name
        self.database = client[db_name]

    @classmethod
    def connect(cls, uri, db_name, timeout_ms=3000):
        """
        Open a client and ping the server.

        Raises:
            TrainException: DATABASE_CONNECTION_FAILURE when the server is unreachable.
        """
        try:
            client = MongoClient(
                uri,
                serverSelectionTimeoutMS=timeout_ms,
                connectTimeoutMS=timeout_ms,
                tz_aware=True,
            )
            client.admin.command('ping')
        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error("MongoDB connection failed: %s", e)
            raise TrainException.of(ResponseCode.DATABASE_CONNECTION_FAILURE) from e

        logger.info("Connected to MongoDB database '%s'", db_name)
        return cls(client, db_name)

    def collection(self, name):
        return self.database[name]

    def is_connected(self):
        """Liveness check; never raises."""
        try:
            self.database.list_collection_names()
            return True
        except PyMongoError as e:
            logger.warning("MongoDB liveness check failed: %s", e)
            return False

    def ensure_indexes(self):
        """Create the unique keys and lookup indexes the services rely on."""
        try:
            users = self.collection(USERS)
            users.create_index([("mailid", ASCENDING)], unique=True)
            users.create_index([("role", ASCENDING)])

            trains = self.collection(TRAINS)
            trains.create_index([("tr_no", ASCENDING)], unique=True)
            trains.create_index([("from_stn", ASCENDING), ("to_stn", ASCENDING)])

            history = self.collection(HISTORY)
            history.create_index([("transid", ASCENDING)], unique=True)
            history.create_index([("mailid", ASCENDING), ("booked_at", DESCENDING)])

            # Expired session documents are removed by the server.
            sessions = self.collection(SESSIONS)
            sessions.create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

    def close(self):
        self.client.close()
