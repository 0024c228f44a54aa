"""
Booking service: the append-only 'history' collection.
"""
import logging
from dataclasses import replace

from django.utils import timezone
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from core.constants import ResponseCode
from core.exceptions import TrainException
from utils.mongo import HISTORY

from .models import BookingRecord, generate_transaction_id

logger = logging.getLogger(__name__)


class BookingService:
    """Creates and reads booking records. Records are never updated or deleted."""

    def __init__(self, gateway):
        self.collection = gateway.collection(HISTORY)

    def create_history(self, record):
        """Persist the record under a fresh transaction id and return it."""
        record = replace(
            record,
            transaction_id=generate_transaction_id(),
            booked_at=timezone.now(),
        )
        try:
            self.collection.insert_one(record.to_document())
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

        logger.info("Recorded booking %s for %s", record.transaction_id, record.email)
        return record

    def get_all_by_account(self, email):
        try:
            records = [
                BookingRecord.from_document(doc)
                for doc in self.collection.find({"mailid": email}).sort(
                    [("booked_at", DESCENDING), ("_id", DESCENDING)]
                )
            ]
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

        if not records:
            raise TrainException.of(ResponseCode.NO_CONTENT, "No any ticket booked")
        return records

    def get_by_transaction_id(self, transaction_id, email):
        try:
            doc = self.collection.find_one({"transid": transaction_id, "mailid": email})
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

        if doc is None:
            raise TrainException.of(ResponseCode.NOT_FOUND, "Booking not found")
        return BookingRecord.from_document(doc)
