"""
Inventory service: train CRUD and the seat-count invariant.
"""
import logging

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from core.constants import ResponseCode
from core.exceptions import TrainException
from utils.mongo import TRAINS

from .models import Train

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Sole owner of the 'trains' collection. Seats are only taken through
    debit_seats, which is a single conditional update on the server.
    """

    def __init__(self, gateway, debit_retries=3):
        self.collection = gateway.collection(TRAINS)
        self.debit_retries = debit_retries

    def add_train(self, train):
        try:
            if self.collection.find_one({"tr_no": train.number}) is not None:
                logger.info("Train %s already exists", train.number)
                return ResponseCode.FAILURE
            self.collection.insert_one(train.to_document())
        except DuplicateKeyError:
            return ResponseCode.FAILURE
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

        logger.info("Added train %s", train)
        return ResponseCode.SUCCESS

    def get_by_id(self, number):
        try:
            doc = self.collection.find_one({"tr_no": int(number)})
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

        if doc is None:
            raise TrainException.of(ResponseCode.NOT_FOUND, f"Train No.{number} is Not Available")
        return Train.from_document(doc)

    def get_all(self):
        return self._find({})

    def get_between_stations(self, from_station, to_station):
        trains = self._find({"from_stn": from_station, "to_stn": to_station},
                            raise_empty=False)
        if not trains:
            raise TrainException.of(
                ResponseCode.NO_CONTENT,
                f"There are no trains Between {from_station} and {to_station}",
            )
        return trains

    def _find(self, query, raise_empty=True):
        try:
            trains = [Train.from_document(doc)
                      for doc in self.collection.find(query).sort("tr_no", 1)]
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

        if raise_empty and not trains:
            raise TrainException.of(ResponseCode.NO_CONTENT, "No Running Trains")
        return trains

    def update_train(self, train, expected_seats=None):
        """
        Overwrite the stored train. With `expected_seats` the write only
        applies while the seat count is still the one the caller read, so a
        booking made in between is never undone.
        """
        doc = train.to_document()
        doc.pop("tr_no")
        query = {"tr_no": train.number}
        if expected_seats is not None:
            query["seats"] = expected_seats
        try:
            result = self.collection.update_one(query, {"$set": doc})
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

        if result.modified_count < 1:
            return ResponseCode.FAILURE
        return ResponseCode.SUCCESS

    def delete_by_id(self, number):
        try:
            result = self.collection.delete_one({"tr_no": int(number)})
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

        if result.deleted_count < 1:
            return ResponseCode.FAILURE
        logger.info("Deleted train %s", number)
        return ResponseCode.SUCCESS

    def debit_seats(self, number, seats):
        """
        Take `seats` from the train in one atomic conditional update and
        return the train as it is after the debit.

        Raises:
            TrainException: NOT_FOUND for an unknown train, SEATS_UNAVAILABLE
                when fewer seats are left, FAILURE when the debit keeps
                losing to concurrent writers.
        """
        if seats < 1:
            raise TrainException.of(ResponseCode.BAD_REQUEST, "Seats must be a positive number")

        for _ in range(self.debit_retries):
            try:
                doc = self.collection.find_one_and_update(
                    {"tr_no": int(number), "seats": {"$gte": seats}},
                    {"$inc": {"seats": -seats}},
                    return_document=ReturnDocument.AFTER,
                )
            except PyMongoError as e:
                raise TrainException.from_store_error(e) from e

            if doc is not None:
                return Train.from_document(doc)

            try:
                current = self.collection.find_one({"tr_no": int(number)})
            except PyMongoError as e:
                raise TrainException.from_store_error(e) from e

            if current is None:
                raise TrainException.of(ResponseCode.NOT_FOUND, "Invalid Train Number")
            available = int(current.get("seats", 0))
            if available < seats:
                logger.info("Declined %s seats on train %s, %s left", seats, number, available)
                raise TrainException.of(
                    ResponseCode.SEATS_UNAVAILABLE, f"Only {available} Seats available"
                )
            # Seats were returned between the two reads; try the debit again.

        raise TrainException.of(ResponseCode.FAILURE, "Transaction Declined")

    def credit_seats(self, number, seats):
        """Give seats back to a train after a booking could not be recorded."""
        try:
            result = self.collection.update_one(
                {"tr_no": int(number)}, {"$inc": {"seats": seats}}
            )
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

        if result.modified_count < 1:
            return ResponseCode.FAILURE
        return ResponseCode.SUCCESS
