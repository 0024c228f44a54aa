"""
Booking workflow: search -> stage -> debit -> commit -> clear.
"""
import logging
from datetime import timedelta

from django.utils import timezone

from core.constants import ResponseCode
from core.exceptions import TrainException

from .models import BookingRecord, StagedBooking

logger = logging.getLogger(__name__)


class BookingOrchestrator:
    """
    Drives a customer's booking across requests. Staged parameters live on
    the customer's own session record, so concurrent customers never see
    each other's selection. Seats are taken with the inventory's atomic
    debit; a record is written only after the debit succeeded, and the
    seats are credited back if the record cannot be written.
    """

    def __init__(self, inventory, bookings, sessions, staged_ttl=timedelta(minutes=15)):
        self.inventory = inventory
        self.bookings = bookings
        self.sessions = sessions
        self.staged_ttl = staged_ttl

    def search(self, from_station, to_station):
        return self.inventory.get_between_stations(from_station, to_station)

    def stage(self, session, staged):
        """Remember the customer's seat, class and date choice for `session`."""
        train = self.inventory.get_by_id(staged.train_number)
        staged.staged_at = timezone.now()
        self.sessions.stage(session.session_id, staged.to_document())
        session.staged = staged.to_document()
        logger.info("%s staged %s seats on train %s", session.email, staged.seats, train.number)
        return staged

    def staged_booking(self, session):
        """The live staged booking of `session`, or None."""
        return self._live(session.staged)

    def _live(self, doc):
        if not doc:
            return None
        staged = StagedBooking.from_document(doc)
        if staged.staged_at is None or staged.staged_at + self.staged_ttl <= timezone.now():
            return None
        return staged

    def confirm(self, session):
        """
        Book whatever `session` has staged. The staged parameters are
        claimed by exactly one attempt and consumed whether it succeeds or not.
        """
        claimed = self.sessions.claim_staged(session.session_id)
        session.staged = None
        staged = self._live(claimed)
        if staged is None:
            raise TrainException.of(ResponseCode.BAD_REQUEST, "No booking in progress")
        return self.book(session.email, staged)

    def book(self, email, staged):
        """
        Debit the seats and record the booking.

        Raises:
            TrainException: NOT_FOUND "Invalid Train Number", SEATS_UNAVAILABLE
                "Only N Seats available", FAILURE "Transaction Declined", or
                the store error that stopped the booking.
        """
        train = self.inventory.debit_seats(staged.train_number, staged.seats)

        record = BookingRecord(
            email=email,
            train_number=train.number,
            train_name=train.name,
            journey_date=staged.journey_date,
            from_station=train.from_station,
            to_station=train.to_station,
            seats=staged.seats,
            travel_class=staged.travel_class,
            amount=train.fare_for(staged.seats),
        )
        try:
            record = self.bookings.create_history(record)
        except TrainException as error:
            logger.exception("Could not record booking on train %s, returning %s seats",
                             train.number, staged.seats)
            try:
                self.inventory.credit_seats(train.number, staged.seats)
            except TrainException:
                logger.exception("Could not return %s seats to train %s", staged.seats, train.number)
            raise error

        logger.info("Booked %s seats on train %s for %s (%s)",
                    staged.seats, train.number, email, record.transaction_id)
        return record
