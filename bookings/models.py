"""Booking history records and staged booking parameters."""
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from utils.mongo import as_utc


def generate_transaction_id():
    return str(uuid.uuid4()).upper()


@dataclass
class BookingRecord:
    """Immutable record of a completed booking, keyed by its transaction id."""
    email: str
    train_number: int
    train_name: str
    journey_date: date
    from_station: str
    to_station: str
    seats: int
    amount: Decimal
    travel_class: str = ''
    transaction_id: str = None
    booked_at: datetime = None

    def __str__(self):
        return f"Transaction: {self.transaction_id} - {self.email}"

    def to_document(self):
        return {
            "transid": self.transaction_id,
            "mailid": self.email,
            "tr_no": self.train_number,
            "tr_name": self.train_name,
            "date": self.journey_date.isoformat(),
            "from_stn": self.from_station,
            "to_stn": self.to_station,
            "seats": self.seats,
            "class": self.travel_class,
            "amount": float(self.amount),
            "booked_at": self.booked_at,
        }

    @classmethod
    def from_document(cls, doc):
        return cls(
            transaction_id=doc["transid"],
            email=doc["mailid"],
            train_number=int(doc["tr_no"]),
            train_name=doc.get("tr_name", ''),
            journey_date=date.fromisoformat(doc["date"]),
            from_station=doc.get("from_stn", ''),
            to_station=doc.get("to_stn", ''),
            seats=int(doc["seats"]),
            travel_class=doc.get("class", ''),
            amount=Decimal(str(doc["amount"])),
            booked_at=as_utc(doc.get("booked_at")),
        )


@dataclass
class StagedBooking:
    """Seat count, class, train and date picked before payment is confirmed."""
    train_number: int
    seats: int
    journey_date: date
    travel_class: str = ''
    staged_at: datetime = None

    def to_document(self):
        return {
            "tr_no": self.train_number,
            "seats": self.seats,
            "date": self.journey_date.isoformat(),
            "class": self.travel_class,
            "staged_at": self.staged_at,
        }

    @classmethod
    def from_document(cls, doc):
        return cls(
            train_number=int(doc["tr_no"]),
            seats=int(doc["seats"]),
            journey_date=date.fromisoformat(doc["date"]),
            travel_class=doc.get("class", ''),
            staged_at=as_utc(doc.get("staged_at")),
        )
