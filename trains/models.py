"""
Train document and its mapping to the 'trains' collection.
"""
from dataclasses import dataclass
from decimal import Decimal


@dataclass
class Train:
    """
    A train and its seat inventory. `seats` is the number still available
    and never leaves the range 0..capacity.
    """
    number: int
    name: str
    from_station: str
    to_station: str
    seats: int
    fare: Decimal
    capacity: int = None

    def __post_init__(self):
        self.fare = Decimal(str(self.fare))
        if self.capacity is None:
            self.capacity = self.seats

    def __str__(self):
        return f"{self.number} - {self.name}"

    @property
    def booked_seats(self):
        return self.capacity - self.seats

    def fare_for(self, seats):
        return (self.fare * seats).quantize(Decimal('0.01'))

    def to_document(self):
        return {
            "tr_no": self.number,
            "tr_name": self.name,
            "from_stn": self.from_station,
            "to_stn": self.to_station,
            "seats": self.seats,
            "capacity": self.capacity,
            "fare": float(self.fare),
        }

    @classmethod
    def from_document(cls, doc):
        return cls(
            number=int(doc["tr_no"]),
            name=doc.get("tr_name", ''),
            from_station=doc.get("from_stn", ''),
            to_station=doc.get("to_stn", ''),
            seats=int(doc.get("seats", 0)),
            fare=doc.get("fare", 0),
            capacity=doc.get("capacity"),
        )
