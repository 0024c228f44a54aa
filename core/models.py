"""
Account document and its mapping to the 'users' collection.
"""
from dataclasses import dataclass

from django.contrib.auth.hashers import check_password, make_password

from .constants import UserRole


@dataclass
class Account:
    """
    Customer or admin account. Both roles share the same shape and are told
    apart by `role`. `password` always holds a salted hash.
    """
    email: str
    first_name: str = ''
    last_name: str = ''
    address: str = ''
    phone: str = ''
    role: UserRole = UserRole.CUSTOMER
    password: str = ''

    def __str__(self):
        return self.email

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def set_password(self, raw_password):
        self.password = make_password(raw_password)

    def check_password(self, raw_password):
        if not self.password:
            return False
        return check_password(raw_password, self.password)

    def to_document(self):
        return {
            "mailid": self.email,
            "pword": self.password,
            "fname": self.first_name,
            "lname": self.last_name,
            "addr": self.address,
            "phno": self.phone,
            "role": UserRole(self.role).value,
        }

    @classmethod
    def from_document(cls, doc):
        return cls(
            email=doc["mailid"],
            first_name=doc.get("fname", ''),
            last_name=doc.get("lname", ''),
            address=doc.get("addr", ''),
            phone=str(doc.get("phno", '')),
            role=UserRole(doc.get("role", UserRole.CUSTOMER.value)),
            password=doc.get("pword", ''),
        )
