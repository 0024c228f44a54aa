"""
Account service: registration, authentication and profile maintenance.
"""
import logging

from pymongo.errors import DuplicateKeyError, PyMongoError

from utils.mongo import USERS

from .constants import ResponseCode
from .exceptions import TrainException
from .models import Account

logger = logging.getLogger(__name__)


class AccountService:
    """CRUD and authentication for the accounts of one role."""

    def __init__(self, gateway, role):
        self.role = role
        self.collection = gateway.collection(USERS)

    def _filter(self, email):
        return {"mailid": email, "role": self.role.value}

    def register(self, account):
        """Insert a new account; FAILURE when the email is already registered."""
        account.role = self.role
        try:
            if self.collection.find_one({"mailid": account.email}) is not None:
                logger.info("Registration rejected, %s already exists", account.email)
                return ResponseCode.FAILURE
            self.collection.insert_one(account.to_document())
        except DuplicateKeyError:
            return ResponseCode.FAILURE
        except PyMongoError as e:
            raise TrainException.from_store_error(e, ResponseCode.FAILURE) from e

        logger.info("Registered %s account %s", self.role, account.email)
        return ResponseCode.SUCCESS

    def authenticate(self, email, password):
        """
        Return the account when the password matches its stored hash.

        Raises:
            TrainException: UNAUTHORIZED for an unknown email or a wrong password.
        """
        try:
            doc = self.collection.find_one(self._filter(email))
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

        if doc is None:
            raise TrainException.of(ResponseCode.UNAUTHORIZED)
        account = Account.from_document(doc)
        if not account.check_password(password):
            raise TrainException.of(ResponseCode.UNAUTHORIZED)
        return account

    def get_by_email(self, email):
        try:
            doc = self.collection.find_one(self._filter(email))
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

        if doc is None:
            raise TrainException.of(ResponseCode.NOT_FOUND, f"No account found for {email}")
        return Account.from_document(doc)

    def get_all(self):
        try:
            accounts = [Account.from_document(doc)
                        for doc in self.collection.find({"role": self.role.value})]
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

        if not accounts:
            raise TrainException.of(ResponseCode.NO_CONTENT)
        return accounts

    def update(self, account):
        """Overwrite the stored profile matched by email."""
        doc = account.to_document()
        doc.pop("mailid")
        doc["role"] = self.role.value
        try:
            result = self.collection.update_one(self._filter(account.email), {"$set": doc})
        except PyMongoError as e:
            raise TrainException.from_store_error(e, ResponseCode.FAILURE) from e

        if result.modified_count < 1:
            return ResponseCode.FAILURE
        return ResponseCode.SUCCESS

    def change_password(self, email, old_password, new_password):
        try:
            account = self.authenticate(email, old_password)
        except TrainException as e:
            if e.error_code != ResponseCode.UNAUTHORIZED.name:
                raise
            raise TrainException.of(ResponseCode.UNAUTHORIZED, "Wrong Old PassWord!") from e

        account.set_password(new_password)
        return self.update(account)

    def delete(self, account):
        try:
            result = self.collection.delete_one(self._filter(account.email))
        except PyMongoError as e:
            raise TrainException.from_store_error(e, ResponseCode.FAILURE) from e

        if result.deleted_count < 1:
            return ResponseCode.FAILURE
        logger.info("Deleted %s account %s", self.role, account.email)
        return ResponseCode.SUCCESS
