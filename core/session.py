"""
Role-scoped sessions.

The cookie `sessionIdFor<ROLE>` carries a signed access token. Its `jti`
claim keys a server-side session record holding the account's email,
display name, expiry and any booking staged during the session. A session
is valid only while the token verifies and the record exists and has not
expired, so logout and expiry are enforced on the server.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone

from django.utils import timezone
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

from utils.mongo import SESSIONS, as_utc

from .constants import SESSION_EXPIRED_MESSAGE, ResponseCode, UserRole
from .exceptions import TrainException

logger = logging.getLogger(__name__)


@dataclass
class SessionRecord:
    session_id: str
    role: UserRole
    email: str
    user_name: str
    issued_at: datetime
    expires_at: datetime
    staged: dict = None

    @property
    def is_expired(self):
        return self.expires_at <= timezone.now()

    def to_document(self):
        return {
            "_id": self.session_id,
            "role": self.role.value,
            "mailid": self.email,
            "uname": self.user_name,
            "issued_at": self.issued_at,
            "expires_at": self.expires_at,
            "staged": self.staged,
        }

    @classmethod
    def from_document(cls, doc):
        return cls(
            session_id=doc["_id"],
            role=UserRole(doc["role"]),
            email=doc["mailid"],
            user_name=doc.get("uname", ''),
            issued_at=as_utc(doc["issued_at"]),
            expires_at=as_utc(doc["expires_at"]),
            staged=doc.get("staged"),
        )


class SessionStore:
    """Session records in the 'sessions' collection, one per login."""

    def __init__(self, gateway):
        self.collection = gateway.collection(SESSIONS)

    def create(self, record):
        try:
            self.collection.insert_one(record.to_document())
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e
        return record

    def get(self, session_id):
        """Return the live record, or None when it is missing or expired."""
        try:
            doc = self.collection.find_one({"_id": session_id})
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

        if doc is None:
            return None
        record = SessionRecord.from_document(doc)
        if record.is_expired:
            self.delete(session_id)
            return None
        return record

    def delete(self, session_id):
        try:
            result = self.collection.delete_one({"_id": session_id})
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e
        return result.deleted_count > 0

    def stage(self, session_id, staged):
        """Attach staged booking parameters to one session only."""
        try:
            result = self.collection.update_one(
                {"_id": session_id}, {"$set": {"staged": staged}}
            )
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e

        if result.matched_count < 1:
            raise TrainException.of(ResponseCode.UNAUTHORIZED, SESSION_EXPIRED_MESSAGE)

    def staged(self, session_id):
        """Staged booking parameters of the session, or None."""
        record = self.get(session_id)
        return record.staged if record else None

    def claim_staged(self, session_id):
        """
        Remove and return the staged booking parameters of the session.
        Only one caller can claim a given selection; the others get None.
        """
        try:
            doc = self.collection.find_one_and_update(
                {"_id": session_id, "staged": {"$exists": True}},
                {"$unset": {"staged": ""}},
                return_document=ReturnDocument.BEFORE,
            )
        except PyMongoError as e:
            raise TrainException.from_store_error(e) from e
        return doc.get("staged") if doc else None


class SessionGate:
    """Issues, validates and clears role-scoped session cookies."""

    COOKIE_PREFIX = 'sessionIdFor'
    USERNAME_COOKIE_PREFIX = 'usernameFor'

    def __init__(self, account_services, store, cookie_secure=False):
        # account_services: role -> AccountService
        self.account_services = account_services
        self.store = store
        self.cookie_secure = cookie_secure

    @classmethod
    def cookie_name(cls, role):
        return f"{cls.COOKIE_PREFIX}{UserRole(role).value}"

    @classmethod
    def username_cookie_name(cls, role):
        return f"{cls.USERNAME_COOKIE_PREFIX}{UserRole(role).value}"

    @staticmethod
    def read_cookie(request, name):
        value = request.COOKIES.get(name)
        return value or None

    def login(self, request, response, role, username, password):
        """
        Authenticate and open a session for `role`.

        Returns:
            ResponseCode.SUCCESS
        Raises:
            TrainException: UNAUTHORIZED when the credentials are rejected.
        """
        account = self.account_services(role).authenticate(username, password)

        previous = self.get_session(request, role)
        if previous is not None:
            self.store.delete(previous.session_id)

        token = AccessToken()
        token['role'] = role.value
        token['mailid'] = account.email
        record = SessionRecord(
            session_id=token['jti'],
            role=role,
            email=account.email,
            user_name=account.first_name or account.email,
            issued_at=timezone.now(),
            expires_at=datetime.fromtimestamp(token['exp'], tz=dt_timezone.utc),
        )
        self.store.create(record)

        max_age = int(token.lifetime.total_seconds())
        response.set_cookie(
            self.cookie_name(role), str(token), max_age=max_age,
            httponly=True, samesite='Lax', secure=self.cookie_secure,
        )
        response.set_cookie(
            self.username_cookie_name(role), record.user_name, max_age=max_age,
            samesite='Lax', secure=self.cookie_secure,
        )
        logger.info("%s %s logged in", role.value, account.email)
        return ResponseCode.SUCCESS

    def get_session(self, request, role):
        raw = self.read_cookie(request, self.cookie_name(role))
        if raw is None:
            return None
        try:
            token = AccessToken(raw)
        except TokenError:
            return None
        if token.get('role') != UserRole(role).value:
            return None

        record = self.store.get(token['jti'])
        if record is None or record.role != role:
            return None
        return record

    def is_logged_in(self, request, role):
        return self.get_session(request, role) is not None

    def validate_authorization(self, request, *roles):
        """
        Return the caller's session for the first of `roles` that has one
        (any role when none are given).

        Raises:
            TrainException: UNAUTHORIZED "Session Expired, Login Again to Continue".
        """
        for role in roles or tuple(UserRole):
            record = self.get_session(request, role)
            if record is not None:
                return record
        raise TrainException.of(ResponseCode.UNAUTHORIZED, SESSION_EXPIRED_MESSAGE)

    def logout(self, request, response, role):
        """
        Drop the server-side record and expire both cookies. Returns True
        when a live session was closed.
        """
        record = self.get_session(request, role)
        if record is not None:
            self.store.delete(record.session_id)
            logger.info("%s %s logged out", role.value, record.email)

        response.delete_cookie(self.cookie_name(role), samesite='Lax')
        response.delete_cookie(self.username_cookie_name(role), samesite='Lax')
        return record is not None

    def current_user_name(self, request, role):
        record = self.get_session(request, role)
        return record.user_name if record else None

    def current_user_email(self, request, role):
        record = self.get_session(request, role)
        return record.email if record else None
