"""
Shared helpers for the test suites.

Unit and API tests run against an in-memory mongomock client. Tests that
need real server-side atomicity are decorated with `requires_mongodb` and
skip when no MongoDB is reachable. To run them:
    docker run -d -p 27017:27017 --name mongodb-test mongo:latest
    python manage.py test
"""
import os
import unittest

import mongomock
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from core.constants import UserRole
from core.models import Account

from .container import ServiceContainer, set_container
from .mongo import MongoGateway

TEST_MONGODB_URI = os.getenv('TEST_MONGODB_URI', 'mongodb://localhost:27017/')
FAST_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']


def is_mongodb_available():
    """Check if MongoDB is available for testing."""
    try:
        client = MongoClient(TEST_MONGODB_URI, serverSelectionTimeoutMS=2000)
        client.admin.command('ping')
        client.close()
        return True
    except PyMongoError:
        return False


# Skip decorator for tests requiring MongoDB
requires_mongodb = unittest.skipUnless(
    is_mongodb_available(),
    "MongoDB is not available. Start MongoDB to run these tests."
)


def build_container(client=None, db_name='railway_test', **kwargs):
    """A fully wired container on `client`, in-memory by default."""
    if client is None:
        client = mongomock.MongoClient(tz_aware=True)
    gateway = MongoGateway(client, db_name)
    gateway.ensure_indexes()
    return ServiceContainer(gateway, **kwargs)


class MongoTestMixin:
    """
    Installs a fresh in-memory container for every test and offers account
    and login shortcuts. Mix into TestCase / APITestCase.
    """
    password = 'Secret@123'

    def setUp(self):
        super().setUp()
        self.container = build_container()
        set_container(self.container)
        self.addCleanup(set_container, None)

    def create_account(self, email, role=UserRole.CUSTOMER, password=None, first_name='Test'):
        account = Account(
            email=email, first_name=first_name, last_name='User',
            address='12 Station Road', phone='9876543210', role=role,
        )
        account.set_password(password or self.password)
        self.container.accounts(role).register(account)
        return account

    def login(self, email, role=UserRole.CUSTOMER, password=None):
        url = '/api/admin/login/' if role is UserRole.ADMIN else '/api/login/'
        return self.client.post(url, {
            'username': email,
            'password': password or self.password,
        }, format='json')
