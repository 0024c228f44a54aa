"""
Tests for bookings app.
Tests cover: Booking records, Booking service, Staged workflow, Compensation,
Booking API, Concurrency against a real MongoDB.

BookingConcurrencyTests needs a running MongoDB (TEST_MONGODB_URI) and is
skipped without one. In that case nothing checks that concurrent bookings
sell at most the available seats; the in-memory suites only check that a
debit is a single conditional update.
"""
import threading
import uuid
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.utils import timezone
from pymongo import MongoClient
from pymongo.errors import PyMongoError
from rest_framework import status
from rest_framework.test import APITestCase

from bookings.models import BookingRecord, StagedBooking, generate_transaction_id
from core.constants import ResponseCode, UserRole
from core.exceptions import TrainException
from core.session import SessionRecord
from trains.models import Train
from utils.mongo import HISTORY, SESSIONS, TRAINS
from utils.testing import FAST_HASHERS, TEST_MONGODB_URI, MongoTestMixin, build_container, requires_mongodb

JOURNEY_DATE = date(2023, 10, 10)


def make_session(email='test@example.com', session_id=None):
    now = timezone.now()
    return SessionRecord(
        session_id=session_id or uuid.uuid4().hex,
        role=UserRole.CUSTOMER,
        email=email,
        user_name='Test',
        issued_at=now,
        expires_at=now + timedelta(hours=1),
    )


# =============================================================================
# UNIT TESTS - Models
# =============================================================================

class TransactionIdTests(TestCase):

    def test_transaction_id_is_uuid(self):
        transaction_id = generate_transaction_id()

        self.assertEqual(len(transaction_id), 36)
        self.assertEqual(uuid.UUID(transaction_id).version, 4)

    def test_transaction_id_uniqueness(self):
        ids = set(generate_transaction_id() for _ in range(100))
        self.assertEqual(len(ids), 100)


class BookingRecordTests(TestCase):

    def test_document_mapping(self):
        record = BookingRecord(
            email='test@example.com', train_number=123, train_name='Test Express',
            journey_date=JOURNEY_DATE, from_station='Delhi', to_station='Mumbai',
            seats=2, amount=Decimal('200.00'), travel_class='SL',
            transaction_id='ABC', booked_at=timezone.now(),
        )
        doc = record.to_document()

        self.assertEqual(doc['transid'], 'ABC')
        self.assertEqual(doc['date'], '2023-10-10')
        self.assertEqual(doc['class'], 'SL')
        self.assertEqual(doc['amount'], 200.0)
        self.assertEqual(BookingRecord.from_document(doc).journey_date, JOURNEY_DATE)

    def test_staged_booking_mapping(self):
        staged = StagedBooking(train_number=123, seats=2, journey_date=JOURNEY_DATE, travel_class='3A')

        restored = StagedBooking.from_document(staged.to_document())

        self.assertEqual(restored, staged)


# =============================================================================
# UNIT TESTS - Booking service
# =============================================================================

class BookingServiceTests(MongoTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.service = self.container.bookings

    def make_record(self, email='test@example.com'):
        return BookingRecord(
            email=email, train_number=123, train_name='Test Express',
            journey_date=JOURNEY_DATE, from_station='Delhi', to_station='Mumbai',
            seats=2, amount=Decimal('200.00'),
        )

    def test_create_history_assigns_transaction_id(self):
        record = self.service.create_history(self.make_record())

        self.assertTrue(record.transaction_id)
        self.assertIsNotNone(record.booked_at)
        self.assertEqual(self.container.gateway.collection(HISTORY).count_documents({}), 1)

    def test_history_newest_first(self):
        first = self.service.create_history(self.make_record())
        second = self.service.create_history(self.make_record())
        self.service.create_history(self.make_record('other@example.com'))

        records = self.service.get_all_by_account('test@example.com')

        self.assertEqual([r.transaction_id for r in records],
                         [second.transaction_id, first.transaction_id])

    def test_empty_history(self):
        with self.assertRaises(TrainException) as ctx:
            self.service.get_all_by_account('test@example.com')
        self.assertEqual(ctx.exception.error_code, 'NO_CONTENT')
        self.assertEqual(ctx.exception.error_message, 'No any ticket booked')

    def test_record_only_readable_by_owner(self):
        record = self.service.create_history(self.make_record())

        self.assertEqual(
            self.service.get_by_transaction_id(record.transaction_id, 'test@example.com').seats, 2
        )
        with self.assertRaises(TrainException) as ctx:
            self.service.get_by_transaction_id(record.transaction_id, 'other@example.com')
        self.assertEqual(ctx.exception.error_code, 'NOT_FOUND')


# =============================================================================
# UNIT TESTS - Booking orchestrator
# =============================================================================

class BookingOrchestratorTests(MongoTestMixin, TestCase):
    """Search -> stage -> debit -> commit -> clear."""

    def setUp(self):
        super().setUp()
        self.orchestrator = self.container.orchestrator
        self.inventory = self.container.inventory
        self.inventory.add_train(Train(
            number=123, name='Test Express', from_station='Delhi',
            to_station='Mumbai', seats=5, fare=Decimal('100.0'),
        ))
        self.session = self.open_session()

    def open_session(self, email='test@example.com'):
        return self.container.sessions.create(make_session(email))

    def staged(self, seats=2, train_number=123):
        return StagedBooking(train_number=train_number, seats=seats, journey_date=JOURNEY_DATE)

    def history(self):
        return self.container.gateway.collection(HISTORY)

    def test_book_two_seats(self):
        record = self.orchestrator.book('test@example.com', self.staged(2))

        self.assertTrue(record.transaction_id)
        self.assertEqual(record.seats, 2)
        self.assertEqual(record.amount, Decimal('200.00'))
        self.assertEqual(self.inventory.get_by_id(123).seats, 3)

        docs = list(self.history().find({'mailid': 'test@example.com'}))
        self.assertEqual(len(docs), 1)
        self.assertEqual(docs[0]['seats'], 2)
        self.assertEqual(docs[0]['amount'], 200.0)
        self.assertEqual(docs[0]['from_stn'], 'Delhi')

    def test_book_more_than_available(self):
        with self.assertRaises(TrainException) as ctx:
            self.orchestrator.book('test@example.com', self.staged(10))

        self.assertIn('Only 5 Seats', ctx.exception.error_message)
        self.assertEqual(self.history().count_documents({}), 0)
        self.assertEqual(self.inventory.get_by_id(123).seats, 5)

    def test_book_unknown_train(self):
        with self.assertRaises(TrainException) as ctx:
            self.orchestrator.book('test@example.com', self.staged(1, train_number=999))
        self.assertEqual(ctx.exception.error_message, 'Invalid Train Number')

    def test_failed_record_returns_seats(self):
        with patch.object(self.container.bookings.collection, 'insert_one',
                          side_effect=PyMongoError('disk full')):
            with self.assertRaises(TrainException) as ctx:
                self.orchestrator.book('test@example.com', self.staged(2))

        self.assertEqual(ctx.exception.error_message, 'disk full')
        self.assertEqual(self.inventory.get_by_id(123).seats, 5)
        self.assertEqual(self.history().count_documents({}), 0)

    def test_failed_credit_keeps_original_error(self):
        credit_failure = TrainException.of(ResponseCode.INTERNAL_SERVER_ERROR, 'credit failed')
        with patch.object(self.container.bookings.collection, 'insert_one',
                          side_effect=PyMongoError('disk full')), \
                patch.object(self.inventory, 'credit_seats', side_effect=credit_failure):
            with self.assertLogs('bookings.orchestrator', level='ERROR'):
                with self.assertRaises(TrainException) as ctx:
                    self.orchestrator.book('test@example.com', self.staged(2))

        self.assertEqual(ctx.exception.error_message, 'disk full')

    def test_search(self):
        self.assertEqual([t.number for t in self.orchestrator.search('Delhi', 'Mumbai')], [123])

    def test_stage_unknown_train(self):
        with self.assertRaises(TrainException) as ctx:
            self.orchestrator.stage(self.session, self.staged(train_number=999))
        self.assertEqual(ctx.exception.error_message, 'Train No.999 is Not Available')

    def test_stage_then_confirm(self):
        self.orchestrator.stage(self.session, self.staged(2))
        stored = self.container.sessions.get(self.session.session_id)
        self.assertEqual(stored.staged['seats'], 2)

        record = self.orchestrator.confirm(stored)

        self.assertEqual(record.seats, 2)
        self.assertIsNone(self.container.sessions.staged(self.session.session_id))

    def test_confirm_without_staged_booking(self):
        with self.assertRaises(TrainException) as ctx:
            self.orchestrator.confirm(self.session)
        self.assertEqual(ctx.exception.error_message, 'No booking in progress')

    def test_failed_confirm_still_clears_staged(self):
        self.orchestrator.stage(self.session, self.staged(10))

        with self.assertRaises(TrainException):
            self.orchestrator.confirm(self.session)

        self.assertIsNone(self.container.sessions.staged(self.session.session_id))
        with self.assertRaises(TrainException):
            self.orchestrator.confirm(self.session)

    def test_staged_booking_is_booked_once(self):
        self.orchestrator.stage(self.session, self.staged(2))
        first = self.container.sessions.get(self.session.session_id)
        second = self.container.sessions.get(self.session.session_id)

        self.orchestrator.confirm(first)
        with self.assertRaises(TrainException) as ctx:
            self.orchestrator.confirm(second)

        self.assertEqual(ctx.exception.error_code, 'BAD_REQUEST')
        self.assertEqual(ctx.exception.error_message, 'No booking in progress')
        self.assertEqual(self.history().count_documents({}), 1)
        self.assertEqual(self.inventory.get_by_id(123).seats, 3)

    def test_stale_staged_booking_is_ignored(self):
        self.orchestrator.stage(self.session, self.staged(2))
        self.session.staged['staged_at'] = timezone.now() - timedelta(hours=1)

        self.assertIsNone(self.orchestrator.staged_booking(self.session))

    def test_staged_booking_is_per_session(self):
        other = self.open_session('other@example.com')
        self.orchestrator.stage(self.session, self.staged(2))
        self.orchestrator.stage(other, self.staged(1))

        mine = self.orchestrator.confirm(self.container.sessions.get(self.session.session_id))
        theirs = self.orchestrator.confirm(self.container.sessions.get(other.session_id))

        self.assertEqual((mine.email, mine.seats), ('test@example.com', 2))
        self.assertEqual((theirs.email, theirs.seats), ('other@example.com', 1))
        self.assertEqual(self.inventory.get_by_id(123).seats, 2)

    def test_stage_on_closed_session(self):
        self.container.gateway.collection(SESSIONS).delete_many({})

        with self.assertRaises(TrainException) as ctx:
            self.orchestrator.stage(self.session, self.staged(2))
        self.assertEqual(ctx.exception.error_code, 'UNAUTHORIZED')


# =============================================================================
# INTEGRATION TESTS - API
# =============================================================================

@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class BookingAPITests(MongoTestMixin, APITestCase):
    """Integration tests for the staged booking API."""

    def setUp(self):
        super().setUp()
        self.container.inventory.add_train(Train(
            number=12951, name='Mumbai Rajdhani', from_station='Delhi',
            to_station='Mumbai', seats=5, fare=Decimal('500.00'),
        ))
        self.journey_date = (timezone.localdate() + timedelta(days=7)).isoformat()
        self.create_account('test@example.com')
        self.login('test@example.com')

    def stage(self, seats=2, **overrides):
        data = {'train_number': 12951, 'seats': seats, 'journey_date': self.journey_date,
                'travel_class': 'SL'}
        data.update(overrides)
        return self.client.post('/api/bookings/stage/', data, format='json')

    def test_create_booking_success(self):
        self.assertEqual(self.stage(2).status_code, status.HTTP_200_OK)

        response = self.client.post('/api/bookings/confirm/')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['transaction_id'])
        self.assertEqual(response.data['booking']['amount'], '1000.00')
        self.assertEqual(self.container.inventory.get_by_id(12951).seats, 3)

    def test_view_staged_booking(self):
        self.stage(3)

        response = self.client.get('/api/bookings/stage/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['seats'], 3)

    def test_booking_exceeds_availability(self):
        self.stage(10)

        response = self.client.post('/api/bookings/confirm/')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['message'], 'Only 5 Seats available')
        self.assertEqual(self.container.inventory.get_by_id(12951).seats, 5)

    def test_confirm_without_stage(self):
        response = self.client.post('/api/bookings/confirm/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'No booking in progress')

    def test_invalid_seat_count_rejected(self):
        self.assertEqual(self.stage(0).status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.stage('two').status_code, status.HTTP_400_BAD_REQUEST)

    def test_past_journey_date_rejected(self):
        response = self.stage(journey_date='2020-01-01')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('journey_date', response.data)

    def test_get_my_bookings(self):
        self.stage(1)
        self.client.post('/api/bookings/confirm/')
        self.stage(2)
        self.client.post('/api/bookings/confirm/')

        response = self.client.get('/api/bookings/my/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['results'][0]['seats'], 2)

    def test_no_bookings_yet(self):
        response = self.client.get('/api/bookings/my/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 0)
        self.assertEqual(response.data['message'], 'No any ticket booked')

    def test_booking_detail(self):
        self.stage(2)
        transaction_id = self.client.post('/api/bookings/confirm/').data['transaction_id']

        response = self.client.get(f'/api/bookings/{transaction_id.lower()}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['train_name'], 'Mumbai Rajdhani')

    def test_other_customer_cannot_see_booking(self):
        self.stage(2)
        transaction_id = self.client.post('/api/bookings/confirm/').data['transaction_id']
        self.client.post('/api/logout/')
        self.create_account('other@example.com')
        self.login('other@example.com')

        response = self.client.get(f'/api/bookings/{transaction_id}/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_booking_unauthenticated(self):
        self.client.post('/api/logout/')

        response = self.stage(2)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['message'], 'Session Expired, Login Again to Continue')


# =============================================================================
# CONCURRENCY TESTS - real MongoDB
# =============================================================================

@requires_mongodb
class BookingConcurrencyTests(TestCase):
    """
    Concurrent bookings against a real server, where the conditional
    update is evaluated atomically per document.
    """

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.db_name = f'railway_test_{uuid.uuid4().hex[:8]}'
        cls.mongo_client = MongoClient(TEST_MONGODB_URI, tz_aware=True)

    @classmethod
    def tearDownClass(cls):
        cls.mongo_client.drop_database(cls.db_name)
        cls.mongo_client.close()
        super().tearDownClass()

    def setUp(self):
        self.container = build_container(self.mongo_client, db_name=self.db_name)
        for name in (HISTORY, TRAINS):
            self.container.gateway.collection(name).delete_many({})
        self.container.inventory.add_train(Train(
            number=777, name='Race Condition Express', from_station='Delhi',
            to_station='Mumbai', seats=5, fare=Decimal('500.00'),
        ))

    def run_concurrently(self, attempts, seats):
        results = {'success': 0, 'failed': 0}
        lock = threading.Lock()
        barrier = threading.Barrier(attempts)

        def make_booking(i):
            barrier.wait()
            try:
                self.container.orchestrator.book(
                    f'user{i}@example.com',
                    StagedBooking(train_number=777, seats=seats, journey_date=JOURNEY_DATE),
                )
                outcome = 'success'
            except TrainException:
                outcome = 'failed'
            with lock:
                results[outcome] += 1

        threads = [threading.Thread(target=make_booking, args=(i,)) for i in range(attempts)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results

    def test_concurrent_bookings_dont_oversell(self):
        results = self.run_concurrently(attempts=10, seats=2)

        train = self.container.inventory.get_by_id(777)
        history = self.container.gateway.collection(HISTORY)

        self.assertEqual(results['success'] + results['failed'], 10)
        self.assertEqual(results['success'], 2)
        self.assertEqual(train.seats, 1)
        self.assertEqual(history.count_documents({'tr_no': 777}), results['success'])

    def test_sold_seats_match_records(self):
        results = self.run_concurrently(attempts=8, seats=1)

        train = self.container.inventory.get_by_id(777)
        sold = sum(doc['seats'] for doc in self.container.gateway.collection(HISTORY).find())

        self.assertEqual(results['success'], 5)
        self.assertEqual(train.seats, 0)
        self.assertEqual(sold, train.capacity - train.seats)
