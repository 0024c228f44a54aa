"""
Tests for trains app.
Tests cover: Train document mapping, Inventory service, Seat debit, Search and admin-only API.
"""
from decimal import Decimal
from unittest.mock import MagicMock

from django.test import TestCase, override_settings
from pymongo.errors import PyMongoError
from rest_framework import status
from rest_framework.test import APITestCase

from core.constants import ResponseCode, UserRole
from core.exceptions import TrainException
from trains.models import Train
from trains.serializers import TrainWriteSerializer
from utils.testing import FAST_HASHERS, MongoTestMixin


def make_train(number=123, seats=5, fare='100.0', **kwargs):
    defaults = dict(name='Test Express', from_station='Delhi', to_station='Mumbai')
    defaults.update(kwargs)
    return Train(number=number, seats=seats, fare=Decimal(fare), **defaults)


# =============================================================================
# UNIT TESTS - Models
# =============================================================================

class TrainModelTests(TestCase):

    def test_capacity_defaults_to_seats(self):
        train = make_train(seats=40)

        self.assertEqual(train.capacity, 40)
        self.assertEqual(train.booked_seats, 0)

    def test_fare_for_seats(self):
        self.assertEqual(make_train(fare='99.50').fare_for(3), Decimal('298.50'))

    def test_document_mapping(self):
        doc = make_train(capacity=10).to_document()

        self.assertEqual(doc['tr_no'], 123)
        self.assertEqual(doc['from_stn'], 'Delhi')
        self.assertEqual(doc['capacity'], 10)
        self.assertEqual(Train.from_document(doc), make_train(capacity=10))

    def test_train_string_representation(self):
        self.assertEqual(str(make_train()), '123 - Test Express')


class TrainSerializerTests(TestCase):

    def valid_data(self, **overrides):
        data = {
            'name': 'Test Express',
            'from_station': 'Delhi',
            'to_station': 'Mumbai',
            'seats': 5,
            'fare': '100.00',
        }
        data.update(overrides)
        return data

    def test_same_stations_rejected(self):
        serializer = TrainWriteSerializer(data=self.valid_data(to_station=' Delhi '))

        self.assertFalse(serializer.is_valid())
        self.assertIn('to_station', serializer.errors)

    def test_seats_above_capacity_rejected(self):
        serializer = TrainWriteSerializer(data=self.valid_data(seats=20, capacity=10))

        self.assertFalse(serializer.is_valid())
        self.assertIn('seats', serializer.errors)

    def test_negative_seats_rejected(self):
        serializer = TrainWriteSerializer(data=self.valid_data(seats=-1))
        self.assertFalse(serializer.is_valid())

    def test_update_keeps_current_capacity(self):
        serializer = TrainWriteSerializer(data=self.valid_data(seats=3))
        self.assertTrue(serializer.is_valid())

        train = serializer.to_train(123, current_capacity=50)

        self.assertEqual(train.capacity, 50)
        self.assertEqual(train.seats, 3)


# =============================================================================
# UNIT TESTS - Inventory service
# =============================================================================

class InventoryServiceTests(MongoTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.inventory = self.container.inventory
        self.inventory.add_train(make_train())

    def test_add_duplicate_train_fails(self):
        self.assertIs(self.inventory.add_train(make_train()), ResponseCode.FAILURE)

    def test_get_by_id(self):
        train = self.inventory.get_by_id(123)

        self.assertEqual(train.name, 'Test Express')
        self.assertEqual(train.fare, Decimal('100.0'))

    def test_get_unknown_train(self):
        with self.assertRaises(TrainException) as ctx:
            self.inventory.get_by_id(99999)
        self.assertEqual(ctx.exception.error_code, 'NOT_FOUND')
        self.assertEqual(ctx.exception.error_message, 'Train No.99999 is Not Available')

    def test_get_all_sorted_by_number(self):
        self.inventory.add_train(make_train(number=12))

        self.assertEqual([t.number for t in self.inventory.get_all()], [12, 123])

    def test_get_all_empty(self):
        self.inventory.delete_by_id(123)

        with self.assertRaises(TrainException) as ctx:
            self.inventory.get_all()
        self.assertEqual(ctx.exception.error_code, 'NO_CONTENT')
        self.assertEqual(ctx.exception.error_message, 'No Running Trains')

    def test_between_stations(self):
        self.inventory.add_train(make_train(number=456, from_station='Delhi', to_station='Kolkata'))

        trains = self.inventory.get_between_stations('Delhi', 'Mumbai')

        self.assertEqual([t.number for t in trains], [123])

    def test_between_stations_none(self):
        with self.assertRaises(TrainException) as ctx:
            self.inventory.get_between_stations('Pune', 'Goa')
        self.assertEqual(ctx.exception.error_message, 'There are no trains Between Pune and Goa')

    def test_update_train(self):
        train = make_train(name='Renamed Express')

        self.assertIs(self.inventory.update_train(train), ResponseCode.SUCCESS)
        self.assertEqual(self.inventory.get_by_id(123).name, 'Renamed Express')

    def test_update_skipped_when_seats_changed_since_read(self):
        self.inventory.debit_seats(123, 2)

        outcome = self.inventory.update_train(make_train(name='Renamed Express'), expected_seats=5)

        self.assertIs(outcome, ResponseCode.FAILURE)
        train = self.inventory.get_by_id(123)
        self.assertEqual(train.seats, 3)
        self.assertEqual(train.name, 'Test Express')

    def test_update_unknown_train_fails(self):
        self.assertIs(self.inventory.update_train(make_train(number=999)), ResponseCode.FAILURE)

    def test_delete_unknown_train_fails(self):
        self.assertIs(self.inventory.delete_by_id(999), ResponseCode.FAILURE)

    def test_store_failure_is_rethrown(self):
        self.inventory.collection = MagicMock()
        self.inventory.collection.find_one.side_effect = PyMongoError('socket closed')

        with self.assertRaises(TrainException) as ctx:
            self.inventory.get_by_id(123)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.error_message, 'socket closed')


class SeatDebitTests(MongoTestMixin, TestCase):
    """Test the atomic conditional seat debit."""

    def setUp(self):
        super().setUp()
        self.inventory = self.container.inventory
        self.inventory.add_train(make_train(seats=5))

    def test_debit_within_availability(self):
        train = self.inventory.debit_seats(123, 2)

        self.assertEqual(train.seats, 3)
        self.assertEqual(self.inventory.get_by_id(123).seats, 3)

    def test_debit_all_remaining_seats(self):
        self.assertEqual(self.inventory.debit_seats(123, 5).seats, 0)

    def test_debit_more_than_available(self):
        with self.assertRaises(TrainException) as ctx:
            self.inventory.debit_seats(123, 10)

        self.assertEqual(ctx.exception.error_code, 'SEATS_UNAVAILABLE')
        self.assertIn('Only 5 Seats', ctx.exception.error_message)
        self.assertEqual(self.inventory.get_by_id(123).seats, 5)

    def test_debit_unknown_train(self):
        with self.assertRaises(TrainException) as ctx:
            self.inventory.debit_seats(999, 1)
        self.assertEqual(ctx.exception.error_message, 'Invalid Train Number')

    def test_debit_requires_positive_seats(self):
        with self.assertRaises(TrainException) as ctx:
            self.inventory.debit_seats(123, 0)
        self.assertEqual(ctx.exception.error_code, 'BAD_REQUEST')

    def test_sequential_debits_never_go_negative(self):
        self.inventory.debit_seats(123, 3)

        with self.assertRaises(TrainException):
            self.inventory.debit_seats(123, 3)
        self.assertEqual(self.inventory.get_by_id(123).seats, 2)

    def test_debit_is_a_single_conditional_update(self):
        self.inventory.collection = MagicMock()
        self.inventory.collection.find_one_and_update.return_value = make_train(seats=3).to_document()

        self.inventory.debit_seats(123, 2)

        query, update = self.inventory.collection.find_one_and_update.call_args[0]
        self.assertEqual(query, {'tr_no': 123, 'seats': {'$gte': 2}})
        self.assertEqual(update, {'$inc': {'seats': -2}})

    def test_debit_declined_after_retries(self):
        """Seats keep being taken between the update and the re-read."""
        self.inventory.collection = MagicMock()
        self.inventory.collection.find_one_and_update.return_value = None
        self.inventory.collection.find_one.return_value = make_train(seats=5).to_document()

        with self.assertRaises(TrainException) as ctx:
            self.inventory.debit_seats(123, 2)

        self.assertEqual(ctx.exception.error_message, 'Transaction Declined')
        self.assertEqual(self.inventory.collection.find_one_and_update.call_count,
                         self.inventory.debit_retries)

    def test_credit_returns_seats(self):
        self.inventory.debit_seats(123, 2)

        self.assertIs(self.inventory.credit_seats(123, 2), ResponseCode.SUCCESS)
        self.assertEqual(self.inventory.get_by_id(123).seats, 5)


# =============================================================================
# INTEGRATION TESTS - API
# =============================================================================

@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class TrainSearchAPITests(MongoTestMixin, APITestCase):
    """Integration tests for train listing and search."""

    def setUp(self):
        super().setUp()
        self.container.inventory.add_train(make_train(number=12951, name='Mumbai Rajdhani'))
        self.container.inventory.add_train(make_train(number=12952, name='August Kranti'))
        self.container.inventory.add_train(
            make_train(number=12301, from_station='Delhi', to_station='Kolkata')
        )
        self.create_account('test@example.com')
        self.login('test@example.com')

    def test_search_trains_success(self):
        response = self.client.get('/api/trains/search/', {
            'from_station': 'Delhi', 'to_station': 'Mumbai',
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['results'][0]['number'], 12951)

    def test_search_trains_no_results(self):
        response = self.client.get('/api/trains/search/', {
            'from_station': 'Pune', 'to_station': 'Goa',
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 0)
        self.assertEqual(response.data['message'], 'There are no trains Between Pune and Goa')

    def test_search_trains_missing_params(self):
        response = self.client.get('/api/trains/search/', {'from_station': 'Delhi'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_trains(self):
        response = self.client.get('/api/trains/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)

    def test_train_detail(self):
        response = self.client.get('/api/trains/12951/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Mumbai Rajdhani')

    def test_unknown_train_detail(self):
        response = self.client.get('/api/trains/99999/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['message'], 'Train No.99999 is Not Available')

    def test_non_numeric_train_number(self):
        response = self.client.get('/api/trains/abc/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_search_unauthenticated(self):
        self.client.post('/api/logout/')

        response = self.client.get('/api/trains/search/', {
            'from_station': 'Delhi', 'to_station': 'Mumbai',
        })
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class AdminOnlyAPITests(MongoTestMixin, APITestCase):
    """Test train management is restricted to admins."""

    train_data = {
        'number': 12951,
        'name': 'Mumbai Rajdhani',
        'from_station': 'Delhi',
        'to_station': 'Mumbai',
        'seats': 500,
        'fare': '2500.00',
    }

    def setUp(self):
        super().setUp()
        self.create_account('admin@example.com', role=UserRole.ADMIN)
        self.create_account('user@example.com')

    def test_regular_user_cannot_create_train(self):
        self.login('user@example.com')

        response = self.client.post('/api/trains/', self.train_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        with self.assertRaises(TrainException):
            self.container.inventory.get_by_id(12951)

    def test_admin_can_create_train(self):
        self.login('admin@example.com', role=UserRole.ADMIN)

        response = self.client.post('/api/trains/', self.train_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['train']['capacity'], 500)
        self.assertEqual(self.container.inventory.get_by_id(12951).seats, 500)

    def test_admin_duplicate_train(self):
        self.login('admin@example.com', role=UserRole.ADMIN)
        self.client.post('/api/trains/', self.train_data, format='json')

        response = self.client.post('/api/trains/', self.train_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_admin_can_update_train(self):
        self.login('admin@example.com', role=UserRole.ADMIN)
        self.client.post('/api/trains/', self.train_data, format='json')
        data = dict(self.train_data, seats=450, fare='2600.00')
        data.pop('number')

        response = self.client.put('/api/trains/12951/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        train = self.container.inventory.get_by_id(12951)
        self.assertEqual(train.seats, 450)
        self.assertEqual(train.capacity, 500)

    def test_admin_update_cannot_restore_booked_seats(self):
        self.login('admin@example.com', role=UserRole.ADMIN)
        self.client.post('/api/trains/', self.train_data, format='json')
        self.container.inventory.debit_seats(12951, 2)
        data = dict(self.train_data, seats=500)
        data.pop('number')

        response = self.client.put('/api/trains/12951/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'BAD_REQUEST')
        self.assertEqual(self.container.inventory.get_by_id(12951).seats, 498)

        data.update(seats=498, fare='2600.00')
        response = self.client.put('/api/trains/12951/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        train = self.container.inventory.get_by_id(12951)
        self.assertEqual(train.seats, 498)
        self.assertEqual(train.booked_seats, 2)

    def test_admin_can_delete_train(self):
        self.login('admin@example.com', role=UserRole.ADMIN)
        self.client.post('/api/trains/', self.train_data, format='json')

        response = self.client.delete('/api/trains/12951/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        again = self.client.delete('/api/trains/12951/')
        self.assertEqual(again.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_admin_can_list_trains(self):
        self.login('admin@example.com', role=UserRole.ADMIN)

        response = self.client.get('/api/trains/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 0)

    def test_unauthenticated_cannot_access_admin_route(self):
        response = self.client.delete('/api/trains/12951/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
