"""
Tests for core app - accounts, sessions, error codes and the health check.
Tests cover: ResponseCode/TrainException, MongoDB gateway, Account service,
Session gate, Auth flow integration.
"""
from datetime import timedelta
from io import StringIO
from unittest.mock import MagicMock, patch

from django.core.management import call_command
from django.http import HttpResponse
from django.test import RequestFactory, TestCase, override_settings
from django.utils import timezone
from pymongo.errors import PyMongoError, ServerSelectionTimeoutError
from rest_framework import status
from rest_framework.test import APITestCase

from core.constants import SESSION_EXPIRED_MESSAGE, ResponseCode, UserRole
from core.exception_handler import train_exception_handler
from core.exceptions import TrainException
from core.models import Account
from core.session import SessionGate
from utils.mongo import HISTORY, SESSIONS, TRAINS, USERS, MongoGateway
from utils.testing import FAST_HASHERS, MongoTestMixin


# =============================================================================
# UNIT TESTS - Response codes and exceptions
# =============================================================================

class ResponseCodeTests(TestCase):
    """Test the closed set of outcome codes."""

    def test_str_is_member_name(self):
        self.assertEqual(str(ResponseCode.SUCCESS), 'SUCCESS')
        self.assertEqual(str(ResponseCode.FAILURE), 'FAILURE')

    def test_lookup_by_status(self):
        self.assertIs(ResponseCode.get_by_status(404), ResponseCode.NOT_FOUND)
        self.assertIs(ResponseCode.get_by_status(503), ResponseCode.DATABASE_CONNECTION_FAILURE)

    def test_lookup_unknown_status(self):
        self.assertIsNone(ResponseCode.get_by_status(999))


class TrainExceptionTests(TestCase):

    def test_defaults_to_bad_request(self):
        exc = TrainException('Something went wrong')

        self.assertEqual(exc.status_code, 400)
        self.assertEqual(exc.error_code, 'BAD_REQUEST')
        self.assertEqual(str(exc), 'Something went wrong')

    def test_built_from_response_code(self):
        exc = TrainException.of(ResponseCode.NOT_FOUND)

        self.assertEqual(exc.status_code, 404)
        self.assertEqual(exc.error_code, 'NOT_FOUND')
        self.assertEqual(exc.error_message, ResponseCode.NOT_FOUND.message)
        self.assertIs(exc.response_code, ResponseCode.NOT_FOUND)

    def test_custom_message_overrides_default(self):
        exc = TrainException.of(ResponseCode.UNAUTHORIZED, SESSION_EXPIRED_MESSAGE)
        self.assertEqual(exc.error_message, SESSION_EXPIRED_MESSAGE)

    def test_missing_code_is_rejected(self):
        with self.assertRaises(TypeError):
            TrainException.of(None)

    def test_store_error_keeps_driver_message(self):
        error = PyMongoError('connection reset')
        exc = TrainException.from_store_error(error)

        self.assertEqual(exc.status_code, 500)
        self.assertEqual(exc.error_message, 'connection reset')
        self.assertIs(exc.__cause__, error)


class ExceptionHandlerTests(TestCase):
    """Test TrainException rendering for API responses."""

    def test_client_error_keeps_message(self):
        response = train_exception_handler(TrainException.of(ResponseCode.NOT_FOUND, 'Booking not found'), {})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data, {'error_code': 'NOT_FOUND', 'message': 'Booking not found'})

    @override_settings(DEBUG=False)
    def test_server_error_hides_driver_message(self):
        exc = TrainException.from_store_error(PyMongoError('auth failed on 10.0.0.3'))

        response = train_exception_handler(exc, {})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data['message'], ResponseCode.INTERNAL_SERVER_ERROR.message)

    @override_settings(DEBUG=True)
    def test_server_error_shows_driver_message_in_debug(self):
        exc = TrainException.from_store_error(PyMongoError('auth failed on 10.0.0.3'))

        response = train_exception_handler(exc, {})

        self.assertEqual(response.data['message'], 'auth failed on 10.0.0.3')


# =============================================================================
# UNIT TESTS - MongoDB gateway
# =============================================================================

class MongoGatewayTests(TestCase):

    def test_is_connected_when_metadata_query_answers(self):
        client = MagicMock()
        client.__getitem__.return_value.list_collection_names.return_value = []
        self.assertTrue(MongoGateway(client, 'test').is_connected())

    def test_is_not_connected_when_metadata_query_fails(self):
        client = MagicMock()
        client.__getitem__.return_value.list_collection_names.side_effect = PyMongoError('down')
        self.assertFalse(MongoGateway(client, 'test').is_connected())

    def test_close_releases_client(self):
        client = MagicMock()
        MongoGateway(client, 'test').close()
        client.close.assert_called_once_with()

    @patch('utils.mongo.MongoClient')
    def test_connect_failure_raises_connection_error(self, mock_client):
        mock_client.return_value.admin.command.side_effect = ServerSelectionTimeoutError('timeout')

        with self.assertRaises(TrainException) as ctx:
            MongoGateway.connect('mongodb://nowhere:27017/', 'test', timeout_ms=10)
        self.assertEqual(ctx.exception.error_code, 'DATABASE_CONNECTION_FAILURE')
        self.assertEqual(ctx.exception.status_code, 503)


# =============================================================================
# UNIT TESTS - Account service
# =============================================================================

@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class AccountServiceTests(MongoTestMixin, TestCase):
    """Test registration, authentication and profile maintenance."""

    def setUp(self):
        super().setUp()
        self.service = self.container.accounts(UserRole.CUSTOMER)
        self.users = self.container.gateway.collection(USERS)

    def new_account(self, email='test@example.com'):
        account = Account(email=email, first_name='Test', phone='9876543210')
        account.set_password(self.password)
        return account

    def test_register_success(self):
        result = self.service.register(self.new_account())

        self.assertIs(result, ResponseCode.SUCCESS)
        self.assertEqual(self.users.count_documents({}), 1)

    def test_password_is_stored_hashed(self):
        self.service.register(self.new_account())

        doc = self.users.find_one({'mailid': 'test@example.com'})
        self.assertNotEqual(doc['pword'], self.password)
        self.assertTrue(Account.from_document(doc).check_password(self.password))

    def test_duplicate_registration_fails(self):
        """Duplicate registration returns FAILURE and leaves the count unchanged."""
        self.service.register(self.new_account())
        result = self.service.register(self.new_account())

        self.assertIs(result, ResponseCode.FAILURE)
        self.assertEqual(self.users.count_documents({}), 1)

    def test_authenticate_success(self):
        self.service.register(self.new_account())
        account = self.service.authenticate('test@example.com', self.password)
        self.assertEqual(account.email, 'test@example.com')

    def test_authenticate_wrong_password(self):
        self.service.register(self.new_account())

        with self.assertRaises(TrainException) as ctx:
            self.service.authenticate('test@example.com', 'wrongpass')
        self.assertEqual(ctx.exception.error_code, 'UNAUTHORIZED')

    def test_authenticate_unknown_email(self):
        with self.assertRaises(TrainException) as ctx:
            self.service.authenticate('nobody@example.com', self.password)
        self.assertEqual(ctx.exception.error_code, 'UNAUTHORIZED')

    def test_roles_are_separate(self):
        """A customer cannot sign in through the admin role."""
        self.service.register(self.new_account())

        with self.assertRaises(TrainException):
            self.container.accounts(UserRole.ADMIN).authenticate('test@example.com', self.password)

    def test_get_all_empty_is_no_content(self):
        with self.assertRaises(TrainException) as ctx:
            self.service.get_all()
        self.assertEqual(ctx.exception.error_code, 'NO_CONTENT')

    def test_update_profile(self):
        account = self.new_account()
        self.service.register(account)
        account.address = '7 Platform Lane'

        self.assertIs(self.service.update(account), ResponseCode.SUCCESS)
        self.assertEqual(self.service.get_by_email(account.email).address, '7 Platform Lane')

    def test_update_unknown_account_fails(self):
        self.assertIs(self.service.update(self.new_account('ghost@example.com')), ResponseCode.FAILURE)

    def test_change_password_wrong_old_password(self):
        self.service.register(self.new_account())

        with self.assertRaises(TrainException) as ctx:
            self.service.change_password('test@example.com', 'wrongpass', 'NewPass@123')
        self.assertEqual(ctx.exception.error_message, 'Wrong Old PassWord!')

    def test_change_password(self):
        self.service.register(self.new_account())

        result = self.service.change_password('test@example.com', self.password, 'NewPass@123')

        self.assertIs(result, ResponseCode.SUCCESS)
        self.assertEqual(self.service.authenticate('test@example.com', 'NewPass@123').email,
                         'test@example.com')

    def test_delete_account(self):
        account = self.new_account()
        self.service.register(account)

        self.assertIs(self.service.delete(account), ResponseCode.SUCCESS)
        self.assertIs(self.service.delete(account), ResponseCode.FAILURE)

    def test_store_failure_is_rethrown_with_driver_message(self):
        self.service.collection = MagicMock()
        self.service.collection.find_one.return_value = None
        self.service.collection.insert_one.side_effect = PyMongoError('write concern error')

        with self.assertRaises(TrainException) as ctx:
            self.service.register(self.new_account())
        self.assertEqual(ctx.exception.error_code, 'FAILURE')
        self.assertEqual(ctx.exception.error_message, 'write concern error')


# =============================================================================
# UNIT TESTS - Session gate
# =============================================================================

@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class SessionGateTests(MongoTestMixin, TestCase):
    """Test issuing, validating and clearing role-scoped sessions."""

    def setUp(self):
        super().setUp()
        self.gate = self.container.gate
        self.factory = RequestFactory()
        self.create_account('test@example.com', first_name='Asha')

    def request_with(self, cookies=None):
        request = self.factory.get('/')
        request.COOKIES.update(cookies or {})
        return request

    def login(self, email='test@example.com', role=UserRole.CUSTOMER, password=None):
        response = HttpResponse()
        result = self.gate.login(self.request_with(), response, role, email, password or self.password)
        self.assertIs(result, ResponseCode.SUCCESS)
        return {name: morsel.value for name, morsel in response.cookies.items()}

    def test_cookie_names(self):
        self.assertEqual(SessionGate.cookie_name(UserRole.CUSTOMER), 'sessionIdForCUSTOMER')
        self.assertEqual(SessionGate.username_cookie_name(UserRole.ADMIN), 'usernameForADMIN')

    def test_missing_cookie_fails_for_every_role(self):
        request = self.request_with()
        for roles in [(UserRole.CUSTOMER,), (UserRole.ADMIN,), ()]:
            with self.subTest(roles=roles):
                with self.assertRaises(TrainException) as ctx:
                    self.gate.validate_authorization(request, *roles)
                self.assertEqual(ctx.exception.error_code, 'UNAUTHORIZED')
                self.assertEqual(ctx.exception.error_message, SESSION_EXPIRED_MESSAGE)

    def test_login_issues_both_cookies(self):
        cookies = self.login()

        self.assertIn('sessionIdForCUSTOMER', cookies)
        self.assertEqual(cookies['usernameForCUSTOMER'], 'Asha')

    def test_login_rejects_bad_password(self):
        with self.assertRaises(TrainException) as ctx:
            self.login(password='wrongpass')
        self.assertEqual(ctx.exception.error_code, 'UNAUTHORIZED')

    def test_valid_session_is_returned(self):
        request = self.request_with(self.login())

        record = self.gate.validate_authorization(request, UserRole.CUSTOMER)

        self.assertEqual(record.email, 'test@example.com')
        self.assertTrue(self.gate.is_logged_in(request, UserRole.CUSTOMER))
        self.assertEqual(self.gate.current_user_name(request, UserRole.CUSTOMER), 'Asha')
        self.assertEqual(self.gate.current_user_email(request, UserRole.CUSTOMER), 'test@example.com')

    def test_customer_session_does_not_open_admin_routes(self):
        request = self.request_with(self.login())

        with self.assertRaises(TrainException):
            self.gate.validate_authorization(request, UserRole.ADMIN)

    def test_tampered_token_is_rejected(self):
        cookies = self.login()
        cookies['sessionIdForCUSTOMER'] = cookies['sessionIdForCUSTOMER'][:-4] + 'abcd'

        self.assertFalse(self.gate.is_logged_in(self.request_with(cookies), UserRole.CUSTOMER))

    def test_expired_record_is_rejected_and_removed(self):
        request = self.request_with(self.login())
        sessions = self.container.gateway.collection(SESSIONS)
        sessions.update_many({}, {'$set': {'expires_at': timezone.now() - timedelta(minutes=1)}})

        self.assertFalse(self.gate.is_logged_in(request, UserRole.CUSTOMER))
        self.assertEqual(sessions.count_documents({}), 0)

    def test_logout_clears_session_and_cookies(self):
        request = self.request_with(self.login())
        response = HttpResponse()

        self.assertTrue(self.gate.logout(request, response, UserRole.CUSTOMER))

        self.assertEqual(response.cookies['sessionIdForCUSTOMER'].value, '')
        self.assertEqual(response.cookies['usernameForCUSTOMER'].value, '')
        self.assertEqual(response.cookies['sessionIdForCUSTOMER']['max-age'], 0)
        self.assertFalse(self.gate.is_logged_in(request, UserRole.CUSTOMER))
        self.assertFalse(self.gate.logout(request, HttpResponse(), UserRole.CUSTOMER))

    def test_relogin_replaces_previous_session(self):
        first = self.login()
        response = HttpResponse()
        self.gate.login(self.request_with(first), response, UserRole.CUSTOMER,
                        'test@example.com', self.password)

        self.assertFalse(self.gate.is_logged_in(self.request_with(first), UserRole.CUSTOMER))
        self.assertEqual(self.container.gateway.collection(SESSIONS).count_documents({}), 1)


# =============================================================================
# INTEGRATION TESTS - API Flow
# =============================================================================

@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class HealthCheckAPITests(MongoTestMixin, APITestCase):

    def test_health_up(self):
        response = self.client.get('/api/health/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'status': 'UP'})

    def test_health_down(self):
        with patch.object(self.container.gateway, 'is_connected', return_value=False):
            response = self.client.get('/api/health/')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {'status': 'DOWN'})


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class AuthenticationAPITests(MongoTestMixin, APITestCase):
    """Integration tests for registration, login and logout."""

    register_data = {
        'email': 'NewUser@Example.com',
        'password': 'SecurePass123!',
        'first_name': 'New',
        'last_name': 'User',
        'address': '12 Station Road',
        'phone': '9876543210',
    }

    def test_register(self):
        response = self.client.post('/api/register/', self.register_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user']['email'], 'newuser@example.com')
        self.assertNotIn('password', response.data['user'])

    def test_register_duplicate(self):
        self.client.post('/api/register/', self.register_data, format='json')
        response = self.client.post('/api/register/', self.register_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['error_code'], 'FAILURE')

    def test_register_invalid_phone(self):
        data = dict(self.register_data, phone='12ab')
        response = self.client.post('/api/register/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('phone', response.data)

    def test_login_sets_cookies(self):
        self.create_account('test@example.com')

        response = self.login('test@example.com')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'SUCCESS')
        self.assertIn('sessionIdForCUSTOMER', response.cookies)
        self.assertIn('usernameForCUSTOMER', response.cookies)
        self.assertTrue(response.cookies['sessionIdForCUSTOMER']['httponly'])

    def test_login_invalid_credentials(self):
        self.create_account('test@example.com')

        response = self.login('test@example.com', password='wrongpass')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['message'], ResponseCode.UNAUTHORIZED.message)

    def test_full_auth_flow(self):
        """Register -> login -> protected route -> logout."""
        self.client.post('/api/register/', self.register_data, format='json')
        self.login('newuser@example.com', password='SecurePass123!')

        profile_response = self.client.get('/api/profile/')
        self.assertEqual(profile_response.status_code, status.HTTP_200_OK)
        self.assertEqual(profile_response.data['email'], 'newuser@example.com')

        logout_response = self.client.post('/api/logout/')
        self.assertEqual(logout_response.data['message'], 'You have been successfully logged out')

        again = self.client.post('/api/logout/')
        self.assertEqual(again.data['message'], 'Already Logged Out')

        self.assertEqual(self.client.get('/api/profile/').status_code, status.HTTP_401_UNAUTHORIZED)

    def test_protected_route_without_session(self):
        response = self.client.get('/api/profile/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['message'], SESSION_EXPIRED_MESSAGE)

    def test_protected_route_with_invalid_token(self):
        self.client.cookies['sessionIdForCUSTOMER'] = 'invalid_token_here'

        response = self.client.get('/api/profile/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class ProfileAPITests(MongoTestMixin, APITestCase):

    def setUp(self):
        super().setUp()
        self.create_account('test@example.com')
        self.login('test@example.com')

    def test_update_profile(self):
        response = self.client.put('/api/profile/', {
            'first_name': 'Ravi',
            'last_name': 'Shah',
            'address': '7 Platform Lane',
            'phone': '9123456780',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['first_name'], 'Ravi')

    def test_change_password_ends_session(self):
        response = self.client.post('/api/profile/password/', {
            'username': 'test@example.com',
            'old_password': self.password,
            'new_password': 'NewPass@123',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get('/api/profile/').status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(self.login('test@example.com', password='NewPass@123').status_code,
                         status.HTTP_200_OK)

    def test_change_password_wrong_old_password(self):
        response = self.client.post('/api/profile/password/', {
            'username': 'test@example.com',
            'old_password': 'wrongpass',
            'new_password': 'NewPass@123',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['message'], 'Wrong Old PassWord!')

    def test_change_password_for_another_user(self):
        response = self.client.post('/api/profile/password/', {
            'username': 'other@example.com',
            'old_password': self.password,
            'new_password': 'NewPass@123',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['message'], 'Invalid Username and Old Password !')


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class AdminAccountsAPITests(MongoTestMixin, APITestCase):
    """Test admin-only account management routes."""

    def setUp(self):
        super().setUp()
        self.create_account('admin@example.com', role=UserRole.ADMIN)
        self.create_account('john@example.com')

    def test_customer_cannot_list_accounts(self):
        self.login('john@example.com')

        response = self.client.get('/api/admin/users/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_admin_lists_customers(self):
        self.login('admin@example.com', role=UserRole.ADMIN)

        response = self.client.get('/api/admin/users/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['email'], 'john@example.com')

    def test_admin_deletes_customer(self):
        self.login('admin@example.com', role=UserRole.ADMIN)

        response = self.client.delete('/api/admin/users/john@example.com/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Deleted Successfully')
        self.assertEqual(self.client.get('/api/admin/users/').data['count'], 0)


# =============================================================================
# MANAGEMENT COMMAND
# =============================================================================

@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class SeedCommandTests(MongoTestMixin, TestCase):

    def counts(self):
        db = self.container.gateway
        return tuple(db.collection(name).count_documents({}) for name in (USERS, TRAINS, HISTORY))

    def test_seed_creates_accounts_trains_and_bookings(self):
        call_command('seed_db', stdout=StringIO())

        self.assertEqual(self.counts(), (4, 8, 2))
        self.container.accounts(UserRole.ADMIN).authenticate('admin@railway.com', 'Admin@123')

    def test_reseed_with_clear(self):
        call_command('seed_db', stdout=StringIO())
        call_command('seed_db', '--clear', stdout=StringIO())

        self.assertEqual(self.counts(), (4, 8, 2))
