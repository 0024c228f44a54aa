"""
Management command to seed MongoDB with sample accounts and trains.

Usage:
    python manage.py seed_db           # Seed with default data
    python manage.py seed_db --clear   # Drop existing data first
"""
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.utils import timezone

from bookings.models import StagedBooking
from core.constants import ResponseCode, UserRole
from core.models import Account
from trains.models import Train
from utils.container import get_container
from utils.mongo import HISTORY, SESSIONS, TRAINS, USERS


class Command(BaseCommand):
    help = 'Seed MongoDB with sample accounts and trains'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Drop existing accounts, trains, bookings and sessions before seeding',
        )

    def handle(self, *args, **options):
        container = get_container()

        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self.clear_data(container)

        self.stdout.write('Seeding database...')
        container.gateway.ensure_indexes()
        customers = self.create_accounts(container)
        trains = self.create_trains(container)
        self.create_sample_bookings(container, customers, trains)

        self.stdout.write(self.style.SUCCESS('Database seeded successfully!'))
        self.print_summary(container)

    def clear_data(self, container):
        for name in (HISTORY, SESSIONS, TRAINS, USERS):
            container.gateway.collection(name).delete_many({})
        self.stdout.write(self.style.WARNING('  Cleared accounts, trains, bookings and sessions'))

    def create_accounts(self, container):
        admin = Account(email='admin@railway.com', first_name='Admin', role=UserRole.ADMIN)
        admin.set_password('Admin@123')
        if container.accounts(UserRole.ADMIN).register(admin) is ResponseCode.SUCCESS:
            self.stdout.write('  Created admin: admin@railway.com / Admin@123')

        test_users = [
            ('john@example.com', 'John', 'Doe', '9876543210'),
            ('jane@example.com', 'Jane', 'Smith', '9876543211'),
            ('raj@example.com', 'Raj', 'Kumar', '9876543212'),
        ]

        customers = []
        service = container.accounts(UserRole.CUSTOMER)
        for email, first_name, last_name, phone in test_users:
            account = Account(
                email=email, first_name=first_name, last_name=last_name,
                address='12 Station Road', phone=phone,
            )
            account.set_password('User@123')
            if service.register(account) is ResponseCode.SUCCESS:
                self.stdout.write(f'  Created user: {email} / User@123')
                customers.append(account)
        return customers

    def create_trains(self, container):
        trains_data = [
            (12951, 'Mumbai Rajdhani', 'Delhi', 'Mumbai', 500, '2500.00'),
            (12301, 'Howrah Rajdhani', 'Delhi', 'Kolkata', 450, '2200.00'),
            (12302, 'New Delhi Rajdhani', 'Kolkata', 'Delhi', 450, '2200.00'),
            (12259, 'Sealdah Duronto', 'Delhi', 'Kolkata', 400, '1900.00'),
            (22691, 'Bangalore Rajdhani', 'Delhi', 'Bangalore', 350, '2600.00'),
            (12627, 'Karnataka Express', 'Bangalore', 'Delhi', 600, '1400.00'),
            (12621, 'Tamil Nadu Express', 'Delhi', 'Chennai', 550, '1500.00'),
            (12245, 'Shatabdi Express', 'Chennai', 'Bangalore', 300, '800.00'),
        ]

        trains = []
        for number, name, source, dest, seats, fare in trains_data:
            train = Train(
                number=number, name=name, from_station=source,
                to_station=dest, seats=seats, fare=Decimal(fare),
            )
            if container.inventory.add_train(train) is ResponseCode.SUCCESS:
                self.stdout.write(f'  Created train: {number} - {name}')
                trains.append(train)
        return trains

    def create_sample_bookings(self, container, customers, trains):
        if not customers or not trains:
            return

        journey_date = timezone.localdate() + timedelta(days=7)
        for customer, train in zip(customers[:2], trains):
            record = container.orchestrator.book(
                customer.email,
                StagedBooking(train_number=train.number, seats=2,
                              journey_date=journey_date, travel_class='3A'),
            )
            self.stdout.write(f'  Booked {record.transaction_id} for {customer.email}')

    def print_summary(self, container):
        db = container.gateway
        self.stdout.write('\n' + '=' * 50)
        self.stdout.write('Database Summary:')
        self.stdout.write(f'  Accounts: {db.collection(USERS).count_documents({})}')
        self.stdout.write(f'  Trains: {db.collection(TRAINS).count_documents({})}')
        self.stdout.write(f'  Bookings: {db.collection(HISTORY).count_documents({})}')
        self.stdout.write('=' * 50)
        self.stdout.write('\nTest Credentials:')
        self.stdout.write('  Admin: admin@railway.com / Admin@123')
        self.stdout.write('  User:  john@example.com / User@123')
        self.stdout.write('=' * 50 + '\n')
