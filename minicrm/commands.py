from datetime import timedelta

import click

from minicrm import db
from minicrm.models import User, Payment, Customer, Lead
from minicrm.utils.date_utils import get_utc_now
import logging

logger = logging.getLogger(__name__)

SAMPLE_USERS = [
    {'name': 'Test User', 'email': 'user@example.com', 'address': '123 User St',
     'password': 'password123', 'role': 'user'},
    {'name': 'Admin User', 'email': 'admin@example.com', 'address': '456 Admin Ave',
     'password': 'admin123', 'role': 'admin'},
    {'name': 'John Doe', 'email': 'john@example.com', 'address': '789 Main St',
     'password': 'john123', 'role': 'user'},
]

SAMPLE_PAYMENTS = [
    ('user@example.com', 125.50, 'Electric Company', 'success', 'credit_card', 'Monthly electricity bill'),
    ('user@example.com', 75.20, 'Internet Provider', 'success', 'bank_transfer', 'Internet subscription'),
    ('john@example.com', 200.00, 'Rent Payment', 'pending', 'bank_transfer', 'Monthly rent'),
    ('john@example.com', 45.99, 'Grocery Store', 'failed', 'debit_card', 'Weekly groceries'),
    ('admin@example.com', 1500.00, 'Freelance Client', 'success', 'wire_transfer', 'Project payment'),
]

SAMPLE_CUSTOMERS = [
    ('user@example.com', 'Acme Corporation', 'contact@acme.com', '+1-555-0123',
     '123 Business St, New York, NY 10001'),
    ('john@example.com', 'Tech Solutions Inc', 'info@techsolutions.com', '+1-555-0456',
     '456 Innovation Ave, San Francisco, CA 94105'),
    ('admin@example.com', 'Global Enterprises', 'hello@globalent.com', '+1-555-0789',
     '789 Corporate Blvd, Chicago, IL 60601'),
]

# (customer index, title, description, status, value, priority, source, assignee, creator, close in days)
SAMPLE_LEADS = [
    (0, 'Website Redesign Project', 'Complete website redesign and development for Acme Corporation',
     'New', 15000, 'High', 'Website', 'user@example.com', 'admin@example.com', 30),
    (1, 'Mobile App Development', 'Native mobile app development for iOS and Android',
     'Contacted', 25000, 'High', 'Referral', 'john@example.com', 'john@example.com', 45),
    (2, 'Cloud Migration Services', 'Migrate existing infrastructure to cloud platform',
     'Qualified', 50000, 'Medium', 'Cold Call', 'admin@example.com', 'admin@example.com', 60),
    (0, 'SEO Optimization', 'Search engine optimization for better online visibility',
     'Proposal', 5000, 'Low', 'Social Media', 'user@example.com', 'user@example.com', 15),
]


def seed_sample_data():
    """
    Insert the sample users, payments, customers and leads.

    Does nothing when the users table already has rows.

    Returns:
        dict: row counts per table after seeding
    """
    if User.query.first() is None:
        users = {}
        for entry in SAMPLE_USERS:
            user = User(name=entry['name'], email=entry['email'], address=entry['address'], role=entry['role'])
            user.set_password(entry['password'])
            db.session.add(user)
            users[entry['email']] = user
        db.session.flush()

        for email, amount, receiver, status, method, description in SAMPLE_PAYMENTS:
            db.session.add(Payment(user_id=users[email].id, amount=amount, receiver=receiver,
                                   status=status, payment_method=method, description=description))

        customers = []
        for email, name, customer_email, phone, address in SAMPLE_CUSTOMERS:
            customer = Customer(user_id=users[email].id, name=name, email=customer_email,
                                phone=phone, company=name, address=address)
            db.session.add(customer)
            customers.append(customer)
        db.session.flush()

        today = get_utc_now().date()
        for idx, title, description, status, value, priority, source, assignee, creator, days in SAMPLE_LEADS:
            customer = customers[idx]
            db.session.add(Lead(
                title=title, description=description, status=status, value=value,
                priority=priority, source=source, customer_id=customer.id,
                user_id=customer.user_id,
                assigned_to=users[assignee].id, created_by=users[creator].id,
                expected_close_date=today + timedelta(days=days),
            ))
        db.session.commit()
        logger.info("Sample data seeded")
    else:
        logger.info("Sample data already exists, skipping seed")

    return {
        'users': User.query.count(),
        'payments': Payment.query.count(),
        'customers': Customer.query.count(),
        'leads': Lead.query.count(),
    }


def register_commands(app):
    @app.cli.command('seed-db')
    def seed_db():
        """Create tables and seed sample data"""
        db.create_all()
        counts = seed_sample_data()
        click.echo(', '.join(f"{name}: {count}" for name, count in counts.items()))
