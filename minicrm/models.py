from werkzeug.security import generate_password_hash, check_password_hash
from minicrm import db
from minicrm.utils.date_utils import get_utc_now
from sqlalchemy.orm import relationship

USER_ROLES = ('user', 'admin', 'contractor')
LEAD_STATUSES = ('New', 'Contacted', 'Qualified', 'Proposal', 'Negotiation', 'Converted', 'Lost')
LEAD_PRIORITIES = ('Low', 'Medium', 'High')
PAYMENT_STATUSES = ('success', 'failed', 'pending')
PAYMENT_METHODS = ('credit_card', 'debit_card', 'bank_transfer', 'wire_transfer', 'paypal', 'cash')

user_role = db.Enum(*USER_ROLES, name='user_role')
lead_status = db.Enum(*LEAD_STATUSES, name='lead_status')
lead_priority = db.Enum(*LEAD_PRIORITIES, name='lead_priority')
payment_status = db.Enum(*PAYMENT_STATUSES, name='payment_status')


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(60), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    address = db.Column(db.String(400))
    password = db.Column(db.String(255), nullable=False)
    role = db.Column(user_role, nullable=False, default='user')
    profile_image_url = db.Column(db.String(500))
    created_at = db.Column(db.TIMESTAMP(timezone=True), default=get_utc_now, server_default=db.func.current_timestamp())

    def set_password(self, password):
        self.password = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password, password)

    customers = relationship('Customer', back_populates='owner', passive_deletes=True)
    company = relationship('Company', back_populates='owner', uselist=False)


class Customer(db.Model):
    __tablename__ = 'customers'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(50))
    company = db.Column(db.String(255))
    address = db.Column(db.Text)
    created_at = db.Column(db.TIMESTAMP(timezone=True), default=get_utc_now, server_default=db.func.current_timestamp())
    updated_at = db.Column(db.TIMESTAMP(timezone=True), default=get_utc_now, server_default=db.func.current_timestamp())

    owner = relationship('User', back_populates='customers')
    leads = relationship('Lead', back_populates='customer', cascade='all, delete-orphan')


class Lead(db.Model):
    __tablename__ = 'leads'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(lead_status, nullable=False, default='New')
    value = db.Column(db.Numeric(12, 2), default=0)
    priority = db.Column(lead_priority, default='Medium')
    source = db.Column(db.String(100))
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id', ondelete='CASCADE'), index=True)
    assigned_to = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    created_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    # Owner of the lead; role scoping filters on this column only
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    expected_close_date = db.Column(db.Date)
    created_at = db.Column(db.TIMESTAMP(timezone=True), default=get_utc_now, server_default=db.func.current_timestamp())
    updated_at = db.Column(db.TIMESTAMP(timezone=True), default=get_utc_now, server_default=db.func.current_timestamp())

    customer = relationship('Customer', back_populates='leads')
    owner = relationship('User', foreign_keys=[user_id])
    assignee = relationship('User', foreign_keys=[assigned_to])


class Payment(db.Model):
    __tablename__ = 'payments'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    receiver = db.Column(db.String(255), nullable=False)
    status = db.Column(payment_status, nullable=False)
    payment_method = db.Column(db.String(50), nullable=False)
    description = db.Column(db.Text)
    transaction_date = db.Column(db.TIMESTAMP(timezone=True), default=get_utc_now, server_default=db.func.current_timestamp())

    user = relationship('User', backref=db.backref('payments', lazy=True))


class Company(db.Model):
    __tablename__ = 'companies'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255))
    address = db.Column(db.Text)
    owner_user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), unique=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), default=get_utc_now, server_default=db.func.current_timestamp())

    owner = relationship('User', back_populates='company')
    applications = relationship('Application', back_populates='company', cascade='all, delete-orphan')


class Application(db.Model):
    __tablename__ = 'applications'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'company_id', name='uq_applications_user_company'),
        db.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_applications_rating'),
    )
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    company_id = db.Column(db.Integer, db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    rating = db.Column(db.Integer)
    proposal = db.Column(db.Text)
    created_at = db.Column(db.TIMESTAMP(timezone=True), default=get_utc_now, server_default=db.func.current_timestamp())

    user = relationship('User', backref=db.backref('applications', lazy=True))
    company = relationship('Company', back_populates='applications')
