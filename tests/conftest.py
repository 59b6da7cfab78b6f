"""
Test configuration and fixtures for the Shrish Travels operations portal
"""

import base64
import io
import os

import pytest

# Set test environment before importing app
os.environ.update({
    'FLASK_ENV': 'testing',
    'SESSION_SECRET': 'test_secret_key_for_testing_only',
    'DATABASE_URL': 'sqlite:///:memory:',
    'TWILIO_ACCOUNT_SID': '',
    'TWILIO_AUTH_TOKEN': '',
    'TWILIO_PHONE_NUMBER': '',
})

import factory
from factory import Faker
from PIL import Image
from unittest.mock import MagicMock

from app import create_app, db
from models import Booking, DutySlip, DutySlipStatus, Review, Route


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing"""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'WTF_CSRF_ENABLED': False,
        'PUBLIC_BASE_URL': 'https://admin.example.com',
        'SIGNATURE_UPLOAD_FOLDER': str(tmp_path / 'signatures'),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def upload_app(tmp_path):
    """Application storing signatures as files instead of inline"""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'WTF_CSRF_ENABLED': False,
        'PUBLIC_BASE_URL': 'https://admin.example.com',
        'SIGNATURE_STORAGE_MODE': 'upload',
        'SIGNATURE_UPLOAD_FOLDER': str(tmp_path / 'signatures'),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Database session for testing"""
    yield db.session
    db.session.rollback()


@pytest.fixture
def services(app):
    return app.extensions['ops_services']


@pytest.fixture
def twilio_client(services):
    """Replace the Twilio client so notifications are recorded, not sent"""
    client = MagicMock()
    client.messages.create.return_value = MagicMock(sid='SM123')
    services.notifications._client = client
    services.notifications.ops_number = '+918883451668'
    return client


def make_signature(color='black', size=(60, 24)):
    buffer = io.BytesIO()
    Image.new('RGB', size, color).save(buffer, format='PNG')
    return 'data:image/png;base64,' + base64.b64encode(buffer.getvalue()).decode('ascii')


@pytest.fixture
def signature_data_url():
    """A valid inline PNG signature"""
    return make_signature()


# Factory classes for test data generation
class BaseFactory(factory.alchemy.SQLAlchemyModelFactory):
    class Meta:
        abstract = True
        sqlalchemy_session_factory = lambda: db.session
        sqlalchemy_session_persistence = "commit"


class DutySlipFactory(BaseFactory):
    class Meta:
        model = DutySlip

    ds_no = factory.Sequence(lambda n: 1001 + n)
    booking_id = factory.Sequence(lambda n: f"BK{n:04d}")
    date = '2025-06-10'
    organisation = Faker('company')
    guest_name = Faker('name')
    guest_mobile = '9876543210'
    vehicle_type = 'Innova Crysta'
    vehicle_no = 'TN09AB1234'
    driver_name = 'Ravi Kumar'
    driver_mobile = '9876500001'
    routing = 'Chennai - Pondicherry - Chennai'
    date_out = '2025-06-10'
    date_in = '2025-06-10'
    total_days = '1'
    driver_time_out = '08:00'
    driver_km_out = '1000'
    time_out = '08:30'
    km_out = '1005'
    status = DutySlipStatus.NEW

    class Params:
        closed_by_driver = factory.Trait(
            status=DutySlipStatus.CLOSED_BY_DRIVER,
            driver_time_in='20:00',
            driver_km_in='1250',
            time_in='19:30',
            km_in='1245',
            driver_total_hrs='12 hrs 0 mins',
            driver_total_kms='250.0 Kms',
        )


class ReviewFactory(BaseFactory):
    class Meta:
        model = Review

    review_id = factory.Sequence(lambda n: n + 1)
    ds_no = '1001'
    reviewer_name = Faker('name')
    rating = 5
    comment = Faker('sentence')


class BookingFactory(BaseFactory):
    class Meta:
        model = Booking

    booking_id = factory.Sequence(lambda n: f"ST-0106-{n:04d}")
    customer_name = Faker('name')
    mobile_number = '9123456780'
    pickup_city = 'Chennai'
    drop_city = 'Bangalore'


class RouteFactory(BaseFactory):
    class Meta:
        model = Route

    route_slug = factory.Sequence(lambda n: f"chennai-to-city-{n}")
    origin = 'Chennai'
    destination = Faker('city')
    distance_km = '350'
    popular_route = 'No'


@pytest.fixture
def duty_slip(db_session):
    """A New duty slip with the outbound readings filled in"""
    return DutySlipFactory()


@pytest.fixture
def closed_slip(db_session):
    """A slip the driver has closed, ready for invoicing"""
    return DutySlipFactory(closed_by_driver=True)


@pytest.fixture
def duty_slip_payload():
    """Create payload as sent by the manager's create form"""
    return {
        'Booking_ID': 'BK-7788',
        'Date': '2025-06-10',
        'Organisation': 'Acme Corp',
        'Guest_Name': 'Anita Sharma',
        'Guest_Mobile': '9840012345',
        'Reporting_Time': '08:00',
        'Reporting_Address': 'T Nagar, Chennai',
        'Vehicle_Type': 'Innova Crysta',
        'Vehicle_No': 'TN09AB1234',
        'Driver_Name': 'Ravi Kumar',
        'Routing': 'Chennai - Mahabalipuram',
        'Date_Out': '2025-06-10',
        'Date_In': '2025-06-10',
        'Driver_Time_Out': '07:30',
        'Driver_Km_Out': '1000',
        'Time_Out': '08:00',
        'Km_Out': '1010',
    }


@pytest.fixture
def slip_factory(db_session):
    return DutySlipFactory


@pytest.fixture
def review_factory(db_session):
    return ReviewFactory


@pytest.fixture
def booking_factory(db_session):
    return BookingFactory


@pytest.fixture
def route_factory(db_session):
    return RouteFactory
