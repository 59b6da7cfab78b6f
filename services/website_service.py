"""
Website Service

Public website traffic: booking requests, WhatsApp fare-estimate leads,
career applications, the tariff tables and the route pages shown on the site.
"""

from typing import Any, Dict, List, Tuple
import logging
import random
import string

from errors import ConflictError, PayloadError
from forms import BookingForm, CareerForm, LeadForm, RouteForm
from models import db, Booking, CareerApplication, Route
from timezone_utils import format_ist_timestamp, get_ist_time
from .audit_service import AuditService
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

BOOKING_PREFIX = 'ST'
LEAD_PREFIX = 'WA'
BOOKING_STATUS = 'New Inquiry'
LEAD_STATUS = 'WhatsApp Estimate'
ID_ATTEMPTS = 5
# WhatsApp estimator key -> booking field
LEAD_KEYS = {
    'pickup': 'Pickup_City',
    'drop': 'Drop_City',
    'date': 'Travel_Date',
    'mobile': 'Mobile_Number',
    'type': 'Journey_Type',
}
CAREER_KEYS = {
    'name': 'Full_Name',
    'phone': 'Phone_Number',
    'email': 'Email_Address',
    'city': 'City_Area',
    'experience': 'Experience',
    'type': 'Application_Type',
    'license': 'License_Type',
    'vehicle': 'Vehicle_Details',
}
TARIFF_TABLES = ('local', 'outstation')


def generate_booking_id(prefix: str) -> str:
    """``ST-1906-K3ZQ``: prefix, IST day and month, four random characters"""
    suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=4))
    return f"{prefix}-{get_ist_time().strftime('%d%m')}-{suffix}"


class WebsiteService:
    """Service class for website bookings and routes"""

    def __init__(self, reference_data):
        self.reference_data = reference_data
        self.audit_service = AuditService()

    def submit_booking(self, payload: Dict[str, Any]) -> str:
        if not isinstance(payload, dict):
            raise PayloadError("Request body must be a JSON object.")
        BookingForm.from_payload(payload).validate_or_raise()
        record = dict(payload)
        record['Customer_Name'] = payload.get('Customer_Name') or 'Web User'
        record.setdefault('Journey_Type', 'One Way')
        return self._submit(record, BOOKING_PREFIX, BOOKING_STATUS)

    def submit_lead(self, payload: Dict[str, Any]) -> str:
        if not isinstance(payload, dict):
            raise PayloadError("Request body must be a JSON object.")
        LeadForm.from_payload(payload).validate_or_raise()
        record = {field: payload[key] for key, field in LEAD_KEYS.items() if payload.get(key)}
        record.setdefault('Journey_Type', 'One Way')
        return self._submit(record, LEAD_PREFIX, LEAD_STATUS)

    @TransactionHelper.with_transaction
    def submit_career(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(payload, dict):
            raise PayloadError("Request body must be a JSON object.")
        CareerForm.from_payload(payload).validate_or_raise()

        application = CareerApplication()
        application.timestamp = format_ist_timestamp()
        application.status = 'New'
        application.apply_record({field: payload[key] for key, field in CAREER_KEYS.items() if payload.get(key)})
        db.session.add(application)
        db.session.flush()

        self.audit_service.log_action(
            action='career_application_received',
            entity_type='career_application',
            entity_id=application.id,
            details={'type': application.application_type, 'city': application.city_area},
            actor_role='client',
        )
        logger.info(f"Career application {application.id} ({application.application_type or 'unspecified'}) received")
        return application.to_record()

    def get_tariff(self) -> Dict[str, List[Dict[str, Any]]]:
        return {name: [dict(row) for row in self.reference_data.tariffs.get(name, ())] for name in TARIFF_TABLES}

    def get_bookings(self) -> List[Dict[str, Any]]:
        bookings = Booking.query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()
        return [booking.to_record() for booking in bookings]

    def get_routes(self) -> List[Dict[str, Any]]:
        return [route.to_record() for route in Route.query.order_by(Route.route_slug).all()]

    @TransactionHelper.with_transaction
    def save_route(self, payload: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """Insert or update by ``Route_Slug``; returns the route and whether it was new"""
        if not isinstance(payload, dict):
            raise PayloadError("Request body must be a JSON object.")
        RouteForm.from_payload(payload).validate_or_raise()

        slug = payload['Route_Slug'].strip()
        route = Route.query.filter_by(route_slug=slug).first()
        created = route is None
        if created:
            route = Route()
            db.session.add(route)
        route.apply_record(payload)
        route.route_slug = slug
        db.session.flush()

        self.audit_service.log_action(
            action='route_created' if created else 'route_updated',
            entity_type='route',
            entity_id=slug,
            actor_role='manager',
        )
        logger.info(f"Route {slug} {'created' if created else 'updated'}")
        return route.to_record(), created

    @TransactionHelper.with_transaction
    def _submit(self, record: Dict[str, Any], prefix: str, status: str) -> str:
        booking_id = self._unused_booking_id(prefix)
        booking = Booking()
        booking.booking_id = booking_id
        booking.timestamp = format_ist_timestamp()
        booking.status = status
        booking.apply_record(record)
        db.session.add(booking)
        db.session.flush()

        self.audit_service.log_action(
            action='lead_received' if prefix == LEAD_PREFIX else 'booking_received',
            entity_type='booking',
            entity_id=booking_id,
            details={'journey_type': booking.journey_type, 'pickup': booking.pickup_city,
                     'drop': booking.drop_city},
            actor_role='client',
        )
        logger.info(f"Website {status.lower()} {booking_id} received")
        return booking_id

    @staticmethod
    def _unused_booking_id(prefix: str) -> str:
        for _ in range(ID_ATTEMPTS):
            booking_id = generate_booking_id(prefix)
            if not Booking.query.filter_by(booking_id=booking_id).first():
                return booking_id
        raise ConflictError("Could not allocate a booking id, please retry.")
