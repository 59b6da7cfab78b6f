"""
Service Layer Architecture

Business logic behind the /api action endpoint. Services provide:

1. **Transaction Management**: each write commits or rolls back as a unit
2. **Business Logic Separation**: routes only parse requests and shape responses
3. **Testability**: services run against a plain app context
4. **Error Handling**: domain errors from ``errors`` propagate to the blueprint

Services Architecture:
- **DutySlipService**: duty slip lifecycle and status machine
- **InvoiceService**: slab billing and invoice storage
- **SalarySlipService**: salary slip approval workflow
- **ReviewService**, **TrackerService**, **WebsiteService**: feedback, money tracker, website traffic
- **SignatureService**: shared signature validation and storage
- **NotificationService**: WhatsApp alerts and share links
- **AuditService**: audit trail rows inside the caller's transaction
"""

from dataclasses import dataclass

from .audit_service import AuditService
from .duty_slip_service import DutySlipService
from .invoice_service import InvoiceService
from .notification_service import NotificationService
from .review_service import ReviewService
from .salary_slip_service import SalarySlipService
from .signature_service import SignatureService
from .tracker_service import TrackerService
from .transaction_helper import TransactionHelper
from .website_service import WebsiteService


@dataclass
class OpsServices:
    signatures: SignatureService
    notifications: NotificationService
    duty_slips: DutySlipService
    invoices: InvoiceService
    salary_slips: SalarySlipService
    reviews: ReviewService
    tracker: TrackerService
    website: WebsiteService


def build_services(app, reference_data) -> OpsServices:
    """Wire the services from app config and the loaded reference data"""
    config = app.config
    signatures = SignatureService(
        mode=config['SIGNATURE_STORAGE_MODE'],
        upload_folder=config['SIGNATURE_UPLOAD_FOLDER'],
        public_base_url=config['PUBLIC_BASE_URL'],
    )
    notifications = NotificationService(
        account_sid=config.get('TWILIO_ACCOUNT_SID'),
        auth_token=config.get('TWILIO_AUTH_TOKEN'),
        from_number=config.get('TWILIO_PHONE_NUMBER'),
        ops_number=config.get('OPS_WHATSAPP_NUMBER') or reference_data.ops_whatsapp_number,
        public_base_url=config['PUBLIC_BASE_URL'],
        review_link=config.get('REVIEW_LINK', ''),
    )
    return OpsServices(
        signatures=signatures,
        notifications=notifications,
        duty_slips=DutySlipService(reference_data, signatures, notifications),
        invoices=InvoiceService(
            reference_data,
            public_base_url=config['PUBLIC_BASE_URL'],
            default_upi_id=config.get('DEFAULT_UPI_ID') or reference_data.default_upi_id,
        ),
        salary_slips=SalarySlipService(reference_data, signatures, notifications),
        reviews=ReviewService(),
        tracker=TrackerService(reference_data),
        website=WebsiteService(reference_data),
    )


__all__ = [
    'AuditService',
    'DutySlipService',
    'InvoiceService',
    'NotificationService',
    'OpsServices',
    'ReviewService',
    'SalarySlipService',
    'SignatureService',
    'TrackerService',
    'TransactionHelper',
    'WebsiteService',
    'build_services',
]
