"""
Invoice Service

Builds invoices either from a closed duty slip (loaded mode) or from
manually entered trip details, runs the slab billing and stores the
result once per booking under a public id for the shareable link.
"""

from typing import Any, Dict, Optional, Tuple
import logging
import random
import uuid

from errors import ConflictError, NotFoundError, PayloadError, TransitionError, ValidationError
from forms import InvoiceForm
from models import db, DutySlip, DutySlipStatus, Invoice
from timezone_utils import format_ist_timestamp, get_ist_time
from utils.calculations import (InvoiceBreakdown, InvoiceCalculator, RateConfig, is_blank,
                                parse_hours, parse_kms, parse_number)
from .audit_service import AuditService
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

INVOICEABLE_STATUSES = (DutySlipStatus.CLOSED_BY_DRIVER, DutySlipStatus.CLOSED_BY_CLIENT)
TRIP_FACT_KEYS = ('Guest_Name', 'Guest_Mobile', 'Vehicle_Type', 'Vehicle_No',
                  'Trip_Start_Date', 'Trip_End_Date')
RATE_KEYS = {
    'Base_Rate': 'base_rate',
    'Included_KMs_per_Slab': 'included_kms_per_slab',
    'Extra_KM_Rate': 'extra_km_rate',
    'Batta_Rate': 'batta_rate',
}
BREAKDOWN_KEYS = {
    'Total_Hours': 'total_hours',
    'Total_KMs': 'total_kms',
    'Billing_Slabs': 'billing_slabs',
    'Calculated_Extra_KMs': 'calculated_extra_kms',
    'Package_Cost': 'package_cost',
    'Extra_KM_Cost': 'extra_km_cost',
    'Batta_Cost': 'batta_cost',
    'Total_Tolls': 'total_tolls',
    'Total_Permits': 'total_permits',
    'Total_Expenses': 'total_expenses',
    'Grand_Total': 'grand_total',
}


def manual_booking_id() -> str:
    return f"MANUAL-{random.randint(0, 999999):06d}"


class InvoiceService:
    """Service class for invoice derivation and storage"""

    def __init__(self, reference_data, public_base_url: str = '', default_upi_id: str = ''):
        self.reference_data = reference_data
        self.public_base_url = public_base_url.rstrip('/')
        self.default_upi_id = default_upi_id
        self.calculator = InvoiceCalculator()
        self.audit_service = AuditService()

    def preview(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Invoice record as it would be saved, without writing anything"""
        return self._build(payload)

    def save(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        invoice = self._save(payload)
        return {
            'Invoice_ID': invoice['Invoice_ID'],
            'Public_ID': invoice['Public_ID'],
            'shareableLink': invoice['Shareable_Link'],
            'Grand_Total': invoice['Grand_Total'],
        }

    def exists(self, booking_id: Optional[str]) -> bool:
        if is_blank(booking_id):
            raise ValidationError("bookingId is required.", fields={'bookingId': 'Required'})
        return Invoice.query.filter_by(booking_id=booking_id.strip()).first() is not None

    def get_by_public_id(self, public_id: Optional[str]) -> Dict[str, Any]:
        if is_blank(public_id):
            raise ValidationError("pid is required.", fields={'pid': 'Required'})
        invoice = Invoice.query.filter_by(public_id=public_id.strip()).first()
        if not invoice:
            raise NotFoundError("Invoice not found.")
        return invoice.to_record()

    def shareable_link(self, public_id: str) -> str:
        return f"{self.public_base_url}/view-invoice.html?pid={public_id}"

    @TransactionHelper.with_transaction
    def _save(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        record = self._build(payload)
        booking_id = record['Booking_ID']
        if Invoice.query.filter_by(booking_id=booking_id).first():
            raise ConflictError(f"An invoice for booking {booking_id} already exists.")

        invoice = Invoice()
        invoice.invoice_id = f"ST-{booking_id}"
        invoice.public_id = uuid.uuid4().hex
        invoice.status = 'Generated'
        invoice.shareable_link = self.shareable_link(invoice.public_id)
        invoice.apply_record(record)
        db.session.add(invoice)
        db.session.flush()

        self.audit_service.log_action(
            action='invoice_saved',
            entity_type='invoice',
            entity_id=invoice.invoice_id,
            details={'booking_id': booking_id, 'ds_no': invoice.ds_no, 'grand_total': invoice.grand_total},
            actor_role='manager',
        )
        logger.info(f"Invoice {invoice.invoice_id} saved, grand total {invoice.grand_total:.2f}")
        return invoice.to_record()

    def _build(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(payload, dict):
            raise PayloadError("Request body must be a JSON object.")
        InvoiceForm.from_payload(payload).validate_or_raise()

        if is_blank(payload.get('DS_No')):
            record, hours, kms = self._manual_inputs(payload)
        else:
            record, hours, kms = self._loaded_inputs(payload)

        rates = self._rates(payload)
        tolls = parse_number(payload.get('Total_Tolls')) or 0.0
        permits = parse_number(payload.get('Total_Permits')) or 0.0
        try:
            breakdown = self.calculator.derive(hours, kms, rates, tolls=tolls, permits=permits)
        except ValueError as e:
            raise ValidationError(str(e))

        today = get_ist_time()
        record.update({
            'Invoice_Date': payload.get('Invoice_Date') or today.date().isoformat(),
            'Last_Updated': format_ist_timestamp(today),
            'Invoice_Note': payload.get('Invoice_Note') or '',
            'UPI_ID': payload.get('UPI_ID') or self.default_upi_id,
            'Status': 'Generated',
        })
        record.update({key: getattr(rates, attr) for key, attr in RATE_KEYS.items()})
        record.update(self._breakdown_record(breakdown))
        return record

    def _loaded_inputs(self, payload: Dict[str, Any]) -> Tuple[Dict[str, Any], float, float]:
        """Trip facts and usage from a closed duty slip; explicit values win"""
        try:
            ds_no = int(str(payload['DS_No']).strip())
        except ValueError:
            raise ValidationError(f"Invalid DS No: {payload['DS_No']}", fields={'DS_No': 'DS No must be a number'})
        slip = DutySlip.query.filter_by(ds_no=ds_no).first()
        if not slip:
            raise NotFoundError(f"Duty Slip with ID {ds_no} not found.")
        if slip.status not in INVOICEABLE_STATUSES:
            raise TransitionError(f"Duty Slip {ds_no} is {slip.status.value}; only closed trips can be invoiced.")

        facts = {
            'Guest_Name': slip.guest_name,
            'Guest_Mobile': slip.guest_mobile,
            'Vehicle_Type': slip.vehicle_type,
            'Vehicle_No': slip.vehicle_no,
            'Trip_Start_Date': slip.date_out or slip.date,
            'Trip_End_Date': slip.date_in or slip.date,
        }
        for key in TRIP_FACT_KEYS:
            if not is_blank(payload.get(key)):
                facts[key] = payload[key]

        booking_id = payload.get('Booking_ID') or slip.booking_id
        if is_blank(booking_id):
            raise ValidationError("Duty slip has no Booking ID; enter one to invoice it.",
                                  fields={'Booking_ID': 'Required'})

        if is_blank(payload.get('Total_Hours')):
            hours = parse_hours(slip.driver_total_hrs)
        else:
            hours = parse_hours(payload['Total_Hours'])
        if is_blank(payload.get('Total_KMs')):
            km_out, km_in = parse_number(slip.driver_km_out), parse_number(slip.driver_km_in)
            kms = max(0.0, km_in - km_out) if km_out is not None and km_in is not None else 0.0
        else:
            kms = parse_kms(payload['Total_KMs'])

        facts.update({'Booking_ID': str(booking_id).strip(), 'DS_No': str(ds_no)})
        return facts, hours, kms

    def _manual_inputs(self, payload: Dict[str, Any]) -> Tuple[Dict[str, Any], float, float]:
        facts = {key: payload.get(key) or '' for key in TRIP_FACT_KEYS}
        booking_id = payload.get('Booking_ID')
        facts['Booking_ID'] = manual_booking_id() if is_blank(booking_id) else str(booking_id).strip()
        facts['DS_No'] = ''
        return facts, parse_hours(payload.get('Total_Hours')), parse_kms(payload.get('Total_KMs'))

    def _rates(self, payload: Dict[str, Any]) -> RateConfig:
        defaults = self.reference_data.default_rates
        values = {}
        for key, attr in RATE_KEYS.items():
            value = parse_number(payload.get(key))
            values[attr] = getattr(defaults, attr) if value is None else value
        return RateConfig(**values)

    @staticmethod
    def _breakdown_record(breakdown: InvoiceBreakdown) -> Dict[str, Any]:
        return {key: getattr(breakdown, attr) for key, attr in BREAKDOWN_KEYS.items()}
