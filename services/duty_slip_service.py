"""
Duty Slip Service

Duty slip lifecycle: creation with sequential DS numbers, manager edits,
driver close-out and client close-out. Every write goes through the status
machine, the usage window validation and server-side recomputation of the
derived totals, and must carry the version it was based on.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple
import logging

from sqlalchemy import String, cast, func, or_

from errors import ConflictError, NotFoundError, PayloadError, TransitionError, ValidationError
from forms import DutySlipForm
from models import db, DutySlip, DutySlipStatus
from utils.calculations import derive_trip_totals, is_blank
from .audit_service import AuditService
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

FIRST_DS_NO = 1001
SIGNATURE_FIELDS = ('Auth_Signature_Link', 'Guest_Signature_Link')
# Keys that address the slip rather than change it
CONTROL_KEYS = DutySlip.MANAGED_KEYS


class DutyTransition(Enum):
    MANAGER_EDIT = 'manager_edit'
    DRIVER_CLOSE = 'driver_close'
    CLIENT_CLOSE = 'client_close'


@dataclass(frozen=True)
class TransitionRule:
    actor: str
    allowed_from: FrozenSet[DutySlipStatus]
    target: DutySlipStatus
    event: str
    editable: Optional[Tuple[str, ...]] = None  # None means every writable field
    required: Tuple[str, ...] = ()


TRANSITIONS = {
    DutyTransition.MANAGER_EDIT: TransitionRule(
        actor='manager',
        allowed_from=frozenset({DutySlipStatus.NEW, DutySlipStatus.UPDATED_BY_MANAGER,
                                DutySlipStatus.CLOSED_BY_DRIVER}),
        target=DutySlipStatus.UPDATED_BY_MANAGER,
        event='updated',
    ),
    DutyTransition.DRIVER_CLOSE: TransitionRule(
        actor='driver',
        allowed_from=frozenset({DutySlipStatus.NEW, DutySlipStatus.UPDATED_BY_MANAGER}),
        target=DutySlipStatus.CLOSED_BY_DRIVER,
        event='closed_by_driver',
        editable=('Driver_Time_In', 'Driver_Km_In', 'Time_In', 'Km_In', 'Guest_Signature_Link'),
        required=('Driver_Time_In', 'Driver_Km_In'),
    ),
    DutyTransition.CLIENT_CLOSE: TransitionRule(
        actor='client',
        allowed_from=frozenset({DutySlipStatus.NEW, DutySlipStatus.UPDATED_BY_MANAGER,
                                DutySlipStatus.CLOSED_BY_DRIVER}),
        target=DutySlipStatus.CLOSED_BY_CLIENT,
        event='closed_by_client',
        editable=('Time_In', 'Km_In', 'Guest_Signature_Link'),
        required=('Guest_Signature_Link',),
    ),
}

STATUS_TRANSITIONS = {
    DutySlipStatus.UPDATED_BY_MANAGER: DutyTransition.MANAGER_EDIT,
    DutySlipStatus.CLOSED_BY_DRIVER: DutyTransition.DRIVER_CLOSE,
    DutySlipStatus.CLOSED_BY_CLIENT: DutyTransition.CLIENT_CLOSE,
}

LIST_FILTERS = {
    'needs action': (DutySlipStatus.NEW, DutySlipStatus.UPDATED_BY_MANAGER),
    'pending': (DutySlipStatus.CLOSED_BY_DRIVER,),
    'completed': (DutySlipStatus.CLOSED_BY_CLIENT,),
}


def parse_ds_no(value: Any) -> int:
    try:
        ds_no = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid DS No: {value}", fields={'DS_No': 'DS No must be a number'})
    if ds_no <= 0:
        raise ValidationError(f"Invalid DS No: {value}", fields={'DS_No': 'DS No must be positive'})
    return ds_no


def parse_version(value: Any) -> int:
    if is_blank(value):
        raise ValidationError("Version is required to update a slip. Reload and try again.",
                              fields={'Version': 'Required'})
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid version: {value}", fields={'Version': 'Must be a number'})


def transition_for(status_label: Any) -> DutyTransition:
    """Which transition an update asks for; no status means a manager edit"""
    if is_blank(status_label):
        return DutyTransition.MANAGER_EDIT
    try:
        status = DutySlipStatus.from_label(status_label)
    except ValueError as e:
        raise ValidationError(str(e), fields={'Status': 'Unknown status'})
    if status not in STATUS_TRANSITIONS:
        raise TransitionError(f"A duty slip cannot be moved back to {status.value}")
    return STATUS_TRANSITIONS[status]


class DutySlipService:
    """Service class for duty slip lifecycle operations"""

    def __init__(self, reference_data, signature_service, notification_service):
        self.reference_data = reference_data
        self.signature_service = signature_service
        self.notification_service = notification_service
        self.audit_service = AuditService()

    # Reads

    def get_next_id(self) -> int:
        max_id = db.session.query(func.max(DutySlip.ds_no)).scalar()
        return max_id + 1 if max_id else FIRST_DS_NO

    def get_slip(self, ds_no: Any) -> DutySlip:
        number = parse_ds_no(ds_no)
        slip = DutySlip.query.filter_by(ds_no=number).first()
        if not slip:
            raise NotFoundError(f"Duty Slip with ID {number} not found.")
        return slip

    def get_slip_record(self, ds_no: Any) -> Dict[str, Any]:
        return self.get_slip(ds_no).to_record()

    def list_slips(self, status_filter: Optional[str] = None, search: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Slip summaries, newest first.

        Args:
            status_filter: 'All', 'Needs Action', 'Pending', 'Completed' or an exact status
            search: matched against DS No and guest name
        """
        query = DutySlip.query
        if status_filter and status_filter.strip().lower() != 'all':
            statuses = LIST_FILTERS.get(status_filter.strip().lower())
            if statuses is None:
                try:
                    statuses = (DutySlipStatus.from_label(status_filter),)
                except ValueError as e:
                    raise ValidationError(str(e), fields={'filter': 'Unknown filter'})
            query = query.filter(DutySlip.status.in_(statuses))

        if search and search.strip():
            term = search.strip()
            query = query.filter(or_(
                DutySlip.guest_name.ilike(f"%{term}%"),
                cast(DutySlip.ds_no, String).like(f"%{term}%"),
            ))

        return [slip.to_summary() for slip in query.order_by(DutySlip.ds_no.desc()).all()]

    def get_share_links(self, ds_no: Any) -> Dict[str, Optional[str]]:
        return self.notification_service.duty_slip_share_links(self.get_slip_record(ds_no))

    # Writes

    def create_slip(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new slip in status New and announce it"""
        record = self._create_slip(payload)
        self.notification_service.notify_duty_slip('created', record)
        return record

    def update_slip(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a manager edit, driver close or client close depending on ``Status``"""
        record, event = self._update_slip(payload)
        self.notification_service.notify_duty_slip(event, record)
        return record

    @TransactionHelper.with_transaction
    def _create_slip(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        payload = self._require_mapping(payload)

        if not is_blank(payload.get('Status')):
            try:
                requested = DutySlipStatus.from_label(payload['Status'])
            except ValueError as e:
                raise ValidationError(str(e), fields={'Status': 'Unknown status'})
            if requested is not DutySlipStatus.NEW:
                raise TransitionError(f"A new duty slip must start as New, not {requested.value}")

        if is_blank(payload.get('DS_No')):
            ds_no = self.get_next_id()
        else:
            ds_no = parse_ds_no(payload['DS_No'])
            if DutySlip.query.filter_by(ds_no=ds_no).first():
                raise ConflictError(f"Duty Slip {ds_no} already exists.")

        data = {key: payload[key] for key in DutySlip.writable_keys() if key in payload}
        self._log_dropped(payload, DutySlip.writable_keys(), 'create')

        DutySlipForm.from_payload(data).validate_or_raise()
        totals = derive_trip_totals(data)
        self._fill_driver_mobile(data)
        self.signature_service.resolve_fields(data, SIGNATURE_FIELDS)

        slip = DutySlip()
        slip.ds_no = ds_no
        slip.status = DutySlipStatus.NEW
        slip.apply_record(data)
        slip.apply_trip_totals(totals)
        db.session.add(slip)
        db.session.flush()

        self.audit_service.log_action(
            action='duty_slip_created',
            entity_type='duty_slip',
            entity_id=ds_no,
            details={'fields': sorted(data)},
            actor_role='manager',
        )
        logger.info(f"Duty slip {ds_no} created for {slip.guest_name or 'unknown guest'}")
        return slip.to_record()

    @TransactionHelper.with_transaction
    def _update_slip(self, payload: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
        payload = self._require_mapping(payload)
        if is_blank(payload.get('DS_No')):
            raise ValidationError("DS_No is required for an update.", fields={'DS_No': 'Required'})

        slip = self.get_slip(payload['DS_No'])
        version = parse_version(payload.get('Version'))
        if version != slip.version:
            raise ConflictError(
                f"Duty Slip {slip.ds_no} was changed by someone else (version {slip.version}, "
                f"you have {version}). Reload and try again."
            )

        transition = transition_for(payload.get('Status'))
        rule = TRANSITIONS[transition]
        if slip.status not in rule.allowed_from:
            raise TransitionError(
                f"Duty Slip {slip.ds_no} is {slip.status.value}; "
                f"{transition.value.replace('_', ' ')} is not allowed."
            )

        editable = rule.editable if rule.editable is not None else DutySlip.writable_keys()
        changes = {key: payload[key] for key in editable if key in payload}
        self._log_dropped(payload, editable, transition.value)

        merged = slip.to_record()
        merged.update(changes)

        missing = {key: 'Required' for key in rule.required if is_blank(merged.get(key))}
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

        DutySlipForm.from_payload(merged).validate_or_raise()
        derived = derive_trip_totals(merged)
        if rule.actor == 'manager':
            self._fill_driver_mobile(changes, existing=merged)
        self.signature_service.resolve_fields(changes, SIGNATURE_FIELDS)

        previous_status = slip.status
        slip.apply_record(changes)
        slip.apply_trip_totals(derived)
        slip.status = rule.target
        db.session.flush()

        self.audit_service.log_action(
            action=f'duty_slip_{rule.event}',
            entity_type='duty_slip',
            entity_id=slip.ds_no,
            details={'fields': sorted(changes), 'from_status': previous_status.value,
                     'to_status': rule.target.value},
            actor_role=rule.actor,
        )
        logger.info(f"Duty slip {slip.ds_no}: {previous_status.value} -> {rule.target.value} by {rule.actor}")
        return slip.to_record(), rule.event

    # Helpers

    @staticmethod
    def _require_mapping(payload: Any) -> Dict[str, Any]:
        if not isinstance(payload, dict):
            raise PayloadError("Request body must be a JSON object.")
        return payload

    @staticmethod
    def _log_dropped(payload: Dict[str, Any], allowed, operation: str) -> None:
        dropped = sorted(set(payload) - set(allowed) - CONTROL_KEYS)
        if dropped:
            logger.warning(f"Duty slip {operation}: ignoring fields {', '.join(dropped)}")

    def _fill_driver_mobile(self, data: Dict[str, Any], existing: Optional[Dict[str, Any]] = None) -> None:
        """Fill a blank driver mobile from the driver directory"""
        current = dict(existing or {})
        current.update(data)
        if not is_blank(current.get('Driver_Mobile')):
            return
        driver = self.reference_data.find_driver(current.get('Driver_Name'))
        if driver and driver.mobile:
            data['Driver_Mobile'] = driver.mobile
