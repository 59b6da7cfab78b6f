"""
Salary Slip Service

Monthly salary slips: Pending Approval -> Approved -> Finalized.
Figures are computed on the server from the entered quantities and
rates, and freeze once the slip is approved.
"""

from typing import Any, Dict, List, Optional, Tuple
import logging

from errors import ConflictError, NotFoundError, PayloadError, TransitionError, ValidationError
from forms import SalarySlipForm
from models import db, SalarySlip, SalarySlipStatus
from utils.calculations import SalaryCalculator, SalaryEntry, is_blank, parse_number
from .audit_service import AuditService
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

SIGNATURE_FIELDS = ('AuthSignature', 'EmployeeSignature')
CONTROL_KEYS = frozenset({'slipId', 'Version', 'Status', 'EmployeeID', 'PayPeriod'})

# Fields each step may write; None means every writable field
APPROVAL_FIELDS = ('AuthSignature', 'ApprovalNotes')
FINALIZE_FIELDS = ('EmployeeSignature', 'ENotes')


def split_slip_id(slip_id: Any) -> Tuple[str, str]:
    """``EMP101-2025-06`` -> (``EMP101``, ``2025-06``)"""
    employee_id, _, pay_period = str(slip_id or '').strip().partition('-')
    if not employee_id or not pay_period:
        raise ValidationError(f"Invalid slip id: {slip_id}", fields={'slipId': 'Use EmployeeID-YYYY-MM'})
    return employee_id, pay_period


class SalarySlipService:
    """Service class for salary slip workflow"""

    def __init__(self, reference_data, signature_service, notification_service):
        self.reference_data = reference_data
        self.signature_service = signature_service
        self.notification_service = notification_service
        self.calculator = SalaryCalculator()
        self.audit_service = AuditService()

    def get_slip(self, slip_id: Any) -> SalarySlip:
        employee_id, pay_period = split_slip_id(slip_id)
        slip = SalarySlip.query.filter_by(employee_id=employee_id, pay_period=pay_period).first()
        if not slip:
            raise NotFoundError(f"Salary slip {slip_id} not found.")
        return slip

    def get_slip_record(self, slip_id: Any) -> Dict[str, Any]:
        return self.get_slip(slip_id).to_record()

    def list_slips(self) -> List[Dict[str, Any]]:
        slips = SalarySlip.query.order_by(SalarySlip.created_at.desc(), SalarySlip.id.desc()).all()
        return [slip.to_record() for slip in slips]

    def create_slip(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        record = self._create_slip(payload)
        self.notification_service.notify_salary_slip('created', record)
        return record

    def update_slip(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        record, event = self._update_slip(payload)
        if event:
            self.notification_service.notify_salary_slip(event, record)
        return record

    @TransactionHelper.with_transaction
    def _create_slip(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(payload, dict):
            raise PayloadError("Request body must be a JSON object.")
        data = dict(payload)
        self._apply_directory_defaults(data)
        SalarySlipForm.from_payload(data).validate_or_raise()

        employee_id, pay_period = data['EmployeeID'].strip(), data['PayPeriod'].strip()
        if SalarySlip.query.filter_by(employee_id=employee_id, pay_period=pay_period).first():
            raise ConflictError(f"A salary slip for {employee_id} in {pay_period} already exists.")

        changes = {key: data[key] for key in SalarySlip.writable_keys() if key in data}
        self.signature_service.resolve_fields(changes, SIGNATURE_FIELDS)

        slip = SalarySlip()
        slip.employee_id = employee_id
        slip.pay_period = pay_period
        slip.status = SalarySlipStatus.PENDING_APPROVAL
        slip.apply_record(changes)
        self._apply_figures(slip)
        db.session.add(slip)
        db.session.flush()

        self.audit_service.log_action(
            action='salary_slip_created',
            entity_type='salary_slip',
            entity_id=slip.slip_id,
            details={'net_payable': slip.net_payable_amount},
            actor_role='manager',
        )
        logger.info(f"Salary slip {slip.slip_id} created, net payable {slip.net_payable_amount:.2f}")
        return slip.to_record()

    @TransactionHelper.with_transaction
    def _update_slip(self, payload: Dict[str, Any]) -> Tuple[Dict[str, Any], Optional[str]]:
        if not isinstance(payload, dict):
            raise PayloadError("Request body must be a JSON object.")
        slip = self.get_slip(payload.get('slipId'))

        if is_blank(payload.get('Version')):
            raise ValidationError("Version is required to update a slip. Reload and try again.",
                                  fields={'Version': 'Required'})
        try:
            version = int(str(payload['Version']).strip())
        except ValueError:
            raise ValidationError(f"Invalid version: {payload['Version']}", fields={'Version': 'Must be a number'})
        if version != slip.version:
            raise ConflictError(f"Salary slip {slip.slip_id} was changed by someone else. Reload and try again.")

        try:
            target = SalarySlipStatus.from_label(payload.get('Status')) if not is_blank(payload.get('Status')) else None
        except ValueError as e:
            raise ValidationError(str(e), fields={'Status': 'Unknown status'})
        if target is slip.status:
            target = None

        current = slip.status
        if target is None:
            event, allowed = None, self._editable_fields(slip, payload)
        elif target is SalarySlipStatus.APPROVED and current is SalarySlipStatus.PENDING_APPROVAL:
            event, allowed = 'approved', APPROVAL_FIELDS
        elif target is SalarySlipStatus.FINALIZED and current is SalarySlipStatus.APPROVED:
            event, allowed = 'finalized', FINALIZE_FIELDS
        else:
            raise TransitionError(f"Salary slip {slip.slip_id} is {current.value}; cannot move to {target.value}.")

        changes = {key: payload[key] for key in allowed if key in payload}
        dropped = sorted(set(payload) - set(allowed) - CONTROL_KEYS)
        if dropped:
            logger.warning(f"Salary slip {slip.slip_id}: ignoring fields {', '.join(dropped)}")

        merged = slip.to_record()
        merged.update(changes)
        if event == 'approved' and is_blank(merged.get('AuthSignature')) and is_blank(merged.get('ApprovalNotes')):
            raise ValidationError("Approval needs the authorised signature or an approval note.",
                                  fields={'AuthSignature': 'Sign or add approval notes'})
        if event == 'finalized' and is_blank(merged.get('EmployeeSignature')):
            raise ValidationError("The employee must sign to finalize the slip.",
                                  fields={'EmployeeSignature': 'Required'})
        SalarySlipForm.from_payload(merged).validate_or_raise()

        self.signature_service.resolve_fields(changes, SIGNATURE_FIELDS)
        slip.apply_record(changes)
        if current is SalarySlipStatus.PENDING_APPROVAL and event is None:
            self._apply_figures(slip)
        if target is not None:
            slip.status = target
        db.session.flush()

        self.audit_service.log_action(
            action=f"salary_slip_{event or 'updated'}",
            entity_type='salary_slip',
            entity_id=slip.slip_id,
            details={'fields': sorted(changes), 'from_status': current.value, 'to_status': slip.status.value},
            actor_role='employee' if event == 'finalized' else 'manager',
        )
        logger.info(f"Salary slip {slip.slip_id} {event or 'updated'} ({current.value} -> {slip.status.value})")
        return slip.to_record(), event

    def _editable_fields(self, slip: SalarySlip, payload: Dict[str, Any]) -> Tuple[str, ...]:
        """Plain edits: anything while pending, never figures once approved"""
        if slip.status is SalarySlipStatus.FINALIZED:
            raise TransitionError(f"Salary slip {slip.slip_id} is finalized and cannot be edited.")
        if slip.status is SalarySlipStatus.PENDING_APPROVAL:
            return SalarySlip.writable_keys()

        stored = slip.to_record()
        changed = [key for key in SalarySlip.FIGURE_KEYS
                   if key in payload and not self._same_figure(payload[key], stored[key])]
        if changed:
            raise TransitionError(
                f"Salary slip {slip.slip_id} is {slip.status.value}; figures are locked.",
                fields={key: 'Locked after approval' for key in changed},
            )
        return tuple(key for key in SalarySlip.writable_keys() if key not in SalarySlip.FIGURE_KEYS)

    @staticmethod
    def _same_figure(submitted: Any, stored: Any) -> bool:
        try:
            return (parse_number(submitted) or 0.0) == (stored or 0.0)
        except ValueError:
            return False

    def _apply_directory_defaults(self, data: Dict[str, Any]) -> None:
        employee = self.reference_data.find_employee(data.get('EmployeeID'))
        if not employee:
            return
        defaults = {
            'EmployeeName': employee.name,
            'Designation': employee.designation,
            'EmployeeMobile': employee.mobile,
            'MonthlySalary': employee.monthly_salary,
        }
        for key, value in defaults.items():
            if is_blank(data.get(key)) and value:
                data[key] = value

    def _apply_figures(self, slip: SalarySlip) -> None:
        entry = SalaryEntry(
            pay_period=slip.pay_period,
            monthly_salary=slip.monthly_salary or 0,
            outstation_qty=slip.outstation_qty or 0,
            outstation_rate=slip.outstation_rate or 0,
            extra_duty_qty=slip.extra_duty_qty or 0,
            extra_duty_rate=slip.extra_duty_rate or 0,
            advance_deduction=slip.advance_deduction or 0,
            lop_days=slip.lop_days or 0,
        )
        try:
            figures = self.calculator.calculate(entry)
        except ValueError as e:
            raise ValidationError(str(e), fields={'LOPDays': str(e)})
        for key, value in figures.items():
            setattr(slip, SalarySlip.spec_for(key).attr, value)
