"""
Tracker Service

Company and personal money in/out entries, validated against the
configured account -> flow -> category tree.
"""

from collections import OrderedDict
from typing import Any, Dict, Optional
import logging

from errors import PayloadError, ValidationError
from forms import FinancialEntryForm
from models import db, FinancialEntry, FinancialFlow
from .audit_service import AuditService
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

FIRST_ENTRY_NUMBER = 1001


class TrackerService:
    """Service class for the financial tracker"""

    def __init__(self, reference_data):
        self.reference_data = reference_data
        self.audit_service = AuditService()

    def next_entry_id(self) -> str:
        latest = FinancialEntry.query.order_by(FinancialEntry.id.desc()).first()
        if not latest:
            return f"FIN-{FIRST_ENTRY_NUMBER}"
        _, _, number = latest.entry_id.partition('-')
        return f"FIN-{int(number) + 1}"

    @TransactionHelper.with_transaction
    def save_entry(self, payload: Dict[str, Any]) -> str:
        """Store one entry and return its FIN id"""
        if not isinstance(payload, dict):
            raise PayloadError("Request body must be a JSON object.")
        FinancialEntryForm.from_payload(payload).validate_or_raise()

        error = self.reference_data.validate_category(
            payload['Account'], payload['Flow'], payload['Category'], payload.get('Sub_Category'))
        if error:
            raise ValidationError(error, fields={'Category': error})

        entry = FinancialEntry()
        entry.entry_id = self.next_entry_id()
        entry.flow = FinancialFlow(payload['Flow'])
        entry.apply_record(payload)
        db.session.add(entry)
        db.session.flush()

        self.audit_service.log_action(
            action='financial_entry_saved',
            entity_type='financial_entry',
            entity_id=entry.entry_id,
            details={'account': entry.account, 'flow': entry.flow.value, 'amount': entry.amount},
            actor_role='manager',
        )
        logger.info(f"Financial entry {entry.entry_id}: {entry.flow.value} {entry.amount:.2f} on {entry.account}")
        return entry.entry_id

    def get_financial_data(self, account: Optional[str] = None) -> Dict[str, Any]:
        """
        Entries newest date first, plus credit/debit/net totals per account.

        Args:
            account: limit both entries and totals to one account
        """
        query = FinancialEntry.query
        if account:
            query = query.filter_by(account=account)
        entries = query.order_by(FinancialEntry.date.desc(), FinancialEntry.id.desc()).all()

        totals = OrderedDict()
        for entry in entries:
            bucket = totals.setdefault(entry.account, {'credit': 0.0, 'debit': 0.0, 'net': 0.0})
            if entry.flow is FinancialFlow.CREDIT:
                bucket['credit'] += entry.amount
            else:
                bucket['debit'] += entry.amount
        for bucket in totals.values():
            bucket['credit'] = round(bucket['credit'], 2)
            bucket['debit'] = round(bucket['debit'], 2)
            bucket['net'] = round(bucket['credit'] - bucket['debit'], 2)

        return {
            'entries': [entry.to_record() for entry in entries],
            'totals': dict(totals),
        }

