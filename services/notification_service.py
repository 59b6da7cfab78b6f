"""
Notification Service

WhatsApp alerts through Twilio plus the wa.me share links the office sends
by hand. Alerts are best effort: a failed send is logged and never undoes
the write that triggered it.
"""

from typing import Optional, Dict, Any, Tuple
from urllib.parse import quote
import logging
import re

from twilio.rest import Client

logger = logging.getLogger(__name__)

DUTY_SLIP_EVENTS = {
    'created': 'New duty slip #{DS_No} for {Guest_Name} on {Date}. Driver: {Driver_Name}.',
    'updated': 'Duty slip #{DS_No} updated by manager.',
    'closed_by_driver': 'Driver closed trip #{DS_No} ({Driver_Total_Hrs}, {Driver_Total_Kms}). Ready for review.',
    'closed_by_client': 'Guest {Guest_Name} signed off trip #{DS_No}. Ready for invoicing.',
}

SALARY_SLIP_EVENTS = {
    'created': 'New salary slip for {EmployeeName} ({PayPeriod}) is ready for approval.',
    'approved': 'Your salary slip for {PayPeriod} has been approved. Net payable: Rs. {NetPayableAmount}. Please review and sign.',
    'finalized': '{EmployeeName} signed the salary slip for {PayPeriod}. Slip finalized.',
}


class _SafeDict(dict):
    def __missing__(self, key):
        return ''


def whatsapp_number(mobile: Optional[str]) -> Optional[str]:
    """Indian mobile as 91XXXXXXXXXX, or None when there are not enough digits"""
    digits = re.sub(r'\D', '', mobile or '')
    if len(digits) < 10:
        return None
    return f"91{digits[-10:]}"


def whatsapp_link(mobile: Optional[str], text: str) -> Optional[str]:
    number = whatsapp_number(mobile)
    if not number:
        return None
    return f"https://wa.me/{number}?text={quote(text)}"


class NotificationService:
    """Service class for WhatsApp messaging"""

    def __init__(self, account_sid: Optional[str] = None, auth_token: Optional[str] = None,
                 from_number: Optional[str] = None, ops_number: Optional[str] = None,
                 public_base_url: str = '', review_link: str = '', client: Optional[Client] = None):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.ops_number = ops_number
        self.public_base_url = public_base_url.rstrip('/')
        self.review_link = review_link
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self._client or (self.account_sid and self.auth_token and self.from_number))

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def send_whatsapp_message(self, to_number: Optional[str], message: str) -> Tuple[bool, Optional[str]]:
        """
        Send a WhatsApp message via Twilio.

        Returns:
            tuple: (success: bool, error_message: str)
        """
        if not self.enabled:
            logger.info(f"WhatsApp disabled, not sent: {message[:80]}")
            return False, "WhatsApp notifications not configured"
        if not to_number:
            return False, "No recipient number"

        recipient = to_number if to_number.startswith('+') else f"+{whatsapp_number(to_number) or to_number}"
        try:
            message_obj = self._get_client().messages.create(
                body=message,
                from_=f'whatsapp:{self.from_number}',
                to=f'whatsapp:{recipient}'
            )
            logger.info(f"WhatsApp message {message_obj.sid} sent to ******{recipient[-4:]}")
            return True, None
        except Exception as e:
            logger.error(f"WhatsApp message to ******{recipient[-4:]} failed: {str(e)}")
            return False, str(e)

    def notify_duty_slip(self, event: str, record: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        template = DUTY_SLIP_EVENTS.get(event)
        if not template:
            raise ValueError(f"Unknown duty slip event: {event}")
        message = template.format_map(_SafeDict(record))
        link = self.page_url('view.html', record.get('DS_No'))
        return self.send_whatsapp_message(self.ops_number, f"{message}\n{link}\n- Shrish Travels")

    def notify_salary_slip(self, event: str, record: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        template = SALARY_SLIP_EVENTS.get(event)
        if not template:
            raise ValueError(f"Unknown salary slip event: {event}")
        message = template.format_map(_SafeDict(record))
        link = self.page_url('salary-form.html', record.get('slipId'))
        # The employee signs after approval; everything else goes to the office
        recipient = record.get('EmployeeMobile') if event == 'approved' else self.ops_number
        return self.send_whatsapp_message(recipient, f"{message}\n{link}\n- Sent via Shrish Admin")

    def page_url(self, page: str, record_id: Any) -> str:
        return f"{self.public_base_url}/{page}?id={quote(str(record_id or ''))}"

    def duty_slip_share_links(self, record: Dict[str, Any]) -> Dict[str, Optional[str]]:
        """wa.me links for the driver assignment, guest sign-off and review request"""
        ds_no = record.get('DS_No')
        driver_message = (
            f"Booking: DS#{record.get('Booking_ID', '')}\n"
            f"Passenger: {record.get('Guest_Name', '')} ({record.get('Guest_Mobile', '')})\n"
            f"Vehicle: {record.get('Vehicle_Type', '')} ({record.get('Vehicle_No', '')})\n"
            f"Date: {record.get('Date', '')}\n"
            f"Reporting time: {record.get('Reporting_Time', '')}\n"
            f"Reporting address: {record.get('Reporting_Address', '')}\n"
            f"Close link: {self.page_url('close-slip.html', ds_no)}\n\n"
            f"Regards Shrish Group"
        )
        guest_message = (
            f"Dear {record.get('Guest_Name', '')},\n\n"
            f"Please review and sign your duty slip #{ds_no}:\n"
            f"{self.page_url('client-close.html', ds_no)}\n\n"
            f"- Shrish Travels"
        )
        review_message = (
            f"Dear {record.get('Guest_Name', '')},\n\n"
            f"We hope you had a pleasant journey. If you have a moment, please consider "
            f"leaving us a review.\n\n{self.review_link}\n\n- Shrish Travels"
        )
        return {
            'driver': whatsapp_link(record.get('Driver_Mobile'), driver_message),
            'guest_sign': whatsapp_link(record.get('Guest_Mobile'), guest_message),
            'review': whatsapp_link(record.get('Guest_Mobile'), review_message),
            'view': self.page_url('view.html', ds_no),
        }
