"""
Payload validation forms.

The action API receives JSON bodies, so these are plain WTForms forms fed
from a MultiDict built out of the payload rather than request.form.
"""

import re
from typing import Any, Dict, Optional as Opt

from werkzeug.datastructures import MultiDict
from wtforms import Form, FloatField, IntegerField, StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, Length, NumberRange, Optional, Regexp, ValidationError

from errors import ValidationError as PayloadValidationError
from utils.calculations import anchor_window, parse_date, parse_time

MOBILE_PATTERN = r'^\+?[0-9][0-9 \-]{8,14}$'
# bare numbers or the duty slip's own "12 hrs 0 mins" / "250.0 Kms" totals
HOURS_PATTERN = r'^\s*(?:\d+(?:\.\d+)?(?:\s*hrs?(?:\s*\d+\s*mins?)?)?|\d+\s*mins?)\s*$'
KMS_PATTERN = r'^\s*\d[\d,]*(?:\.\d+)?(?:\s*kms?)?\s*$'


def time_format(form, field):
    try:
        parse_time(field.data)
    except ValueError:
        raise ValidationError('Use HH:MM time format')


def date_format(form, field):
    try:
        parse_date(field.data)
    except ValueError:
        raise ValidationError('Use YYYY-MM-DD date format')


class PayloadForm(Form):
    """Base form built from a JSON payload"""

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'PayloadForm':
        formdata = MultiDict()
        for key, value in payload.items():
            formdata[key] = '' if value is None else str(value)
        return cls(formdata=formdata)

    def field_errors(self) -> Dict[str, str]:
        return {name: messages[0] for name, messages in self.errors.items() if messages}

    def validate_or_raise(self, message: str = 'Please fix the highlighted fields.') -> 'PayloadForm':
        if not self.validate():
            raise PayloadValidationError(message, fields=self.field_errors())
        return self


class DutySlipForm(PayloadForm):
    """
    Duty slip field formats plus the usage window rules: the customer's
    times and odometer readings must sit inside the driver's, and no end
    value may precede its start. A rule is skipped while either side is blank.
    """
    Date = StringField('Date', validators=[Optional(), date_format])
    Guest_Mobile = StringField('Guest Mobile', validators=[Optional(), Regexp(MOBILE_PATTERN, message='Enter a valid mobile number')])
    Driver_Mobile = StringField('Driver Mobile', validators=[Optional(), Regexp(MOBILE_PATTERN, message='Enter a valid mobile number')])
    Reporting_Time = StringField('Reporting Time', validators=[Optional(), time_format])

    Date_Out = StringField('Date Out', validators=[Optional(), date_format])
    Date_In = StringField('Date In', validators=[Optional(), date_format])

    Driver_Time_Out = StringField('Driver Time Out', validators=[Optional(), time_format])
    Driver_Time_In = StringField('Driver Time In', validators=[Optional(), time_format])
    Time_Out = StringField('Customer Time Out', validators=[Optional(), time_format])
    Time_In = StringField('Customer Time In', validators=[Optional(), time_format])

    Driver_Km_Out = FloatField('Driver Km Out', validators=[Optional(), NumberRange(min=0)])
    Driver_Km_In = FloatField('Driver Km In', validators=[Optional(), NumberRange(min=0)])
    Km_Out = FloatField('Customer Km Out', validators=[Optional(), NumberRange(min=0)])
    Km_In = FloatField('Customer Km In', validators=[Optional(), NumberRange(min=0)])

    def _window(self, time_out_field: str, time_in_field: str):
        try:
            return anchor_window(self.Date_Out.data, getattr(self, time_out_field).data,
                                 self.Date_In.data, getattr(self, time_in_field).data)
        except ValueError:
            return None, None

    def _number(self, name: str) -> Opt[float]:
        field = getattr(self, name)
        if field.data is None or field.process_errors:
            return None
        return field.data

    def validate_Driver_Time_In(self, field):
        start, end = self._window('Driver_Time_Out', 'Driver_Time_In')
        if start and end and end < start:
            raise ValidationError('Driver end time cannot be before driver start time')

    def validate_Driver_Km_In(self, field):
        start, end = self._number('Driver_Km_Out'), self._number('Driver_Km_In')
        if start is not None and end is not None and end < start:
            raise ValidationError('Driver closing km cannot be less than opening km')

    def validate_Time_Out(self, field):
        customer_start, _ = self._window('Time_Out', 'Time_In')
        driver_start, _ = self._window('Driver_Time_Out', 'Driver_Time_In')
        if customer_start and driver_start and customer_start < driver_start:
            raise ValidationError('Customer start time cannot be before driver start time')

    def validate_Time_In(self, field):
        customer_start, customer_end = self._window('Time_Out', 'Time_In')
        if customer_start and customer_end and customer_end < customer_start:
            raise ValidationError('Customer end time cannot be before customer start time')
        _, driver_end = self._window('Driver_Time_Out', 'Driver_Time_In')
        if customer_end and driver_end and customer_end > driver_end:
            raise ValidationError('Customer end time cannot be after driver end time')

    def validate_Km_Out(self, field):
        customer_start, driver_start = self._number('Km_Out'), self._number('Driver_Km_Out')
        if customer_start is not None and driver_start is not None and customer_start < driver_start:
            raise ValidationError('Customer opening km cannot be less than driver opening km')

    def validate_Km_In(self, field):
        customer_start, customer_end = self._number('Km_Out'), self._number('Km_In')
        if customer_start is not None and customer_end is not None and customer_end < customer_start:
            raise ValidationError('Customer closing km cannot be less than opening km')
        driver_end = self._number('Driver_Km_In')
        if customer_end is not None and driver_end is not None and customer_end > driver_end:
            raise ValidationError('Customer closing km cannot exceed driver closing km')


class InvoiceForm(PayloadForm):
    Booking_ID = StringField('Booking ID', validators=[Optional(), Length(max=50)])
    Invoice_Date = StringField('Invoice Date', validators=[Optional(), date_format])
    Trip_Start_Date = StringField('Trip Start', validators=[Optional(), date_format])
    Trip_End_Date = StringField('Trip End', validators=[Optional(), date_format])
    Total_Hours = StringField('Total Hours', validators=[Optional(), Regexp(HOURS_PATTERN, re.IGNORECASE, message='Enter hours as a number or "H hrs M mins"')])
    Total_KMs = StringField('Total KMs', validators=[Optional(), Regexp(KMS_PATTERN, re.IGNORECASE, message='Enter kilometres as a number or "N Kms"')])
    Base_Rate = FloatField('Base Rate', validators=[Optional(), NumberRange(min=0)])
    Included_KMs_per_Slab = FloatField('Included KMs per Slab', validators=[Optional(), NumberRange(min=0)])
    Extra_KM_Rate = FloatField('Extra KM Rate', validators=[Optional(), NumberRange(min=0)])
    Batta_Rate = FloatField('Batta Rate', validators=[Optional(), NumberRange(min=0)])
    Total_Tolls = FloatField('Tolls', validators=[Optional(), NumberRange(min=0)])
    Total_Permits = FloatField('Permits', validators=[Optional(), NumberRange(min=0)])

    def validate_Trip_End_Date(self, field):
        try:
            start, end = parse_date(self.Trip_Start_Date.data), parse_date(field.data)
        except ValueError:
            return
        if start and end and end < start:
            raise ValidationError('Trip end date cannot be before start date')


class SalarySlipForm(PayloadForm):
    EmployeeName = StringField('Employee Name', validators=[DataRequired(), Length(max=200)])
    EmployeeID = StringField('Employee ID', validators=[
        DataRequired(), Regexp(r'^[^-\s]+$', message="Employee ID cannot contain '-' or spaces")])
    PayPeriod = StringField('Pay Period', validators=[
        DataRequired(), Regexp(r'^\d{4}-(0[1-9]|1[0-2])$', message='Use YYYY-MM')])
    EmployeeMobile = StringField('Mobile', validators=[Optional(), Regexp(MOBILE_PATTERN, message='Enter a valid mobile number')])
    MonthlySalary = FloatField('Monthly Salary', validators=[Optional(), NumberRange(min=0)])
    OutstationQty = FloatField('Outstation Days', validators=[Optional(), NumberRange(min=0)])
    OutstationRate = FloatField('Outstation Rate', validators=[Optional(), NumberRange(min=0)])
    ExtraDutyQty = FloatField('Extra Duties', validators=[Optional(), NumberRange(min=0)])
    ExtraDutyRate = FloatField('Extra Duty Rate', validators=[Optional(), NumberRange(min=0)])
    AdvanceDeduction = FloatField('Advance', validators=[Optional(), NumberRange(min=0)])
    LOPDays = FloatField('LOP Days', validators=[Optional(), NumberRange(min=0, max=31)])


class ReviewForm(PayloadForm):
    ds_no = StringField('DS No', validators=[DataRequired(), Regexp(r'^\d+$', message='DS No must be numeric')])
    reviewer_name = StringField('Reviewer', validators=[Optional(), Length(max=200)])
    rating = IntegerField('Rating', validators=[DataRequired(), NumberRange(min=1, max=5)])
    comment = TextAreaField('Comment', validators=[Optional(), Length(max=2000)])


class FinancialEntryForm(PayloadForm):
    Date = StringField('Date', validators=[DataRequired(), date_format])
    Account = StringField('Account', validators=[DataRequired()])
    Flow = StringField('Flow', validators=[DataRequired(), AnyOf(['Debit', 'Credit'])])
    Category = StringField('Category', validators=[DataRequired()])
    Sub_Category = StringField('Sub Category', validators=[Optional()])
    Amount = FloatField('Amount', validators=[DataRequired(), NumberRange(min=0.01)])
    Payment_Method = StringField('Payment Method', validators=[Optional(), Length(max=50)])
    Particulars = TextAreaField('Particulars', validators=[Optional(), Length(max=1000)])


class BookingForm(PayloadForm):
    Customer_Name = StringField('Name', validators=[Optional(), Length(max=200)])
    Mobile_Number = StringField('Mobile', validators=[DataRequired(), Regexp(MOBILE_PATTERN, message='Enter a valid mobile number')])
    Email = StringField('Email', validators=[Optional(), Regexp(r'^[^@\s]+@[^@\s]+\.[^@\s]+$', message='Enter a valid email')])
    Travel_Date = StringField('Travel Date', validators=[Optional(), date_format])


class LeadForm(PayloadForm):
    """WhatsApp fare-estimate lead, sent with the estimator's short keys"""
    mobile = StringField('Mobile', validators=[Optional(), Regexp(MOBILE_PATTERN, message='Enter a valid mobile number')])
    date = StringField('Travel Date', validators=[Optional(), date_format])


class CareerForm(PayloadForm):
    """Careers page form, sent with the page's short keys"""
    name = StringField('Name', validators=[DataRequired(), Length(max=200)])
    phone = StringField('Phone', validators=[DataRequired(), Regexp(MOBILE_PATTERN, message='Enter a valid mobile number')])
    email = StringField('Email', validators=[Optional(), Regexp(r'^[^@\s]+@[^@\s]+\.[^@\s]+$', message='Enter a valid email')])
    type = StringField('Applying For', validators=[Optional(), AnyOf(['Job', 'Attach'])])


class RouteForm(PayloadForm):
    Route_Slug = StringField('Slug', validators=[
        DataRequired(), Regexp(r'^[a-z0-9]+(?:-[a-z0-9]+)*$', message='Use lowercase words joined by hyphens')])
    Popular_Route = StringField('Popular', validators=[Optional(), AnyOf(['Yes', 'No'])])

