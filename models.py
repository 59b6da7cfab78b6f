from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, NamedTuple, Optional, Tuple
import uuid

from sqlalchemy import Index, UniqueConstraint

from app import db
from timezone_utils import get_ist_time_naive


# Enums for better data integrity
class DutySlipStatus(Enum):
    NEW = 'New'
    UPDATED_BY_MANAGER = 'Updated by Manager'
    CLOSED_BY_DRIVER = 'Closed by Driver'
    CLOSED_BY_CLIENT = 'Closed by Client'

    @classmethod
    def from_label(cls, label: Optional[str]) -> 'DutySlipStatus':
        """Parse a wire label; legacy rows with an empty status read as New"""
        if label is None or str(label).strip() == '':
            return cls.NEW
        for status in cls:
            if status.value.lower() == str(label).strip().lower():
                return status
        raise ValueError(f"Unknown duty slip status: {label}")


class SalarySlipStatus(Enum):
    PENDING_APPROVAL = 'Pending Approval'
    APPROVED = 'Approved'
    FINALIZED = 'Finalized'

    @classmethod
    def from_label(cls, label: Optional[str]) -> 'SalarySlipStatus':
        if label is None or str(label).strip() == '':
            return cls.PENDING_APPROVAL
        for status in cls:
            if status.value.lower() == str(label).strip().lower():
                return status
        raise ValueError(f"Unknown salary slip status: {label}")


class FieldSpec(NamedTuple):
    """One entry of a model's wire mapping: data key, column attribute, display label"""
    key: str
    attr: str
    label: str


class RecordMixin:
    """
    Translates between wire records (``{'Guest_Name': ...}``) and columns
    through the model's explicit ``FIELDS`` table.
    """
    FIELDS: Tuple[FieldSpec, ...] = ()
    # Keys the server owns; never copied from a client payload
    MANAGED_KEYS: frozenset = frozenset()

    @classmethod
    def writable_keys(cls) -> Tuple[str, ...]:
        return tuple(spec.key for spec in cls.FIELDS if spec.key not in cls.MANAGED_KEYS)

    @classmethod
    def spec_for(cls, key: str) -> Optional[FieldSpec]:
        for spec in cls.FIELDS:
            if spec.key == key:
                return spec
        return None

    def to_record(self) -> Dict[str, Any]:
        record = {}
        for spec in self.FIELDS:
            value = getattr(self, spec.attr)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, datetime):
                value = value.isoformat()
            record[spec.key] = value
        return record

    def apply_record(self, data: Dict[str, Any], keys: Optional[Iterable[str]] = None) -> Tuple[str, ...]:
        """Copy ``data`` onto columns, limited to ``keys`` and writable fields. Returns keys written."""
        allowed = set(self.writable_keys())
        if keys is not None:
            allowed &= set(keys)
        written = []
        for spec in self.FIELDS:
            if spec.key in allowed and spec.key in data:
                setattr(self, spec.attr, self._coerce(spec, data[spec.key]))
                written.append(spec.key)
        return tuple(written)

    def _coerce(self, spec: FieldSpec, value: Any) -> Any:
        column = self.__table__.columns.get(spec.attr)
        if column is None:
            return value
        python_type = column.type.python_type
        if value is None or (isinstance(value, str) and value.strip() == '' and python_type is not str):
            return None if python_type is not str else ''
        if python_type is str:
            return str(value)
        if python_type is float:
            return float(str(value).replace(',', ''))
        if python_type is int:
            return int(float(str(value).replace(',', '')))
        if python_type is date and not isinstance(value, date):
            return date.fromisoformat(str(value)[:10])
        return value


class DutySlip(RecordMixin, db.Model):
    __tablename__ = 'duty_slips'

    FIELDS = (
        FieldSpec('DS_No', 'ds_no', 'DS No'),
        FieldSpec('Booking_ID', 'booking_id', 'Booking ID'),
        FieldSpec('Date', 'date', 'Date'),
        FieldSpec('Organisation', 'organisation', 'Organisation'),
        FieldSpec('Guest_Name', 'guest_name', 'Guest Name'),
        FieldSpec('Guest_Mobile', 'guest_mobile', 'Guest Mobile'),
        FieldSpec('Booked_By', 'booked_by', 'Booked By'),
        FieldSpec('Reporting_Time', 'reporting_time', 'Reporting Time'),
        FieldSpec('Reporting_Address', 'reporting_address', 'Reporting Address'),
        FieldSpec('Spl_Instruction', 'spl_instruction', 'Special Instruction'),
        FieldSpec('Vehicle_Type', 'vehicle_type', 'Vehicle Type'),
        FieldSpec('Vehicle_No', 'vehicle_no', 'Vehicle No'),
        FieldSpec('Driver_Name', 'driver_name', 'Driver Name'),
        FieldSpec('Driver_Mobile', 'driver_mobile', 'Driver Mobile'),
        FieldSpec('Assignment', 'assignment', 'Assignment'),
        FieldSpec('Routing', 'routing', 'Routing'),
        FieldSpec('Date_Out', 'date_out', 'Date Out'),
        FieldSpec('Date_In', 'date_in', 'Date In'),
        FieldSpec('Total_Days', 'total_days', 'Total Days'),
        FieldSpec('Time_Out', 'time_out', 'Customer Time Out'),
        FieldSpec('Time_In', 'time_in', 'Customer Time In'),
        FieldSpec('Km_Out', 'km_out', 'Customer Km Out'),
        FieldSpec('Km_In', 'km_in', 'Customer Km In'),
        FieldSpec('Driver_Time_Out', 'driver_time_out', 'Driver Time Out'),
        FieldSpec('Driver_Time_In', 'driver_time_in', 'Driver Time In'),
        FieldSpec('Driver_Km_Out', 'driver_km_out', 'Driver Km Out'),
        FieldSpec('Driver_Km_In', 'driver_km_in', 'Driver Km In'),
        FieldSpec('Driver_Total_Hrs', 'driver_total_hrs', 'Driver Total Hours'),
        FieldSpec('Driver_Total_Kms', 'driver_total_kms', 'Driver Total Kms'),
        FieldSpec('Auth_Signature_Link', 'auth_signature_link', 'Authoriser Signature'),
        FieldSpec('Guest_Signature_Link', 'guest_signature_link', 'Guest Signature'),
        FieldSpec('Status', 'status', 'Status'),
        FieldSpec('Timestamp', 'created_at', 'Created'),
        FieldSpec('Version', 'version', 'Version'),
    )
    DERIVED_KEYS = ('Total_Days', 'Driver_Total_Hrs', 'Driver_Total_Kms')
    MANAGED_KEYS = frozenset({'DS_No', 'Status', 'Timestamp', 'Version', *DERIVED_KEYS})

    id = db.Column(db.Integer, primary_key=True)
    ds_no = db.Column(db.Integer, unique=True, nullable=False, index=True)

    # Trip facts
    booking_id = db.Column(db.String(50), default='', index=True)
    date = db.Column(db.String(20), default='')
    organisation = db.Column(db.String(200), default='')
    guest_name = db.Column(db.String(200), default='', index=True)
    guest_mobile = db.Column(db.String(20), default='')
    booked_by = db.Column(db.String(200), default='')
    reporting_time = db.Column(db.String(20), default='')
    reporting_address = db.Column(db.Text, default='')
    spl_instruction = db.Column(db.Text, default='')
    vehicle_type = db.Column(db.String(100), default='')
    vehicle_no = db.Column(db.String(50), default='')
    driver_name = db.Column(db.String(200), default='')
    driver_mobile = db.Column(db.String(20), default='')
    assignment = db.Column(db.String(200), default='')
    routing = db.Column(db.Text, default='')

    # Usage window, kept as entered so that fetch returns what was saved
    date_out = db.Column(db.String(20), default='')
    date_in = db.Column(db.String(20), default='')
    total_days = db.Column(db.String(10), default='')
    time_out = db.Column(db.String(10), default='')
    time_in = db.Column(db.String(10), default='')
    km_out = db.Column(db.String(20), default='')
    km_in = db.Column(db.String(20), default='')
    driver_time_out = db.Column(db.String(10), default='')
    driver_time_in = db.Column(db.String(10), default='')
    driver_km_out = db.Column(db.String(20), default='')
    driver_km_in = db.Column(db.String(20), default='')
    driver_total_hrs = db.Column(db.String(30), default='')
    driver_total_kms = db.Column(db.String(30), default='')

    # Signatures: empty, inline data URL or resolved file URL
    auth_signature_link = db.Column(db.Text, default='')
    guest_signature_link = db.Column(db.Text, default='')

    status = db.Column(db.Enum(DutySlipStatus), nullable=False, default=DutySlipStatus.NEW, index=True)
    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=get_ist_time_naive, onupdate=get_ist_time_naive)

    __mapper_args__ = {'version_id_col': version}

    def to_record(self) -> Dict[str, Any]:
        record = super().to_record()
        record['DS_No'] = str(self.ds_no)
        return record

    def apply_trip_totals(self, totals: Dict[str, str]) -> None:
        """Write server derived totals, which ``apply_record`` never touches"""
        for key in self.DERIVED_KEYS:
            setattr(self, self.spec_for(key).attr, totals.get(key, ''))

    def to_summary(self) -> Dict[str, Any]:
        return {
            'DS_No': str(self.ds_no),
            'Date': self.date,
            'Guest_Name': self.guest_name,
            'Driver_Name': self.driver_name,
            'Routing': self.routing,
            'Status': self.status.value,
        }

    def __repr__(self):
        return f'<DutySlip {self.ds_no} {self.status.value}>'


class Invoice(RecordMixin, db.Model):
    __tablename__ = 'invoices'

    FIELDS = (
        FieldSpec('Invoice_ID', 'invoice_id', 'Invoice ID'),
        FieldSpec('Public_ID', 'public_id', 'Public ID'),
        FieldSpec('Booking_ID', 'booking_id', 'Booking ID'),
        FieldSpec('DS_No', 'ds_no', 'DS No'),
        FieldSpec('Invoice_Date', 'invoice_date', 'Invoice Date'),
        FieldSpec('Last_Updated', 'last_updated', 'Last Updated'),
        FieldSpec('Invoice_Note', 'invoice_note', 'Note'),
        FieldSpec('Guest_Name', 'guest_name', 'Guest Name'),
        FieldSpec('Guest_Mobile', 'guest_mobile', 'Guest Mobile'),
        FieldSpec('Vehicle_Type', 'vehicle_type', 'Vehicle Type'),
        FieldSpec('Vehicle_No', 'vehicle_no', 'Vehicle No'),
        FieldSpec('Trip_Start_Date', 'trip_start_date', 'Trip Start'),
        FieldSpec('Trip_End_Date', 'trip_end_date', 'Trip End'),
        FieldSpec('Total_KMs', 'total_kms', 'Total KMs'),
        FieldSpec('Total_Hours', 'total_hours', 'Total Hours'),
        FieldSpec('Billing_Slabs', 'billing_slabs', 'Billing Slabs'),
        FieldSpec('Base_Rate', 'base_rate', 'Base Rate'),
        FieldSpec('Included_KMs_per_Slab', 'included_kms_per_slab', 'Included KMs per Slab'),
        FieldSpec('Extra_KM_Rate', 'extra_km_rate', 'Extra KM Rate'),
        FieldSpec('Calculated_Extra_KMs', 'calculated_extra_kms', 'Extra KMs'),
        FieldSpec('Batta_Rate', 'batta_rate', 'Batta Rate'),
        FieldSpec('Total_Tolls', 'total_tolls', 'Tolls'),
        FieldSpec('Total_Permits', 'total_permits', 'Permits'),
        FieldSpec('Package_Cost', 'package_cost', 'Package Cost'),
        FieldSpec('Extra_KM_Cost', 'extra_km_cost', 'Extra KM Cost'),
        FieldSpec('Batta_Cost', 'batta_cost', 'Batta Cost'),
        FieldSpec('Total_Expenses', 'total_expenses', 'Expenses'),
        FieldSpec('Grand_Total', 'grand_total', 'Grand Total'),
        FieldSpec('UPI_ID', 'upi_id', 'UPI ID'),
        FieldSpec('Status', 'status', 'Status'),
        FieldSpec('Shareable_Link', 'shareable_link', 'Shareable Link'),
    )
    MANAGED_KEYS = frozenset({'Invoice_ID', 'Public_ID', 'Shareable_Link', 'Status'})

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.String(60), unique=True, nullable=False)
    public_id = db.Column(db.String(36), unique=True, nullable=False, index=True,
                          default=lambda: uuid.uuid4().hex)
    booking_id = db.Column(db.String(50), unique=True, nullable=False, index=True)
    ds_no = db.Column(db.String(20), default='')
    invoice_date = db.Column(db.String(20), default='')
    last_updated = db.Column(db.String(40), default='')
    invoice_note = db.Column(db.Text, default='')

    guest_name = db.Column(db.String(200), default='')
    guest_mobile = db.Column(db.String(20), default='')
    vehicle_type = db.Column(db.String(100), default='')
    vehicle_no = db.Column(db.String(50), default='')
    trip_start_date = db.Column(db.String(20), default='')
    trip_end_date = db.Column(db.String(20), default='')

    total_kms = db.Column(db.Float, default=0.0)
    total_hours = db.Column(db.Float, default=0.0)
    billing_slabs = db.Column(db.Integer, default=0)
    base_rate = db.Column(db.Float, default=0.0)
    included_kms_per_slab = db.Column(db.Float, default=0.0)
    extra_km_rate = db.Column(db.Float, default=0.0)
    calculated_extra_kms = db.Column(db.Float, default=0.0)
    batta_rate = db.Column(db.Float, default=0.0)
    total_tolls = db.Column(db.Float, default=0.0)
    total_permits = db.Column(db.Float, default=0.0)
    package_cost = db.Column(db.Float, default=0.0)
    extra_km_cost = db.Column(db.Float, default=0.0)
    batta_cost = db.Column(db.Float, default=0.0)
    total_expenses = db.Column(db.Float, default=0.0)
    grand_total = db.Column(db.Float, default=0.0)

    upi_id = db.Column(db.String(100), default='')
    status = db.Column(db.String(20), default='Generated')
    shareable_link = db.Column(db.String(500), default='')

    created_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False)

    def __repr__(self):
        return f'<Invoice {self.invoice_id}>'


class SalarySlip(RecordMixin, db.Model):
    __tablename__ = 'salary_slips'

    FIELDS = (
        FieldSpec('EmployeeName', 'employee_name', 'Employee Name'),
        FieldSpec('EmployeeID', 'employee_id', 'Employee ID'),
        FieldSpec('Designation', 'designation', 'Designation'),
        FieldSpec('EmployeeMobile', 'employee_mobile', 'Mobile'),
        FieldSpec('PayPeriod', 'pay_period', 'Pay Period'),
        FieldSpec('TotalMonthDays', 'total_month_days', 'Days in Month'),
        FieldSpec('PayableDays', 'payable_days', 'Payable Days'),
        FieldSpec('MonthlySalary', 'monthly_salary', 'Monthly Salary'),
        FieldSpec('OutstationQty', 'outstation_qty', 'Outstation Days'),
        FieldSpec('OutstationRate', 'outstation_rate', 'Outstation Rate'),
        FieldSpec('OutstationTotal', 'outstation_total', 'Outstation Total'),
        FieldSpec('ExtraDutyQty', 'extra_duty_qty', 'Extra Duties'),
        FieldSpec('ExtraDutyRate', 'extra_duty_rate', 'Extra Duty Rate'),
        FieldSpec('ExtraDutyTotal', 'extra_duty_total', 'Extra Duty Total'),
        FieldSpec('TotalEarnings', 'total_earnings', 'Total Earnings'),
        FieldSpec('AdvanceDeduction', 'advance_deduction', 'Advance'),
        FieldSpec('LOPDays', 'lop_days', 'LOP Days'),
        FieldSpec('LOPDeduction', 'lop_deduction', 'LOP Deduction'),
        FieldSpec('TotalDeductions', 'total_deductions', 'Total Deductions'),
        FieldSpec('NetPayableAmount', 'net_payable_amount', 'Net Payable'),
        FieldSpec('AuthSignature', 'auth_signature', 'Authorised Signature'),
        FieldSpec('EmployeeSignature', 'employee_signature', 'Employee Signature'),
        FieldSpec('ApprovalNotes', 'approval_notes', 'Approval Notes'),
        FieldSpec('ENotes', 'employee_notes', 'Employee Notes'),
        FieldSpec('Status', 'status', 'Status'),
        FieldSpec('DateGenerated', 'created_at', 'Generated'),
        FieldSpec('Version', 'version', 'Version'),
    )
    MANAGED_KEYS = frozenset({
        'EmployeeID', 'PayPeriod', 'Status', 'DateGenerated', 'Version',
        'TotalMonthDays', 'PayableDays', 'OutstationTotal', 'ExtraDutyTotal',
        'TotalEarnings', 'LOPDeduction', 'TotalDeductions', 'NetPayableAmount',
    })
    # Inputs that feed the salary computation and freeze once approved
    FIGURE_KEYS = (
        'MonthlySalary', 'OutstationQty', 'OutstationRate', 'ExtraDutyQty',
        'ExtraDutyRate', 'AdvanceDeduction', 'LOPDays',
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_name = db.Column(db.String(200), nullable=False)
    employee_id = db.Column(db.String(50), nullable=False, index=True)
    designation = db.Column(db.String(100), default='')
    employee_mobile = db.Column(db.String(20), default='')
    pay_period = db.Column(db.String(7), nullable=False)

    total_month_days = db.Column(db.Integer, default=0)
    payable_days = db.Column(db.Float, default=0.0)
    monthly_salary = db.Column(db.Float, default=0.0)
    outstation_qty = db.Column(db.Float, default=0.0)
    outstation_rate = db.Column(db.Float, default=0.0)
    outstation_total = db.Column(db.Float, default=0.0)
    extra_duty_qty = db.Column(db.Float, default=0.0)
    extra_duty_rate = db.Column(db.Float, default=0.0)
    extra_duty_total = db.Column(db.Float, default=0.0)
    total_earnings = db.Column(db.Float, default=0.0)
    advance_deduction = db.Column(db.Float, default=0.0)
    lop_days = db.Column(db.Float, default=0.0)
    lop_deduction = db.Column(db.Float, default=0.0)
    total_deductions = db.Column(db.Float, default=0.0)
    net_payable_amount = db.Column(db.Float, default=0.0)

    auth_signature = db.Column(db.Text, default='')
    employee_signature = db.Column(db.Text, default='')
    approval_notes = db.Column(db.Text, default='')
    employee_notes = db.Column(db.Text, default='')

    status = db.Column(db.Enum(SalarySlipStatus), nullable=False,
                       default=SalarySlipStatus.PENDING_APPROVAL, index=True)
    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False)
    updated_at = db.Column(db.DateTime, default=get_ist_time_naive, onupdate=get_ist_time_naive)

    __mapper_args__ = {'version_id_col': version}
    __table_args__ = (
        UniqueConstraint('employee_id', 'pay_period', name='unique_employee_pay_period'),
    )

    @property
    def slip_id(self) -> str:
        return f"{self.employee_id}-{self.pay_period}"

    def to_record(self) -> Dict[str, Any]:
        record = super().to_record()
        record['slipId'] = self.slip_id
        return record

    def __repr__(self):
        return f'<SalarySlip {self.slip_id} {self.status.value}>'


class Review(RecordMixin, db.Model):
    __tablename__ = 'reviews'

    FIELDS = (
        FieldSpec('review_id', 'review_id', 'Review #'),
        FieldSpec('ds_no', 'ds_no', 'DS No'),
        FieldSpec('reviewer_name', 'reviewer_name', 'Reviewer'),
        FieldSpec('rating', 'rating', 'Rating'),
        FieldSpec('comment', 'comment', 'Comment'),
        FieldSpec('follow_up_sent', 'follow_up_sent', 'Follow-up Sent'),
        FieldSpec('created_at', 'created_at', 'Logged'),
    )
    MANAGED_KEYS = frozenset({'review_id', 'follow_up_sent', 'created_at'})

    id = db.Column(db.Integer, primary_key=True)
    review_id = db.Column(db.Integer, unique=True, nullable=False, index=True)
    ds_no = db.Column(db.String(20), default='', index=True)
    reviewer_name = db.Column(db.String(200), default='')
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text, default='')
    follow_up_sent = db.Column(db.String(5), default='No')
    created_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False)


class FinancialFlow(Enum):
    DEBIT = 'Debit'
    CREDIT = 'Credit'


class FinancialEntry(RecordMixin, db.Model):
    __tablename__ = 'financial_entries'

    FIELDS = (
        FieldSpec('Entry_ID', 'entry_id', 'Entry ID'),
        FieldSpec('Date', 'date', 'Date'),
        FieldSpec('Account', 'account', 'Account'),
        FieldSpec('Flow', 'flow', 'Flow'),
        FieldSpec('Category', 'category', 'Category'),
        FieldSpec('Sub_Category', 'sub_category', 'Sub Category'),
        FieldSpec('Amount', 'amount', 'Amount'),
        FieldSpec('Payment_Method', 'payment_method', 'Payment Method'),
        FieldSpec('Particulars', 'particulars', 'Particulars'),
        FieldSpec('Timestamp', 'created_at', 'Recorded'),
    )
    MANAGED_KEYS = frozenset({'Entry_ID', 'Flow', 'Timestamp'})

    id = db.Column(db.Integer, primary_key=True)
    entry_id = db.Column(db.String(20), unique=True, nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    account = db.Column(db.String(50), nullable=False, index=True)
    flow = db.Column(db.Enum(FinancialFlow), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    sub_category = db.Column(db.String(100), default='')
    amount = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(50), default='')
    particulars = db.Column(db.Text, default='')
    created_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False)

    __table_args__ = (
        Index('idx_financial_account_date', 'account', 'date'),
    )

    def to_record(self) -> Dict[str, Any]:
        record = super().to_record()
        record['Date'] = self.date.isoformat() if self.date else ''
        return record


class Booking(RecordMixin, db.Model):
    __tablename__ = 'bookings'

    FIELDS = (
        FieldSpec('Booking_ID', 'booking_id', 'Booking ID'),
        FieldSpec('Timestamp', 'timestamp', 'Received'),
        FieldSpec('Customer_Name', 'customer_name', 'Customer'),
        FieldSpec('Mobile_Number', 'mobile_number', 'Mobile'),
        FieldSpec('Email', 'email', 'Email'),
        FieldSpec('Journey_Type', 'journey_type', 'Journey Type'),
        FieldSpec('Pickup_City', 'pickup_city', 'Pickup'),
        FieldSpec('Drop_City', 'drop_city', 'Drop'),
        FieldSpec('Travel_Date', 'travel_date', 'Travel Date'),
        FieldSpec('Status', 'status', 'Status'),
    )
    MANAGED_KEYS = frozenset({'Booking_ID', 'Timestamp', 'Status'})

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.String(20), unique=True, nullable=False)
    timestamp = db.Column(db.String(40), default='')
    customer_name = db.Column(db.String(200), default='')
    mobile_number = db.Column(db.String(20), default='')
    email = db.Column(db.String(120), default='')
    journey_type = db.Column(db.String(50), default='')
    pickup_city = db.Column(db.String(100), default='')
    drop_city = db.Column(db.String(100), default='')
    travel_date = db.Column(db.String(20), default='')
    status = db.Column(db.String(30), default='New Inquiry')
    created_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False)


class Route(RecordMixin, db.Model):
    __tablename__ = 'routes'

    FIELDS = (
        FieldSpec('Route_Slug', 'route_slug', 'Slug'),
        FieldSpec('Origin', 'origin', 'Origin'),
        FieldSpec('Destination', 'destination', 'Destination'),
        FieldSpec('Distance_Km', 'distance_km', 'Distance (Km)'),
        FieldSpec('Time_Hours', 'time_hours', 'Time (Hours)'),
        FieldSpec('Price_Sedan', 'price_sedan', 'Sedan Price'),
        FieldSpec('Price_Innova', 'price_innova', 'Innova Price'),
        FieldSpec('Popular_Route', 'popular_route', 'Popular'),
    )

    id = db.Column(db.Integer, primary_key=True)
    route_slug = db.Column(db.String(150), unique=True, nullable=False, index=True)
    origin = db.Column(db.String(100), default='')
    destination = db.Column(db.String(100), default='')
    distance_km = db.Column(db.String(20), default='')
    time_hours = db.Column(db.String(20), default='')
    price_sedan = db.Column(db.String(20), default='')
    price_innova = db.Column(db.String(20), default='')
    popular_route = db.Column(db.String(5), default='No')


class CareerApplication(RecordMixin, db.Model):
    """Driver job or vehicle-attachment application from the website"""
    __tablename__ = 'career_applications'

    FIELDS = (
        FieldSpec('Timestamp', 'timestamp', 'Received'),
        FieldSpec('Status', 'status', 'Status'),
        FieldSpec('Full_Name', 'full_name', 'Name'),
        FieldSpec('Phone_Number', 'phone_number', 'Phone'),
        FieldSpec('Email_Address', 'email_address', 'Email'),
        FieldSpec('City_Area', 'city_area', 'City / Area'),
        FieldSpec('Experience', 'experience', 'Experience'),
        FieldSpec('Application_Type', 'application_type', 'Applying For'),
        FieldSpec('License_Type', 'license_type', 'License'),
        FieldSpec('Vehicle_Details', 'vehicle_details', 'Vehicle'),
    )
    MANAGED_KEYS = frozenset({'Timestamp', 'Status'})

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.String(40), default='')
    status = db.Column(db.String(20), default='New')
    full_name = db.Column(db.String(200), nullable=False)
    phone_number = db.Column(db.String(20), nullable=False)
    email_address = db.Column(db.String(120), default='')
    city_area = db.Column(db.String(100), default='')
    experience = db.Column(db.String(50), default='')
    application_type = db.Column(db.String(20), default='')
    license_type = db.Column(db.String(50), default='')
    vehicle_details = db.Column(db.String(200), default='')
    created_at = db.Column(db.DateTime, default=get_ist_time_naive, nullable=False)


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    actor_role = db.Column(db.String(20), nullable=False, index=True)

    # Action details
    action = db.Column(db.String(100), nullable=False, index=True)
    entity_type = db.Column(db.String(50), index=True)
    entity_id = db.Column(db.String(60))

    new_values = db.Column(db.Text)  # JSON

    # Request context
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(500))
    correlation_id = db.Column(db.String(64))

    created_at = db.Column(db.DateTime, default=get_ist_time_naive, index=True)

    __table_args__ = (
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
    )
