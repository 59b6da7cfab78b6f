"""
Trip, invoice and salary calculations.

Everything here is pure: no database, no Flask context. Services feed
values in and persist what comes out.
"""

import calendar
import math
import re
from dataclasses import dataclass, asdict
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Optional, Tuple, Union

HOURS_PER_SLAB = 12

_HOURS_RE = re.compile(r'(\d+(?:\.\d+)?)\s*hrs?', re.IGNORECASE)
_MINUTES_RE = re.compile(r'(\d+)\s*mins?', re.IGNORECASE)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == '')


def parse_date(value: Any) -> Optional[date]:
    """Parse ``YYYY-MM-DD``; blank gives None, anything else malformed raises ValueError"""
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value).strip()[:10], '%Y-%m-%d').date()


def parse_time(value: Any) -> Optional[time]:
    """Parse ``HH:MM`` or ``HH:MM:SS``"""
    if is_blank(value):
        return None
    if isinstance(value, time):
        return value
    text = str(value).strip()
    for fmt in ('%H:%M', '%H:%M:%S'):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time: {value}")


def parse_number(value: Any) -> Optional[float]:
    if is_blank(value):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return float(str(value).replace(',', '').strip())


def calculate_total_days(date_out: Any, date_in: Any) -> str:
    """Inclusive day count, blank when the trip ends before it starts"""
    start, end = parse_date(date_out), parse_date(date_in)
    if start is None or end is None or end < start:
        return ''
    return str(math.ceil((end - start) / timedelta(days=1)) + 1)


def calculate_driver_hours(time_out: Any, time_in: Any) -> str:
    """
    Duration between two times of day, formatted ``"H hrs M mins"``.

    A time-in earlier than time-out is taken as the next day, so a duty
    spans at most one midnight.
    """
    start, end = parse_time(time_out), parse_time(time_in)
    if start is None or end is None:
        return ''
    seconds = _seconds(end) - _seconds(start)
    if seconds < 0:
        seconds += 24 * 3600
    hours, remainder = divmod(seconds, 3600)
    minutes = round(remainder / 60)
    if minutes == 60:
        hours, minutes = hours + 1, 0
    return f"{hours} hrs {minutes} mins"


def calculate_driver_kms(km_out: Any, km_in: Any) -> str:
    start, end = parse_number(km_out), parse_number(km_in)
    if start is None or end is None:
        return ''
    distance = end - start
    if distance <= 0:
        return ''
    return f"{distance:.1f} Kms"


def derive_trip_totals(record: Dict[str, Any]) -> Dict[str, str]:
    """
    Recompute ``Total_Days``, ``Driver_Total_Hrs`` and ``Driver_Total_Kms``.

    All three keys are always returned; a total whose inputs are blank is blank.
    """
    return {
        'Total_Days': calculate_total_days(record.get('Date_Out'), record.get('Date_In')),
        'Driver_Total_Hrs': calculate_driver_hours(record.get('Driver_Time_Out'), record.get('Driver_Time_In')),
        'Driver_Total_Kms': calculate_driver_kms(record.get('Driver_Km_Out'), record.get('Driver_Km_In')),
    }


def anchor_window(date_out: Any, time_out: Any, date_in: Any, time_in: Any
                  ) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Place a start/end time pair on the calendar.

    Starts sit on ``date_out`` and ends on ``date_in``. When the end has no
    date of its own, or the same date as the start, an end earlier than the
    start rolls into the next day, as in ``calculate_driver_hours``.
    """
    base = date(2000, 1, 1)
    start_day = parse_date(date_out) or base
    end_day = parse_date(date_in)
    start_time, end_time = parse_time(time_out), parse_time(time_in)

    start = datetime.combine(start_day, start_time) if start_time else None
    end = None
    if end_time:
        end = datetime.combine(end_day or start_day, end_time)
        if (end_day is None or end_day == start_day) and start is not None and end < start:
            end += timedelta(days=1)
    return start, end


def _seconds(value: time) -> int:
    return value.hour * 3600 + value.minute * 60 + value.second


def parse_hours(value: Union[str, float, int, None]) -> float:
    """
    Decimal hours from ``"<h> hrs <m> mins"`` or a bare number; 0 if unparsable.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    hours_match = _HOURS_RE.search(text)
    minutes_match = _MINUTES_RE.search(text)
    if hours_match or minutes_match:
        hours = float(hours_match.group(1)) if hours_match else 0.0
        minutes = int(minutes_match.group(1)) if minutes_match else 0
        return hours + minutes / 60
    try:
        return float(text)
    except ValueError:
        return 0.0


def parse_kms(value: Union[str, float, int, None]) -> float:
    """Kilometres from ``"45.5 Kms"`` or a bare number"""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    match = re.search(r'-?\d+(?:\.\d+)?', str(value).replace(',', ''))
    return float(match.group(0)) if match else 0.0


def billing_slabs(hours: float) -> int:
    """Number of 12 hour slabs; a partial slab bills as a full one"""
    if hours <= 0:
        return 0
    return math.ceil(hours / HOURS_PER_SLAB)


@dataclass(frozen=True)
class RateConfig:
    """Tariff applied per billing slab"""
    base_rate: float = 0.0
    included_kms_per_slab: float = 0.0
    extra_km_rate: float = 0.0
    batta_rate: float = 0.0


@dataclass(frozen=True)
class InvoiceBreakdown:
    total_hours: float
    total_kms: float
    billing_slabs: int
    calculated_extra_kms: float
    package_cost: float
    extra_km_cost: float
    batta_cost: float
    total_tolls: float
    total_permits: float
    total_expenses: float
    grand_total: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class InvoiceCalculator:
    """Slab based trip billing"""

    def derive(self, total_hours: float, total_kms: float, rates: RateConfig,
               tolls: float = 0.0, permits: float = 0.0) -> InvoiceBreakdown:
        amounts = {
            'total_hours': total_hours, 'total_kms': total_kms,
            'base_rate': rates.base_rate, 'included_kms_per_slab': rates.included_kms_per_slab,
            'extra_km_rate': rates.extra_km_rate, 'batta_rate': rates.batta_rate,
            'tolls': tolls, 'permits': permits,
        }
        negative = [name for name, amount in amounts.items() if amount < 0]
        if negative:
            raise ValueError(f"Negative values not allowed: {', '.join(negative)}")

        slabs = billing_slabs(total_hours)
        package_cost = slabs * rates.base_rate
        extra_kms = max(0.0, total_kms - slabs * rates.included_kms_per_slab)
        extra_km_cost = extra_kms * rates.extra_km_rate
        batta_cost = slabs * rates.batta_rate
        total_expenses = tolls + permits
        grand_total = package_cost + extra_km_cost + batta_cost + total_expenses

        return InvoiceBreakdown(
            total_hours=round(total_hours, 2),
            total_kms=round(total_kms, 1),
            billing_slabs=slabs,
            calculated_extra_kms=round(extra_kms, 2),
            package_cost=round(package_cost, 2),
            extra_km_cost=round(extra_km_cost, 2),
            batta_cost=round(batta_cost, 2),
            total_tolls=round(tolls, 2),
            total_permits=round(permits, 2),
            total_expenses=round(total_expenses, 2),
            grand_total=round(grand_total, 2),
        )


@dataclass
class SalaryEntry:
    """Monthly salary inputs for one employee"""
    pay_period: str          # YYYY-MM
    monthly_salary: float = 0
    outstation_qty: float = 0
    outstation_rate: float = 0
    extra_duty_qty: float = 0
    extra_duty_rate: float = 0
    advance_deduction: float = 0
    lop_days: float = 0


class SalaryCalculator:
    """Calendar-month salary with outstation/extra duty earnings and loss-of-pay"""

    @staticmethod
    def days_in_period(pay_period: str) -> int:
        try:
            year, month = (int(part) for part in pay_period.split('-'))
            return calendar.monthrange(year, month)[1]
        except (ValueError, AttributeError, calendar.IllegalMonthError):
            raise ValueError(f"Invalid pay period: {pay_period}. Use YYYY-MM.")

    def calculate(self, entry: SalaryEntry) -> Dict[str, float]:
        days = self.days_in_period(entry.pay_period)
        if entry.lop_days < 0 or entry.lop_days > days:
            raise ValueError(f"LOP days must be between 0 and {days}")

        per_day_salary = entry.monthly_salary / days
        lop_deduction = per_day_salary * entry.lop_days
        outstation_total = entry.outstation_qty * entry.outstation_rate
        extra_duty_total = entry.extra_duty_qty * entry.extra_duty_rate
        total_earnings = entry.monthly_salary + outstation_total + extra_duty_total
        total_deductions = entry.advance_deduction + lop_deduction

        return {
            "TotalMonthDays": days,
            "PayableDays": days - entry.lop_days,
            "OutstationTotal": round(outstation_total, 2),
            "ExtraDutyTotal": round(extra_duty_total, 2),
            "TotalEarnings": round(total_earnings, 2),
            "LOPDeduction": round(lop_deduction, 2),
            "TotalDeductions": round(total_deductions, 2),
            "NetPayableAmount": round(total_earnings - total_deductions, 2),
        }
