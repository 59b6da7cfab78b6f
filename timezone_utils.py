from datetime import datetime
import pytz

IST = pytz.timezone('Asia/Kolkata')


def get_ist_time():
    """Get current time in IST timezone"""
    return datetime.now(IST)


def get_ist_time_naive():
    """Get current IST time as naive datetime for database storage"""
    return get_ist_time().replace(tzinfo=None)


def format_ist_timestamp(dt=None):
    """Human readable IST timestamp, as written on website bookings"""
    dt = dt or get_ist_time()
    return dt.strftime('%d/%m/%Y, %I:%M:%S %p').lower()
