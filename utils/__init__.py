# Shared helpers: calculations, reference data, logging and config checks
from .calculations import (
    InvoiceBreakdown,
    InvoiceCalculator,
    RateConfig,
    SalaryCalculator,
    SalaryEntry,
    billing_slabs,
    derive_trip_totals,
    parse_hours,
)

__all__ = [
    'InvoiceBreakdown',
    'InvoiceCalculator',
    'RateConfig',
    'SalaryCalculator',
    'SalaryEntry',
    'billing_slabs',
    'derive_trip_totals',
    'parse_hours',
]
