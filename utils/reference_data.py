"""
Reference data loaded once at startup: the driver/employee directory,
the financial category tree, default billing values and the published
tariff tables.

Loaded by ``create_app`` into ``app.extensions['reference_data']`` and
handed to the services that need it.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from utils.calculations import RateConfig

logger = logging.getLogger(__name__)

DEFAULT_REFERENCE_DATA_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'data', 'reference_data.json'
)


@dataclass(frozen=True)
class DirectoryEntry:
    """A driver or staff member known to the office"""
    name: str
    mobile: str = ''
    employee_id: str = ''
    designation: str = ''
    monthly_salary: float = 0.0


@dataclass(frozen=True)
class ReferenceData:
    drivers: Mapping[str, DirectoryEntry] = field(default_factory=lambda: MappingProxyType({}))
    # account -> flow -> category -> sub categories
    categories: Mapping[str, Mapping[str, Mapping[str, Tuple[str, ...]]]] = field(
        default_factory=lambda: MappingProxyType({}))
    default_rates: RateConfig = field(default_factory=RateConfig)
    default_upi_id: str = ''
    ops_whatsapp_number: str = ''
    # tariff table name -> rows, as shown on the website
    tariffs: Mapping[str, Tuple[Mapping[str, Any], ...]] = field(default_factory=lambda: MappingProxyType({}))

    def find_driver(self, name: Optional[str]) -> Optional[DirectoryEntry]:
        if not name:
            return None
        entry = self.drivers.get(name.strip())
        if entry:
            return entry
        lowered = name.strip().lower()
        for driver_name, candidate in self.drivers.items():
            if driver_name.lower() == lowered:
                return candidate
        return None

    def find_employee(self, employee_id: Optional[str]) -> Optional[DirectoryEntry]:
        if not employee_id:
            return None
        for entry in self.drivers.values():
            if entry.employee_id == employee_id.strip():
                return entry
        return None

    def validate_category(self, account: str, flow: str, category: str,
                          sub_category: Optional[str] = None) -> Optional[str]:
        """Returns an error message, or None when the combination is known"""
        flows = self.categories.get(account)
        if flows is None:
            return f"Unknown account: {account}"
        categories = flows.get(flow)
        if categories is None:
            return f"Flow {flow} not allowed for account {account}"
        subcategories = categories.get(category)
        if subcategories is None:
            return f"Unknown category {category} for {account} {flow}"
        if sub_category and sub_category not in subcategories:
            return f"Unknown sub category {sub_category} for {category}"
        return None


def build_reference_data(raw: Dict[str, Any]) -> ReferenceData:
    drivers = {}
    for name, details in (raw.get('drivers') or {}).items():
        drivers[name] = DirectoryEntry(
            name=name,
            mobile=str(details.get('mobile', '')),
            employee_id=str(details.get('id', '')),
            designation=details.get('designation', ''),
            monthly_salary=float(details.get('monthlySalary', 0) or 0),
        )

    categories = {}
    for account, flows in (raw.get('categories') or {}).items():
        categories[account] = MappingProxyType({
            flow: MappingProxyType({cat: tuple(subs) for cat, subs in cats.items()})
            for flow, cats in flows.items()
        })

    rates = raw.get('rates') or {}
    return ReferenceData(
        drivers=MappingProxyType(drivers),
        categories=MappingProxyType(categories),
        default_rates=RateConfig(
            base_rate=float(rates.get('baseRate', 0)),
            included_kms_per_slab=float(rates.get('includedKmsPerSlab', 0)),
            extra_km_rate=float(rates.get('extraKmRate', 0)),
            batta_rate=float(rates.get('battaRate', 0)),
        ),
        default_upi_id=raw.get('upiId', ''),
        ops_whatsapp_number=raw.get('opsWhatsappNumber', ''),
        tariffs=MappingProxyType({
            name: tuple(MappingProxyType(dict(row)) for row in rows)
            for name, rows in (raw.get('tariffs') or {}).items()
        }),
    )


def load_reference_data(path: Optional[str] = None) -> ReferenceData:
    """Read the reference JSON file; ``REFERENCE_DATA_PATH`` overrides the bundled copy"""
    path = path or os.environ.get('REFERENCE_DATA_PATH') or DEFAULT_REFERENCE_DATA_PATH
    with open(path, encoding='utf-8') as handle:
        raw = json.load(handle)
    data = build_reference_data(raw)
    logger.info(f"Reference data loaded from {path}: {len(data.drivers)} directory entries, "
                f"{len(data.categories)} accounts")
    return data
