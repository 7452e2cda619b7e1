# ========================
# src/ev_adoption/pipeline/models.py
# ========================

"""
Data Model

Immutable record types shared by all pipeline stages.
"""

from dataclasses import dataclass, asdict
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Tuple

YEARLY_SOURCE = "yearly"
QUARTERLY_SOURCE = "quarterly"


class Classification(str, Enum):
    """EV tag derived from a fuel type."""

    EV = "EV"
    NON_EV = "Non-EV"
    TOTAL = "Total"


@dataclass(frozen=True)
class RegistrationRecord:
    """One count of new vehicle registrations for a geography, fuel type,
    vehicle type and period."""

    geography: str
    fuel_type: str
    vehicle_type: str
    count: Optional[int]
    year: int
    quarter: Optional[int] = None
    period_date: Optional[date] = None
    source: str = YEARLY_SOURCE
    classification: Optional[Classification] = None

    @property
    def period_key(self) -> Tuple[int, Optional[int]]:
        return (self.year, self.quarter)

    @property
    def category(self) -> Tuple[str, str]:
        return (self.fuel_type, self.vehicle_type)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['period_date'] = self.period_date.isoformat() if self.period_date else None
        data['classification'] = self.classification.value if self.classification else None
        return data


@dataclass(frozen=True)
class GlobalSalesRecord:
    """Yearly electric and non-electric unit sales for a country or region."""

    entity: str
    year: int
    ev_sales: Optional[int]
    non_ev_sales: Optional[int]

    @property
    def total(self) -> Optional[int]:
        if self.ev_sales is None or self.non_ev_sales is None:
            return None
        return self.ev_sales + self.non_ev_sales

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['total'] = self.total
        return data
