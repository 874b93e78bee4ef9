from dataclasses import dataclass, replace
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from ledger.errors import UnknownPlanError, ValidationError

CENT = Decimal("0.01")

# Terms older positions were opened on: 5% over one week
DEFAULT_LEGACY_PLAN = {"name": "Legacy Plan", "rate": "0.05", "holding_hours": 168}


@dataclass(frozen=True)
class Plan:
    """A fixed-term plan: principal is locked for holding_period and earns rate once."""
    name: str
    holding_period: timedelta
    rate: Decimal

    def earnings_for(self, principal: Decimal) -> Decimal:
        return (principal * self.rate).quantize(CENT, ROUND_HALF_UP)

    def payout_date(self, started_at):
        return started_at + self.holding_period


def _plan_from_entry(entry) -> Plan:
    try:
        rate = Decimal(str(entry["rate"]))
        hours = float(entry["holding_hours"])
    except (KeyError, InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid plan configuration {entry!r}: {e}")
    if not rate.is_finite() or rate < 0 or hours <= 0:
        raise ValidationError(f"Invalid plan configuration {entry!r}")
    return Plan(name=entry["name"], holding_period=timedelta(hours=hours), rate=rate)


def parse_rate(value) -> Optional[Decimal]:
    """A rate recorded on an old ledger row, or None when it is missing or unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        rate = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not rate.is_finite() or rate < 0 or rate > 1:
        return None
    return rate


class PlanBook:
    """Immutable plan table, built once from configuration and handed to the engine."""

    def __init__(self, plans: Iterable[Plan], legacy: Optional[Plan] = None):
        table: Dict[str, Plan] = {}
        for plan in plans:
            if plan.name in table:
                raise ValidationError(f"Duplicate plan name: {plan.name}")
            table[plan.name] = plan
        self._plans: Mapping[str, Plan] = MappingProxyType(table)
        self.legacy = legacy or _plan_from_entry(DEFAULT_LEGACY_PLAN)

    @classmethod
    def from_config(cls, entries, legacy=None) -> "PlanBook":
        return cls(
            [_plan_from_entry(entry) for entry in entries],
            legacy=_plan_from_entry(legacy) if legacy else None,
        )

    def get(self, name) -> Plan:
        plan = self._plans.get(name)
        if plan is None:
            raise UnknownPlanError(f"Unknown plan: {name}")
        return plan

    def resolve(self, name, rate=None) -> Plan:
        """
        Terms an existing position settles on. Configured plans win; a plan
        that is no longer offered keeps its recorded rate on the legacy term.
        """
        plan = self._plans.get(name)
        if plan is not None:
            return plan
        return replace(
            self.legacy,
            name=name or self.legacy.name,
            rate=self.legacy.rate if rate is None else Decimal(rate),
        )

    def __contains__(self, name):
        return name in self._plans

    def __iter__(self):
        return iter(self._plans.values())

    def __len__(self):
        return len(self._plans)
