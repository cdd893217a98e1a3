# Overview: Commission rate cascade and per-role commission amounts for treatment lines.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..errors import CommissionOutOfRange, ItemNotFound, TherapistInactive, TherapistMissing
from ..extensions import db
from ..models import Therapist
from ..models.transactions import COMMISSION_ROLE_ASSISTANT, COMMISSION_ROLE_PRIMARY
from ..money import HUNDRED, round2, to_decimal
"""
Commission Invariants (authoritative)

Rate cascade, first match wins:
  1. therapist.commission_percent (explicit override)
  2. therapist.level.default_commission
  3. store-wide default percent (passed in by the caller, read once per checkout)

- amount = round2(line_total * percent / 100), on the DISCOUNTED line total.
- Primary and assistant are computed independently at their own full rate
  against the same line total; the assistant's share is not split off the
  primary's.
- An explicit override must lie inside the therapist level's
  [min_commission, max_commission] when the therapist has a level.
"""


@dataclass(frozen=True)
class CommissionShare:
    therapist: Therapist
    role: str
    percent: Decimal
    base_amount: Decimal
    amount: Decimal


def resolve_rate(therapist: Therapist, global_default_percent: Decimal) -> Decimal:
    if therapist is None:
        raise TherapistMissing("Treatment line requires a primary therapist")
    if not therapist.is_active:
        raise TherapistInactive(
            f"Therapist {therapist.name} is no longer active",
            details={"therapist_id": therapist.id},
        )

    level = therapist.level
    if therapist.commission_percent is not None:
        percent = to_decimal(therapist.commission_percent, field="commission_percent")
        if level is not None:
            low = to_decimal(level.min_commission, field="min_commission")
            high = to_decimal(level.max_commission, field="max_commission")
            if percent < low or percent > high:
                raise CommissionOutOfRange(
                    f"Commission for level {level.name} must be between {low}% and {high}%",
                    details={
                        "therapist_id": therapist.id,
                        "percent": str(percent),
                        "min": str(low),
                        "max": str(high),
                    },
                )
        return percent

    if level is not None and level.default_commission is not None:
        return to_decimal(level.default_commission, field="default_commission")

    return to_decimal(global_default_percent, field="global_default_percent")


def compute_amount(line_total: Decimal, percent: Decimal) -> Decimal:
    return round2(Decimal(line_total) * Decimal(percent) / HUNDRED)


def load_therapist(therapist_id: int | None, *, role: str = COMMISSION_ROLE_PRIMARY) -> Therapist:
    if therapist_id is None:
        raise TherapistMissing("Treatment line requires a primary therapist")
    therapist = db.session.get(Therapist, therapist_id)
    if therapist is None:
        raise ItemNotFound(
            f"{role.title()} therapist {therapist_id} not found",
            details={"therapist_id": therapist_id, "role": role},
        )
    if not therapist.is_active:
        raise TherapistInactive(
            f"{role.title()} therapist {therapist.name} is no longer active",
            details={"therapist_id": therapist.id, "role": role},
        )
    return therapist


def commissions_for_line(
    line_total: Decimal,
    therapist: Therapist,
    assistant: Therapist | None,
    global_default_percent: Decimal,
) -> list[CommissionShare]:
    """One share per present role, primary first."""
    if therapist is None:
        raise TherapistMissing("Treatment line requires a primary therapist")
    shares = []
    for role, person in ((COMMISSION_ROLE_PRIMARY, therapist), (COMMISSION_ROLE_ASSISTANT, assistant)):
        if person is None:
            continue
        percent = resolve_rate(person, global_default_percent)
        shares.append(
            CommissionShare(
                therapist=person,
                role=role,
                percent=percent,
                base_amount=line_total,
                amount=compute_amount(line_total, percent),
            )
        )
    return shares
