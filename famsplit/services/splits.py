"""
Split calculator.

Turns an expense amount and a split policy into per-member owed amounts. All
arithmetic is Decimal, rounded half-up to cents; whatever rounding leaves over
is folded into the first share so the shares always add up to the amount.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from famsplit.core.errors import InvalidSplitInput, InvalidSplitType, NoActiveMembers, ValidationError
from famsplit.models.entities import SplitTypeEnum

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
PERCENT_STEP = Decimal("0.0001")


@dataclass(frozen=True)
class SplitDetail:
    member_id: int
    percentage: Decimal | None = None
    amount_owed: Decimal | None = None


@dataclass
class SplitShare:
    member_id: int
    amount_owed: Decimal
    split_type: SplitTypeEnum
    percentage: Decimal | None = None


def to_money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _as_decimal(value: Any, field: str, member_id: int) -> Decimal:
    if value is None or isinstance(value, bool):
        raise InvalidSplitInput(f"{field} is required for member {member_id}")
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidSplitInput(f"{field} must be numeric for member {member_id}") from None
    if not number.is_finite():
        raise InvalidSplitInput(f"{field} must be numeric for member {member_id}")
    if number < 0:
        raise InvalidSplitInput(f"{field} must not be negative for member {member_id}")
    return number


def _parse_split_type(split_type: SplitTypeEnum | str) -> SplitTypeEnum:
    try:
        return SplitTypeEnum(split_type)
    except ValueError:
        raise InvalidSplitType() from None


def _validate_targets(details: Sequence[SplitDetail] | None, active_member_ids: Sequence[int]) -> Sequence[SplitDetail]:
    if not details:
        raise InvalidSplitInput("split_details must list at least one member")
    active = set(active_member_ids)
    seen: set[int] = set()
    for detail in details:
        if detail.member_id in seen:
            raise InvalidSplitInput(f"member {detail.member_id} appears more than once in split_details")
        if detail.member_id not in active:
            raise InvalidSplitInput(f"member {detail.member_id} is not an active member of this family")
        seen.add(detail.member_id)
    return details


def _equal_shares(amount: Decimal, active_member_ids: Sequence[int]) -> list[SplitShare]:
    per_member = (amount / len(active_member_ids)).quantize(CENT, rounding=ROUND_HALF_UP)
    return [SplitShare(member_id=member_id, amount_owed=per_member, split_type=SplitTypeEnum.equal) for member_id in active_member_ids]


def _percentage_shares(amount: Decimal, details: Sequence[SplitDetail]) -> list[SplitShare]:
    percentages = [_as_decimal(detail.percentage, "percentage", detail.member_id) for detail in details]
    for detail, percentage in zip(details, percentages):
        # Must fit the stored Numeric(7, 4) column exactly.
        if percentage > HUNDRED or percentage != percentage.quantize(PERCENT_STEP):
            raise InvalidSplitInput(
                f"percentage for member {detail.member_id} must be at most 100 with at most 4 decimal places"
            )
    total = sum(percentages, Decimal("0"))
    if total != HUNDRED:
        raise InvalidSplitInput(f"percentages must add up to 100, got {total}")
    return [
        SplitShare(
            member_id=detail.member_id,
            amount_owed=(amount * percentage / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP),
            split_type=SplitTypeEnum.percentage,
            percentage=percentage,
        )
        for detail, percentage in zip(details, percentages)
    ]


def _manual_shares(amount: Decimal, details: Sequence[SplitDetail]) -> list[SplitShare]:
    shares = [
        SplitShare(
            member_id=detail.member_id,
            amount_owed=to_money(_as_decimal(detail.amount_owed, "amount_owed", detail.member_id)),
            split_type=SplitTypeEnum.manual,
        )
        for detail in details
    ]
    total = sum((share.amount_owed for share in shares), Decimal("0"))
    if total != amount:
        raise InvalidSplitInput(f"manual amounts must add up to the expense amount {amount}, got {total}")
    return shares


def _reconcile(amount: Decimal, shares: list[SplitShare]) -> list[SplitShare]:
    remainder = amount - sum((share.amount_owed for share in shares), Decimal("0"))
    if remainder >= 0:
        shares[0].amount_owed += remainder
        return shares
    # Rounding overshot: take it back from the leading shares, never below zero.
    for share in shares:
        taken = min(share.amount_owed, -remainder)
        share.amount_owed -= taken
        remainder += taken
        if remainder == 0:
            break
    return shares


def compute_splits(
    amount: Decimal | int | str,
    active_member_ids: Sequence[int],
    split_type: SplitTypeEnum | str,
    split_details: Sequence[SplitDetail] | None = None,
) -> list[SplitShare]:
    policy = _parse_split_type(split_type)
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("amount must be a positive number")
    if not active_member_ids:
        raise NoActiveMembers()

    if policy == SplitTypeEnum.equal:
        shares = _equal_shares(amount, active_member_ids)
    elif policy == SplitTypeEnum.percentage:
        shares = _percentage_shares(amount, _validate_targets(split_details, active_member_ids))
    else:
        shares = _manual_shares(amount, _validate_targets(split_details, active_member_ids))

    return _reconcile(amount, shares)
