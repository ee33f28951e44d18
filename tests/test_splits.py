from decimal import ROUND_DOWN, Decimal

import pytest

from famsplit.core.errors import InvalidSplitInput, InvalidSplitType, NoActiveMembers, ValidationError
from famsplit.models.entities import SplitTypeEnum
from famsplit.services.splits import SplitDetail, compute_splits, to_money


def _owed(shares):
    return [share.amount_owed for share in shares]


def _even_parts(total, count):
    part = (total / count).quantize(Decimal("0.01"), rounding=ROUND_DOWN)
    return [part] * (count - 1) + [total - part * (count - 1)]


def test_equal_split_gives_rounding_remainder_to_first_member():
    shares = compute_splits(Decimal("100"), [1, 2, 3], "equal")
    assert _owed(shares) == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
    assert [share.member_id for share in shares] == [1, 2, 3]
    assert all(share.split_type == SplitTypeEnum.equal for share in shares)


def test_equal_split_ignores_details():
    shares = compute_splits("10.00", [4, 5], SplitTypeEnum.equal, [SplitDetail(member_id=99, percentage=Decimal("100"))])
    assert _owed(shares) == [Decimal("5.00"), Decimal("5.00")]


def test_percentage_split_rounds_and_balances_to_amount():
    details = [
        SplitDetail(member_id=1, percentage=Decimal("50")),
        SplitDetail(member_id=2, percentage=Decimal("30")),
        SplitDetail(member_id=3, percentage=Decimal("20")),
    ]
    shares = compute_splits(Decimal("99.99"), [1, 2, 3], "percentage", details)
    assert _owed(shares) == [Decimal("49.99"), Decimal("30.00"), Decimal("20.00")]
    assert sum(_owed(shares)) == Decimal("99.99")
    assert shares[1].percentage == Decimal("30")


def test_percentage_split_may_cover_a_subset_of_members():
    details = [SplitDetail(member_id=2, percentage=Decimal("25")), SplitDetail(member_id=3, percentage=Decimal("75"))]
    shares = compute_splits(Decimal("80"), [1, 2, 3], "percentage", details)
    assert [share.member_id for share in shares] == [2, 3]
    assert _owed(shares) == [Decimal("20.00"), Decimal("60.00")]


def test_percentages_must_add_up_to_exactly_one_hundred():
    details = [SplitDetail(member_id=1, percentage=Decimal("33.33")), SplitDetail(member_id=2, percentage=Decimal("66.66"))]
    with pytest.raises(InvalidSplitInput):
        compute_splits(Decimal("10"), [1, 2], "percentage", details)


def test_percentage_split_requires_a_percentage_per_member():
    details = [SplitDetail(member_id=1, percentage=Decimal("100")), SplitDetail(member_id=2)]
    with pytest.raises(InvalidSplitInput):
        compute_splits(Decimal("10"), [1, 2], "percentage", details)


def test_manual_split_keeps_given_amounts():
    details = [
        SplitDetail(member_id=1, amount_owed=Decimal("12.50")),
        SplitDetail(member_id=2, amount_owed=Decimal("7.50")),
    ]
    shares = compute_splits(Decimal("20"), [1, 2], "manual", details)
    assert _owed(shares) == [Decimal("12.50"), Decimal("7.50")]
    assert all(share.percentage is None for share in shares)


def test_manual_split_must_match_the_amount():
    details = [
        SplitDetail(member_id=1, amount_owed=Decimal("12.50")),
        SplitDetail(member_id=2, amount_owed=Decimal("7.00")),
    ]
    with pytest.raises(InvalidSplitInput):
        compute_splits(Decimal("20"), [1, 2], "manual", details)


def test_manual_split_rejects_negative_amounts():
    details = [
        SplitDetail(member_id=1, amount_owed=Decimal("25")),
        SplitDetail(member_id=2, amount_owed=Decimal("-5")),
    ]
    with pytest.raises(InvalidSplitInput):
        compute_splits(Decimal("20"), [1, 2], "manual", details)


def test_unknown_split_type_is_rejected():
    with pytest.raises(InvalidSplitType):
        compute_splits(Decimal("10"), [1, 2], "by_weight")


def test_details_must_target_active_members_once():
    with pytest.raises(InvalidSplitInput):
        compute_splits(Decimal("10"), [1, 2], "manual", [SplitDetail(member_id=7, amount_owed=Decimal("10"))])
    with pytest.raises(InvalidSplitInput):
        compute_splits(
            Decimal("10"),
            [1, 2],
            "percentage",
            [SplitDetail(member_id=1, percentage=Decimal("50")), SplitDetail(member_id=1, percentage=Decimal("50"))],
        )
    with pytest.raises(InvalidSplitInput):
        compute_splits(Decimal("10"), [1, 2], "manual", [])


def test_amount_and_members_are_required():
    with pytest.raises(ValidationError):
        compute_splits(Decimal("0"), [1], "equal")
    with pytest.raises(NoActiveMembers):
        compute_splits(Decimal("10"), [], "equal")


def test_to_money_rounds_half_up():
    assert to_money("2.345") == Decimal("2.35")
    assert to_money(0.1 + 0.2) == Decimal("0.30")


def test_percentages_are_limited_to_four_decimal_places():
    details = [
        SplitDetail(member_id=1, percentage=Decimal("33.33333")),
        SplitDetail(member_id=2, percentage=Decimal("66.66667")),
    ]
    with pytest.raises(InvalidSplitInput):
        compute_splits(Decimal("10"), [1, 2], "percentage", details)

    details = [SplitDetail(member_id=1, percentage=Decimal("120")), SplitDetail(member_id=2, percentage=Decimal("-20"))]
    with pytest.raises(InvalidSplitInput):
        compute_splits(Decimal("10"), [1, 2], "percentage", details)


def test_overshooting_rounding_never_leaves_a_negative_share():
    shares = compute_splits(Decimal("0.05"), [1, 2, 3, 4, 5, 6, 7], "equal")
    assert _owed(shares) == [Decimal("0.00"), Decimal("0.00")] + [Decimal("0.01")] * 5


AMOUNTS = ["0.01", "0.05", "1.00", "10.01", "99.99", "100.00", "333.33", "1234.56"]
MEMBER_COUNTS = [1, 2, 3, 6, 7]


@pytest.mark.parametrize("policy", ["equal", "percentage", "manual"])
@pytest.mark.parametrize("count", MEMBER_COUNTS)
@pytest.mark.parametrize("amount", AMOUNTS)
def test_splits_always_add_up_to_the_amount(amount, count, policy):
    amount = Decimal(amount)
    member_ids = list(range(1, count + 1))
    if policy == "percentage":
        details = [
            SplitDetail(member_id=member_id, percentage=percentage)
            for member_id, percentage in zip(member_ids, _even_parts(Decimal("100"), count))
        ]
    elif policy == "manual":
        details = [
            SplitDetail(member_id=member_id, amount_owed=owed)
            for member_id, owed in zip(member_ids, _even_parts(amount, count))
        ]
    else:
        details = None

    shares = compute_splits(amount, member_ids, policy, details)

    assert len(shares) == count
    assert sum(_owed(shares)) == amount
    assert all(share >= 0 for share in _owed(shares))
    assert all(share == share.quantize(Decimal("0.01")) for share in _owed(shares))
