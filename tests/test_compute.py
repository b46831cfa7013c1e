from decimal import Decimal

import pytest

from compute import (
    SETTLE_TOLERANCE,
    adjustment_breakdown,
    allocate_shares,
    apply_adjustments,
    is_settled,
    item_cost,
    normalize_bill,
    round2,
    settle,
    split_bill,
    to_dec,
    to_percent,
    to_quantity,
)


def person(pid, name="", paid=0):
    return {"id": pid, "name": name, "paid": paid}


def flat_bill(amount, people, **extra):
    bill = {"people": people, "use_itemized_list": False, "bill_amount": amount}
    bill.update(extra)
    return bill


# ---------- coercion ----------

@pytest.mark.parametrize("raw", ["", None, "abc", "nan", "inf", float("nan")])
def test_malformed_numbers_fall_back_to_default(raw):
    assert to_dec(raw) == 0


def test_quantity_defaults_to_one():
    assert to_quantity("") == 1
    assert to_quantity("0") == 1
    assert to_quantity("-3") == 1
    assert to_quantity("2.7") == 2


def test_percent_is_clamped():
    assert to_percent("150") == 100
    assert to_percent("-5") == 0
    assert to_percent("12.5") == Decimal("12.5")


def test_normalize_fills_defaults_for_older_records():
    bill = normalize_bill({"people": [{"name": "Ann", "paid": "x"}]})
    assert bill["people"] == [{"id": "1", "name": "Ann", "paid": 0}]
    assert bill["items"] == []
    assert bill["global_discounts"] == []
    assert bill["active_adjustments"] == []
    assert bill["use_itemized_list"] is False


def test_normalize_keeps_at_least_one_person():
    assert len(normalize_bill({})["people"]) == 1
    assert len(normalize_bill({"people": []})["people"]) == 1


def test_normalize_drops_unknown_assignees_and_flags():
    bill = normalize_bill({
        "people": [person("a"), person("b")],
        "items": [{"price": 10, "assigned_to": ["a", "a", "ghost"]}],
        "active_adjustments": ["tip", "bogus", "discount"],
    })
    assert bill["items"][0]["assigned_to"] == ["a"]
    assert bill["active_adjustments"] == ["discount", "tip"]


# ---------- allocation ----------

def test_item_cost_applies_line_discount():
    assert item_cost({"price": 100, "quantity": 3, "discount": 10}) == 270


def test_itemized_allocation_splits_among_assignees_only():
    people = [person("a"), person("b"), person("c")]
    items = [{"price": 30000, "quantity": 2, "discount": 0, "assigned_to": ["a", "b"]}]
    subtotal, shares, unassigned = allocate_shares(people, items, True, 0)
    assert subtotal == 60000
    assert shares == {"a": 30000, "b": 30000, "c": 0}
    assert unassigned == 0


def test_unassigned_item_counts_toward_subtotal_only():
    people = [person("a"), person("b")]
    items = [
        {"price": 50, "quantity": 1, "assigned_to": ["a"]},
        {"price": 20, "quantity": 1, "assigned_to": []},
    ]
    subtotal, shares, unassigned = allocate_shares(people, items, True, 0)
    assert subtotal == 70
    assert shares == {"a": 50, "b": 0}
    assert unassigned == 20


def test_flat_allocation_is_equal():
    subtotal, shares, _ = allocate_shares([person("a"), person("b"), person("c"), person("d")], [], False, "400")
    assert subtotal == 400
    assert set(shares.values()) == {100}


# ---------- adjustments ----------

def test_sequential_discounts_are_not_additive():
    assert apply_adjustments(100, [10, 10], 0, 0, 0, ["discount"]) == 81


def test_tax_and_tip_share_the_discounted_base():
    bd = adjustment_breakdown(100, [10], 10, 5, 0, ["discount", "tax", "tip"])
    assert bd["after_discount"] == 90
    assert bd["tax"] == 9
    assert bd["tip"] == Decimal("4.5")
    assert bd["total"] == Decimal("103.5")


def test_inactive_adjustments_are_ignored():
    assert apply_adjustments(100, [50], 10, 10, 30, []) == 100
    assert apply_adjustments(100, [50], 10, 10, 30, ["tax"]) == 110


def test_delivery_fee_is_split_per_head():
    assert apply_adjustments(0, [], 0, 0, 30, ["delivery"]) == 30
    assert apply_adjustments(0, [], 0, 0, 30, ["delivery"], participant_count=3) == 10


# ---------- settlement ----------

def test_two_person_scenario():
    result = split_bill(flat_bill(200000, [person("1", "A", 200000), person("2", "B", 0)]))
    assert result["shares"] == {"1": 100000, "2": 100000}
    assert result["balances"] == {"1": 100000, "2": -100000}
    assert result["settlements"] == [("B", "A", 100000)]


def test_single_person_gets_everything_and_no_transfers():
    result = split_bill(flat_bill(
        100, [person("1", "Solo")],
        tax_percent=10, delivery_fee=5, active_adjustments=["tax", "delivery"],
    ))
    assert result["total"] == 115
    assert result["shares"] == {"1": 115}
    assert result["settlements"] == []


def test_settlement_uses_input_order_not_size():
    people = [person("1", "Big", 0), person("2", "Small", 0), person("3", "Payer", 0)]
    balances = {"1": Decimal("-10"), "2": Decimal("-90"), "3": Decimal("100")}
    assert settle(people, balances) == [("Big", "Payer", 10), ("Small", "Payer", 90)]


def test_settlement_falls_back_to_position_label():
    people = [person("x"), person("y")]
    balances = {"x": Decimal("-50"), "y": Decimal("50")}
    assert settle(people, balances) == [("Person 1", "Person 2", 50)]


def test_balances_within_tolerance_are_left_out():
    people = [person("1", "A"), person("2", "B"), person("3", "C")]
    balances = {"1": Decimal("-0.5"), "2": Decimal("-20"), "3": Decimal("20.5")}
    transfers = settle(people, balances)
    assert transfers == [("B", "C", 20)]
    assert all(t[0] != "A" and t[1] != "A" for t in transfers)


def test_many_to_many_settlement():
    people = [person(str(i), n) for i, n in enumerate("ABCDE")]
    balances = {"0": Decimal("-30"), "1": Decimal("50"), "2": Decimal("-40"), "3": Decimal("-10"), "4": Decimal("30")}
    transfers = settle(people, balances)
    assert transfers == [("A", "B", 30), ("C", "B", 20), ("C", "E", 20), ("D", "E", 10)]
    assert len(transfers) <= 3 + 2 - 1


def _mixed_bill():
    return {
        "people": [person("a", "Ann", 120000), person("b", "Ben", 0), person("c", "Cy", 35000)],
        "use_itemized_list": True,
        "items": [
            {"price": 30000, "quantity": 2, "discount": 0, "assigned_to": ["a", "b"]},
            {"price": 45000, "quantity": 1, "discount": 15, "assigned_to": ["b", "c"]},
            {"price": 12000, "quantity": 3, "discount": 0, "assigned_to": ["a", "b", "c"]},
        ],
        "global_discounts": [{"percent": 10}, {"percent": 5}],
        "tax_percent": "11",
        "tip_percent": "7.5",
        "delivery_fee": "15000",
        "active_adjustments": ["discount", "tax", "tip", "delivery"],
    }


def test_balances_sum_to_zero_and_transfers_cover_debt():
    bill = _mixed_bill()
    # Ann covers whatever Cy did not
    bill["people"][0]["paid"] = split_bill(bill)["total"] - 35000
    result = split_bill(bill)
    assert abs(sum(result["balances"].values())) < SETTLE_TOLERANCE
    assert [(t[0], t[1]) for t in result["settlements"]] == [("Ben", "Ann"), ("Cy", "Ann")]
    assert abs(sum(result["shares"].values()) - result["total"]) < SETTLE_TOLERANCE

    owed = sum(b for b in result["balances"].values() if b > SETTLE_TOLERANCE)
    owing = -sum(b for b in result["balances"].values() if b < -SETTLE_TOLERANCE)
    moved = sum(t[2] for t in result["settlements"])
    assert abs(moved - min(owed, owing)) < SETTLE_TOLERANCE
    assert all(t[2] > 0 for t in result["settlements"])


def test_split_bill_is_repeatable():
    bill = _mixed_bill()
    assert split_bill(bill) == split_bill(bill)
    assert bill == _mixed_bill()


@pytest.mark.parametrize("raw", ["1e999999", "-1e999999", "1e16", Decimal("1e999999")])
def test_out_of_range_numbers_fall_back_to_default(raw):
    assert to_dec(raw) == 0
    assert to_quantity(raw) == 1


def test_overflowing_items_do_not_raise():
    result = split_bill({
        "people": [person("1")],
        "use_itemized_list": True,
        "items": [{"price": "1e999999", "quantity": 10, "assigned_to": ["1"]}],
    })
    assert result["total"] == 0
    assert result["settlements"] == []


def test_largest_accepted_inputs_still_compute():
    result = split_bill({
        "people": [person("1"), person("2", paid="1e15")],
        "use_itemized_list": True,
        "items": [{"price": "1e15", "quantity": "1e15", "assigned_to": ["1", "2"]}],
        "tax_percent": "1e15",
        "active_adjustments": ["tax"],
    })
    assert result["total"] > 0
    assert round2(result["total"]) == result["total"]


def test_round2_handles_amounts_wider_than_default_precision():
    wide = Decimal("123456789012345678901234567.125")
    assert round2(wide) == Decimal("123456789012345678901234567.13")


def test_payment_gap():
    result = split_bill(flat_bill(300, [person("1", paid=100), person("2", paid=150)]))
    assert result["payment_gap"] == -50
    assert not is_settled(result["payment_gap"])


def test_duplicate_participant_ids_are_made_unique():
    bill = normalize_bill({"people": [person("1", "A"), person("1", "B"), person("", "C")]})
    assert [p["id"] for p in bill["people"]] == ["1", "1-2", "3"]
