"""
Edits on a bill snapshot. Every function returns a new snapshot and leaves its
input untouched, so the UI can re-derive totals from the latest snapshot.
"""
import copy
import time
from typing import Any, Dict

from compute import ADJUSTMENTS, to_amount, to_percent, to_quantity

Bill = Dict[str, Any]

def new_bill() -> Bill:
    return {
        "bill_name": "",
        "people": [
            {"id": "1", "name": "", "paid": 0},
            {"id": "2", "name": "", "paid": 0},
        ],
        "items": [],
        "use_itemized_list": False,
        "bill_amount": "",
        "tip_percent": "",
        "tax_percent": "",
        "global_discounts": [],
        "delivery_fee": "",
        "active_adjustments": [],
    }

def _new_id(existing) -> str:
    taken = set(str(x) for x in existing)
    base = str(int(time.time() * 1000))
    new_id, n = base, 1
    while new_id in taken:
        new_id = f"{base}-{n}"
        n += 1
    return new_id

def _copy(bill: Bill) -> Bill:
    return copy.deepcopy(bill)

def _ids(rows):
    return [r["id"] for r in rows]

# ---------- people ----------
def add_person(bill: Bill) -> Bill:
    bill = _copy(bill)
    bill["people"].append({"id": _new_id(_ids(bill["people"])), "name": "", "paid": 0})
    return bill

def remove_person(bill: Bill, person_id: str) -> Bill:
    bill = _copy(bill)
    if len(bill["people"]) <= 1:
        return bill
    bill["people"] = [p for p in bill["people"] if p["id"] != person_id]
    for item in bill["items"]:
        item["assigned_to"] = [pid for pid in item.get("assigned_to", []) if pid != person_id]
    return bill

def update_person(bill: Bill, person_id: str, name=None, paid=None) -> Bill:
    bill = _copy(bill)
    for p in bill["people"]:
        if p["id"] == person_id:
            if name is not None:
                p["name"] = name
            if paid is not None:
                p["paid"] = to_amount(paid)
    return bill

# ---------- items ----------
def add_item(bill: Bill) -> Bill:
    bill = _copy(bill)
    bill["items"].append({
        "id": _new_id(_ids(bill["items"])),
        "name": "",
        "price": 0,
        "quantity": 1,
        "discount": 0,
        "assigned_to": [],
    })
    return bill

def remove_item(bill: Bill, item_id: str) -> Bill:
    bill = _copy(bill)
    bill["items"] = [it for it in bill["items"] if it["id"] != item_id]
    return bill

def update_item(bill: Bill, item_id: str, name=None, price=None, quantity=None, discount=None) -> Bill:
    bill = _copy(bill)
    for it in bill["items"]:
        if it["id"] != item_id:
            continue
        if name is not None:
            it["name"] = name
        if price is not None:
            it["price"] = to_amount(price)
        if quantity is not None:
            it["quantity"] = to_quantity(quantity)
        if discount is not None:
            it["discount"] = to_percent(discount)
    return bill

def toggle_assignment(bill: Bill, item_id: str, person_id: str) -> Bill:
    bill = _copy(bill)
    for it in bill["items"]:
        if it["id"] == item_id:
            assigned = it.setdefault("assigned_to", [])
            if person_id in assigned:
                assigned.remove(person_id)
            else:
                assigned.append(person_id)
    return bill

# ---------- sequential discounts ----------
def add_discount(bill: Bill) -> Bill:
    bill = _copy(bill)
    bill["global_discounts"].append({"id": _new_id(_ids(bill["global_discounts"])), "percent": 0})
    return bill

def remove_discount(bill: Bill, discount_id: str) -> Bill:
    bill = _copy(bill)
    bill["global_discounts"] = [d for d in bill["global_discounts"] if d["id"] != discount_id]
    return bill

def update_discount(bill: Bill, discount_id: str, percent) -> Bill:
    bill = _copy(bill)
    for d in bill["global_discounts"]:
        if d["id"] == discount_id:
            d["percent"] = to_percent(percent)
    return bill

# ---------- adjustment flags ----------
_CLEARS = {"tax": "tax_percent", "tip": "tip_percent", "delivery": "delivery_fee"}

def toggle_adjustment(bill: Bill, kind: str) -> Bill:
    """
    Switch an adjustment on or off. Switching off clears its value(s); switching
    the discount on with no discounts yet adds an empty one.
    """
    if kind not in ADJUSTMENTS:
        raise ValueError(f"Unknown adjustment: {kind}")
    bill = _copy(bill)
    active = list(bill.get("active_adjustments") or [])
    if kind in active:
        active.remove(kind)
        if kind == "discount":
            bill["global_discounts"] = []
        else:
            bill[_CLEARS[kind]] = ""
        bill["active_adjustments"] = active
        return bill

    bill["active_adjustments"] = active + [kind]
    if kind == "discount" and not bill.get("global_discounts"):
        bill = add_discount(bill)
    return bill
