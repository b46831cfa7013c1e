from typing import Any, Dict, Iterable, List, Tuple
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext

ADJUSTMENTS = ("discount", "tax", "tip", "delivery")
SETTLE_TOLERANCE = Decimal("1")
HUNDRED = Decimal("100")
ZERO = Decimal("0")
# inputs beyond this are treated as typos and fall back to the default
MAX_INPUT = Decimal("1e15")

def to_dec(x, default="0") -> Decimal:
    """
    Coerce form input to a finite Decimal. Blank strings, None, garbage text,
    NaN, Infinity and anything larger than MAX_INPUT come back as `default`.
    """
    if isinstance(x, bool) or x is None:
        return Decimal(default)
    if isinstance(x, Decimal):
        d = x
    else:
        try:
            d = Decimal(str(x).strip())
        except (InvalidOperation, ValueError):
            return Decimal(default)
    if not d.is_finite() or abs(d) > MAX_INPUT:
        return Decimal(default)
    return d

def round2(d: Decimal) -> Decimal:
    with localcontext() as ctx:
        # room for every integer digit plus two places
        ctx.prec = max(ctx.prec, d.adjusted() + 3)
        return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

def to_amount(x) -> Decimal:
    d = to_dec(x)
    return d if d > 0 else ZERO

def to_percent(x) -> Decimal:
    return max(ZERO, min(HUNDRED, to_dec(x)))

def to_quantity(x) -> int:
    q = int(to_dec(x, default="1"))  # truncates toward zero
    return q if q >= 1 else 1

def _text(x) -> str:
    return "" if x is None else str(x)

def normalize_bill(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build a complete bill snapshot from a raw (possibly partial or older) record.

    Missing fields fall back to safe defaults, numbers are coerced, at least one
    participant is guaranteed, ids are made unique and item assignees are limited
    to participants that still exist.
    """
    raw = raw or {}

    people = []
    seen = set()
    for pos, p in enumerate(raw.get("people") or [], start=1):
        p = p or {}
        pid = _text(p.get("id")) or str(pos)
        if pid in seen:
            pid = f"{pid}-{pos}"
        seen.add(pid)
        people.append({"id": pid, "name": _text(p.get("name")), "paid": to_amount(p.get("paid"))})
    if not people:
        people = [{"id": "1", "name": "", "paid": ZERO}]
    known = {p["id"] for p in people}

    items = []
    for pos, it in enumerate(raw.get("items") or [], start=1):
        it = it or {}
        assigned = []
        for pid in it.get("assigned_to") or []:
            pid = _text(pid)
            if pid in known and pid not in assigned:
                assigned.append(pid)
        items.append({
            "id": _text(it.get("id")) or str(pos),
            "name": _text(it.get("name")),
            "price": to_amount(it.get("price")),
            "quantity": to_quantity(it.get("quantity")),
            "discount": to_percent(it.get("discount")),
            "assigned_to": assigned,
        })

    discounts = []
    for pos, d in enumerate(raw.get("global_discounts") or [], start=1):
        d = d or {}
        discounts.append({"id": _text(d.get("id")) or str(pos), "percent": to_percent(d.get("percent"))})

    active = set(_text(a) for a in raw.get("active_adjustments") or [])

    return {
        "bill_name": _text(raw.get("bill_name")),
        "people": people,
        "items": items,
        "use_itemized_list": bool(raw.get("use_itemized_list", False)),
        "bill_amount": to_amount(raw.get("bill_amount")),
        "tax_percent": to_amount(raw.get("tax_percent")),
        "tip_percent": to_amount(raw.get("tip_percent")),
        "global_discounts": discounts,
        "delivery_fee": to_amount(raw.get("delivery_fee")),
        "active_adjustments": [a for a in ADJUSTMENTS if a in active],
    }

def item_cost(item: Dict[str, Any]) -> Decimal:
    gross = to_amount(item.get("price")) * to_quantity(item.get("quantity"))
    return gross - gross * to_percent(item.get("discount")) / HUNDRED

def allocate_shares(people: List[dict], items: List[dict], use_itemized: bool,
                    bill_amount) -> Tuple[Decimal, Dict[str, Decimal], Decimal]:
    """
    Returns (subtotal, raw share per participant id, cost of unassigned items).
    Flat mode splits the bill amount equally; itemized mode splits every item's
    discounted cost equally among its assignees.
    """
    ids = [p["id"] for p in people]
    if not use_itemized:
        subtotal = to_amount(bill_amount)
        per = subtotal / len(ids)
        return subtotal, {pid: per for pid in ids}, ZERO

    shares = {pid: ZERO for pid in ids}
    subtotal = ZERO
    unassigned = ZERO
    for item in items:
        cost = item_cost(item)
        subtotal += cost
        assignees = [pid for pid in item.get("assigned_to") or [] if pid in shares]
        if not assignees:
            unassigned += cost
            continue
        split = cost / len(assignees)
        for pid in assignees:
            shares[pid] += split
    return subtotal, shares, unassigned

def adjustment_breakdown(amount, discounts: Iterable, tax_percent, tip_percent, delivery_fee,
                         active: Iterable[str], participant_count: int = 1) -> Dict[str, Any]:
    """
    Discounts apply one after another, then tax and tip are each taken from the
    discounted amount, then the delivery fee is split over participant_count.
    Use participant_count=1 for the whole bill.
    """
    active = set(active or ())
    amount = to_dec(amount)
    out = {"base": amount, "discounts": [], "tax": ZERO, "tip": ZERO, "delivery": ZERO}

    if "discount" in active:
        for pct in discounts:
            cut = amount * to_percent(pct) / HUNDRED
            out["discounts"].append(cut)
            amount -= cut
    out["after_discount"] = amount

    if "tax" in active:
        out["tax"] = amount * to_amount(tax_percent) / HUNDRED
    if "tip" in active:
        out["tip"] = amount * to_amount(tip_percent) / HUNDRED
    if "delivery" in active:
        out["delivery"] = to_amount(delivery_fee) / max(int(participant_count), 1)

    out["total"] = amount + out["tax"] + out["tip"] + out["delivery"]
    return out

def apply_adjustments(amount, discounts: Iterable, tax_percent, tip_percent, delivery_fee,
                      active: Iterable[str], participant_count: int = 1) -> Decimal:
    return adjustment_breakdown(amount, discounts, tax_percent, tip_percent, delivery_fee,
                                active, participant_count)["total"]

def compute_balances(people: List[dict], shares: Dict[str, Decimal]) -> Dict[str, Decimal]:
    # positive: overpaid (is owed), negative: underpaid (owes)
    return {p["id"]: to_amount(p.get("paid")) - shares.get(p["id"], ZERO) for p in people}

def is_settled(balance: Decimal) -> bool:
    return abs(balance) < SETTLE_TOLERANCE

def participant_label(person: dict, position: int) -> str:
    return person.get("name") or f"Person {position}"

def settle(people: List[dict], balances: Dict[str, Decimal]) -> List[Tuple[str, str, Decimal]]:
    """
    Given participants and their balances, produce settlements
    (from_label, to_label, amount). Debtors and creditors are matched greedily
    in participant order, not by size.
    """
    debtors = []
    creditors = []
    for pos, p in enumerate(people, start=1):
        bal = balances.get(p["id"], ZERO)
        if bal < -SETTLE_TOLERANCE:
            debtors.append([participant_label(p, pos), -bal])  # store positive owed amount
        elif bal > SETTLE_TOLERANCE:
            creditors.append([participant_label(p, pos), bal])

    i = j = 0
    settlements = []
    while i < len(debtors) and j < len(creditors):
        d_name, d_amt = debtors[i]
        c_name, c_amt = creditors[j]
        transfer = min(d_amt, c_amt)
        settlements.append((d_name, c_name, transfer))
        debtors[i][1] = d_amt - transfer
        creditors[j][1] = c_amt - transfer
        if is_settled(debtors[i][1]):
            i += 1
        if is_settled(creditors[j][1]):
            j += 1
    return settlements

def split_bill(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Run the whole computation for one bill snapshot.

    returns:
      {
        "people": normalized participants,
        "subtotal", "total", "total_paid", "unassigned": Decimal,
        "payment_gap": total_paid - total (Decimal),
        "breakdown": adjustment_breakdown() of the whole bill,
        "shares": {participant_id: Decimal},
        "balances": {participant_id: Decimal},
        "settlements": [(from_label, to_label, Decimal), ...]
      }
    """
    bill = normalize_bill(raw)
    people = bill["people"]
    discounts = [d["percent"] for d in bill["global_discounts"]]
    adjust = (discounts, bill["tax_percent"], bill["tip_percent"], bill["delivery_fee"],
              bill["active_adjustments"])

    subtotal, raw_shares, unassigned = allocate_shares(
        people, bill["items"], bill["use_itemized_list"], bill["bill_amount"])
    breakdown = adjustment_breakdown(subtotal, *adjust)
    shares = {pid: apply_adjustments(amt, *adjust, participant_count=len(people))
              for pid, amt in raw_shares.items()}
    balances = compute_balances(people, shares)
    total_paid = sum((p["paid"] for p in people), ZERO)

    return {
        "people": people,
        "subtotal": subtotal,
        "breakdown": breakdown,
        "total": breakdown["total"],
        "total_paid": total_paid,
        "payment_gap": total_paid - breakdown["total"],
        "unassigned": unassigned,
        "shares": shares,
        "balances": balances,
        "settlements": settle(people, balances),
    }
