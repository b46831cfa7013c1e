import streamlit as st
import pandas as pd

import config
import editing
from bill_client import BillClient
from compute import (
    ADJUSTMENTS, SETTLE_TOLERANCE, split_bill, normalize_bill, participant_label, is_settled, round2, to_dec,
)
from models import BillIn

try:
    BASE_URL = st.secrets.get("backend_url", config.BACKEND_URL)
except FileNotFoundError:
    BASE_URL = config.BACKEND_URL

client = BillClient(BASE_URL)

@st.cache_data
def compute_split(snapshot_json: str):
    # keyed on the full snapshot, so any edit recomputes from scratch
    return split_bill(BillIn.model_validate_json(snapshot_json).model_dump())

def money(d) -> str:
    return f"{round2(to_dec(d)):,}"

def field(value) -> str:
    # show zero amounts as an empty box
    return "" if to_dec(value) == 0 else str(value)

def set_bill(bill):
    st.session_state.bill = bill

def replace_bill(bill):
    # new widget keys so inputs pick up the loaded values
    st.session_state.bill = bill
    st.session_state.form_version += 1

if "bill" not in st.session_state:
    st.session_state.bill = editing.new_bill()
    st.session_state.form_version = 0
if "page" not in st.session_state:
    st.session_state.page = "splitter"

def k(name: str) -> str:
    return f"v{st.session_state.form_version}_{name}"

# ========== History ==========
def history_page():
    st.title("Bill History")
    if st.button("Back to splitter"):
        st.session_state.page = "splitter"
        st.rerun()

    res = client.list_bills()
    if not res.ok:
        st.error(f"Could not load bills: {res.message}")
        return
    if not res.data:
        st.info("No saved bills yet.")
        return

    rows = [{
        "Name": b["value"].get("bill_name") or "Unnamed Bill",
        "Saved": b["value"]["created_at"],
        "People": len(b["value"].get("people") or []),
        "Total": b["value"].get("total_amount"),
    } for b in res.data]
    st.dataframe(pd.DataFrame(rows))

    for b in res.data:
        name = b["value"].get("bill_name") or "Unnamed Bill"
        c1, c2, c3 = st.columns([4, 1, 1])
        c1.write(f"**{name}** ({b['value']['created_at']})")
        if c2.button("Load", key=f"load_{b['key']}"):
            # normalized so participant ids are unique widget keys
            replace_bill(normalize_bill(b["value"]))
            st.session_state.page = "splitter"
            st.rerun()
        if c3.button("Delete", key=f"del_{b['key']}"):
            r = client.delete_bill(b["key"])
            if r.ok:
                st.rerun()
            st.error(f"Delete failed: {r.message}")

# ========== Splitter ==========
def splitter_page():
    bill = st.session_state.bill
    st.title("Split Bill")

    c1, c2, c3 = st.columns(3)
    if c1.button("New bill"):
        replace_bill(editing.new_bill())
        st.rerun()
    if c2.button("History"):
        st.session_state.page = "history"
        st.rerun()

    with c3.popover("Save bill"):
        name = st.text_input("Bill name", value=bill.get("bill_name", ""), key=k("bill_name"))
        if st.button("Save"):
            res = client.save_bill(bill, bill_name=name)
            if res.ok:
                st.success(res.message)
            else:
                # nothing persisted; keep the current edits
                st.error(f"Save failed: {res.message}")

    # People
    st.header(f"People ({len(bill['people'])})")
    for pos, p in enumerate(bill["people"], start=1):
        a, b, c = st.columns([3, 2, 1])
        new_name = a.text_input("Name", value=p["name"], placeholder=f"Person {pos}", key=k(f"name_{p['id']}"))
        paid = b.text_input("Amount paid", value=field(p["paid"]), key=k(f"paid_{p['id']}"))
        if new_name != p["name"] or to_dec(paid) != to_dec(p["paid"]):
            bill = editing.update_person(bill, p["id"], name=new_name, paid=paid)
        if len(bill["people"]) > 1 and c.button("Remove", key=k(f"rm_person_{p['id']}")):
            replace_bill(editing.remove_person(bill, p["id"]))
            st.rerun()
    if st.button("Add person"):
        set_bill(editing.add_person(bill))
        st.rerun()

    # Bill amount or items
    st.header("Bill")
    itemized = st.toggle("Itemized list", value=bill["use_itemized_list"], key=k("itemized"))
    if itemized != bill["use_itemized_list"]:
        bill = dict(bill, use_itemized_list=itemized)

    if itemized:
        for it in bill["items"]:
            with st.container(border=True):
                a, b, c, d, e = st.columns([3, 1, 2, 1, 1])
                name = a.text_input("Item", value=it["name"], key=k(f"item_name_{it['id']}"))
                qty = b.text_input("Qty", value=str(it["quantity"]), key=k(f"qty_{it['id']}"))
                price = c.text_input("Price", value=field(it["price"]), key=k(f"price_{it['id']}"))
                disc = d.text_input("Disc %", value=field(it["discount"]), key=k(f"disc_{it['id']}"))
                bill = editing.update_item(bill, it["id"], name=name, price=price, quantity=qty, discount=disc)
                if e.button("Remove", key=k(f"rm_item_{it['id']}")):
                    replace_bill(editing.remove_item(bill, it["id"]))
                    st.rerun()
                cols = st.columns(max(len(bill["people"]), 1))
                for col, (pos, p) in zip(cols, enumerate(bill["people"], start=1)):
                    checked = p["id"] in it.get("assigned_to", [])
                    now = col.checkbox(participant_label(p, pos), value=checked, key=k(f"as_{it['id']}_{p['id']}"))
                    if now != checked:
                        bill = editing.toggle_assignment(bill, it["id"], p["id"])
        if st.button("Add item"):
            set_bill(editing.add_item(bill))
            st.rerun()
    else:
        amount = st.text_input("Total bill amount", value=field(bill["bill_amount"]), key=k("bill_amount"))
        bill = dict(bill, bill_amount=amount)

    # Adjustments
    st.header("Adjustments")
    labels = {"discount": "Discount", "tax": "Tax", "tip": "Tip", "delivery": "Delivery fee"}
    for kind in ADJUSTMENTS:
        on = kind in bill["active_adjustments"]
        if st.toggle(labels[kind], value=on, key=k(f"adj_{kind}")) != on:
            bill = editing.toggle_adjustment(bill, kind)
            on = not on
        if not on:
            continue
        if kind == "discount":
            for idx, disc in enumerate(bill["global_discounts"], start=1):
                a, b = st.columns([4, 1])
                pct = a.text_input(f"Discount #{idx} (%)", value=field(disc["percent"]), key=k(f"gd_{disc['id']}"))
                bill = editing.update_discount(bill, disc["id"], pct)
                if b.button("Remove", key=k(f"rm_gd_{disc['id']}")):
                    replace_bill(editing.remove_discount(bill, disc["id"]))
                    st.rerun()
            if st.button("Add discount"):
                set_bill(editing.add_discount(bill))
                st.rerun()
        elif kind == "tax":
            bill = dict(bill, tax_percent=st.text_input("Tax (%)", value=field(bill["tax_percent"]), key=k("tax")))
        elif kind == "tip":
            bill = dict(bill, tip_percent=st.text_input("Tip (%)", value=field(bill["tip_percent"]), key=k("tip")))
        else:
            bill = dict(bill, delivery_fee=st.text_input("Delivery fee", value=field(bill["delivery_fee"]), key=k("delivery")))

    set_bill(bill)
    result = compute_split(BillIn.model_validate(bill).model_dump_json())
    bd = result["breakdown"]

    # Summary
    st.header("Summary")
    st.write(f"Subtotal: {money(result['subtotal'])}")
    for idx, (d, cut) in enumerate(zip(bill["global_discounts"], bd["discounts"]), start=1):
        st.write(f"Discount #{idx} ({d['percent']}%): -{money(cut)}")
    if "tax" in bill["active_adjustments"]:
        st.write(f"Tax: {money(bd['tax'])}")
    if "tip" in bill["active_adjustments"]:
        st.write(f"Tip: {money(bd['tip'])}")
    if "delivery" in bill["active_adjustments"]:
        st.write(f"Delivery: {money(bd['delivery'])}")
    st.subheader(f"Total: {money(result['total'])}")
    if result["unassigned"] > 0:
        st.warning(f"{money(result['unassigned'])} of items is not assigned to anyone.")

    table = pd.DataFrame([{
        "Person": participant_label(p, pos),
        "Paid": money(p["paid"]),
        "Share": money(result["shares"][p["id"]]),
        "Balance": money(result["balances"][p["id"]]),
        "Status": "settled" if is_settled(result["balances"][p["id"]]) else "",
    } for pos, p in enumerate(result["people"], start=1)])
    st.dataframe(table)
    st.write(f"Total paid: {money(result['total_paid'])}")
    gap = result["payment_gap"]
    if abs(gap) > SETTLE_TOLERANCE:
        side = "more" if gap > 0 else "less"
        st.warning(f"Total paid is {money(abs(gap))} {side} than the bill total.")

    st.subheader("Settlements")
    if not result["settlements"]:
        st.success("All settled!")
    for frm, to, amount in result["settlements"]:
        st.write(f"{frm} pays {to} {money(amount)}")

if st.session_state.page == "history":
    history_page()
else:
    splitter_page()
