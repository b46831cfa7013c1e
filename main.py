from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session, select, SQLModel, create_engine
from typing import Any, Dict
import logging
import time
import uuid

import config
from models import Bill, BillIn
from compute import split_bill, round2

config.configure_logging()
logger = logging.getLogger(__name__)

engine = create_engine(config.DATABASE_URL, echo=config.SQL_ECHO)

app = FastAPI(title="Split Bill API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=["Content-Length"],
    max_age=600,
)

def create_db_and_tables():
    SQLModel.metadata.create_all(engine)

@app.on_event("startup")
def on_startup():
    create_db_and_tables()

def get_session():
    with Session(engine) as session:
        yield session

@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - started) * 1000
    logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed)
    return response

def failure(message: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)

def new_bill_key() -> str:
    return f"bill_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"

def bill_value(bill: Bill) -> Dict[str, Any]:
    """Stored record plus the server-side fields, as returned to callers."""
    value = dict(bill.value or {})
    value["total_amount"] = str(bill.total_amount)
    value["created_at"] = bill.created_at.isoformat()
    return value

def format_result(result: Dict[str, Any]) -> Dict[str, Any]:
    money = lambda d: str(round2(d))
    bd = result["breakdown"]
    return {
        "subtotal": money(result["subtotal"]),
        "total": money(result["total"]),
        "total_paid": money(result["total_paid"]),
        "payment_gap": money(result["payment_gap"]),
        "unassigned": money(result["unassigned"]),
        "breakdown": {
            "discounts": [money(d) for d in bd["discounts"]],
            "after_discount": money(bd["after_discount"]),
            "tax": money(bd["tax"]),
            "tip": money(bd["tip"]),
            "delivery": money(bd["delivery"]),
        },
        "shares": {k: money(v) for k, v in result["shares"].items()},
        "balances": {k: money(v) for k, v in result["balances"].items()},
        "settlements": [{"from": s[0], "to": s[1], "amount": money(s[2])} for s in result["settlements"]],
    }

@app.get("/health")
def health_check():
    return {"status": "ok"}

# ========== Split endpoint ==========
@app.post("/split")
def split(payload: BillIn):
    return format_result(split_bill(payload.model_dump()))

# ========== Bill history endpoints ==========
@app.post("/bills")
def create_bill(payload: BillIn, session: Session = Depends(get_session)):
    result = split_bill(payload.model_dump())
    try:
        bill = Bill(
            key=new_bill_key(),
            bill_name=payload.bill_name,
            value=payload.model_dump(mode="json"),
            total_amount=round2(result["total"]),
        )
        session.add(bill)
        session.commit()
        session.refresh(bill)
    except Exception as e:
        session.rollback()
        logger.exception("Error saving bill")
        return failure(str(e))
    logger.info("Saved bill %s (%r)", bill.key, bill.bill_name)
    return {"success": True, "bill_id": bill.key}

@app.get("/bills")
def list_bills(session: Session = Depends(get_session)):
    try:
        bills = session.exec(select(Bill).order_by(Bill.created_at.desc())).all()
    except Exception as e:
        logger.exception("Error fetching bills")
        return failure(str(e))
    return {"success": True, "bills": [{"key": b.key, "value": bill_value(b)} for b in bills]}

@app.get("/bills/{bill_id}")
def get_bill(bill_id: str, session: Session = Depends(get_session)):
    try:
        bill = session.get(Bill, bill_id)
    except Exception as e:
        logger.exception("Error fetching bill %s", bill_id)
        return failure(str(e))
    if bill is None:
        return failure("Bill not found", status_code=404)
    return {"success": True, "bill": bill_value(bill)}

@app.delete("/bills/{bill_id}")
def delete_bill(bill_id: str, session: Session = Depends(get_session)):
    try:
        bill = session.get(Bill, bill_id)
        if bill is not None:
            session.delete(bill)
            session.commit()
    except Exception as e:
        session.rollback()
        logger.exception("Error deleting bill %s", bill_id)
        return failure(str(e))
    logger.info("Deleted bill %s", bill_id)
    return {"success": True}
