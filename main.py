import os
import logging
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import FastAPI, Depends, Header, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog import Catalog, get_catalog
from database import db
from errors import AuthError, PayloadValidationError, StorageError, TallyError
from reconciler import close_day, derive_report, reconcile, update_today
from schemas import DailyTally, LoginPayload, UpdateTodayRequest
from security import verify_pin
from store import TallyStore

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger("tally-backend")

SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", "30"))

app = FastAPI(title="Tea shop tally API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error mapping

@app.exception_handler(TallyError)
async def tally_error_handler(request: Request, exc: TallyError):
    if isinstance(exc, AuthError):
        logger.warning("auth error on %s: %s", request.url.path, exc)
    elif isinstance(exc, StorageError):
        logger.error("storage error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid payload", "detail": jsonable_encoder(exc.errors())},
    )

@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"error": "Server error"})

# Dependencies

def get_store() -> TallyStore:
    return TallyStore(db)

def get_today() -> str:
    return date.today().isoformat()

def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None

def get_current_user(
    authorization: Optional[str] = Header(None),
    store: TallyStore = Depends(get_store),
) -> dict:
    token = _bearer_token(authorization)
    if not token:
        raise AuthError("No token")
    user = store.resolve_session(token)
    if not user:
        raise AuthError("Invalid token")
    return user

# Serializers

def ser_tally(tally: DailyTally) -> dict:
    return tally.model_dump()

def _iso(value) -> Optional[str]:
    return value.isoformat() if isinstance(value, datetime) else value

def ser_report(r: dict) -> dict:
    return {
        "_id": str(r["_id"]),
        "userId": str(r["user_id"]),
        "date": r["date"],
        "items": r.get("items", []),
        "totalQty": r.get("total_qty", 0),
        "totalAmount": r.get("total_amount", 0),
        "createdAt": _iso(r.get("created_at")),
        "updatedAt": _iso(r.get("updated_at")),
    }

def ser_reports(store: TallyStore, user_id) -> list:
    return [ser_report(r) for r in store.list_reports(user_id)]

# Routes: Health
@app.get("/")
def read_root():
    return {"message": "Tea shop tally API running"}

@app.get("/test")
def test_database():
    try:
        names = db.list_collection_names() if db is not None else []
        return {"status": "ok", "collections": names}
    except Exception as e:
        return {"status": "error", "error": str(e)}

# Routes: Auth
@app.post("/api/auth/login")
def login(payload: LoginPayload, store: TallyStore = Depends(get_store)):
    user = store.find_user_by_phone(payload.phone)
    if not user or not verify_pin(payload.pin, user["pin_hash"], user["pin_salt"]):
        logger.warning("failed login for %s", payload.phone)
        raise AuthError("Invalid credentials")
    token = store.create_session(user["_id"], timedelta(days=SESSION_TTL_DAYS))
    logger.info("user %s logged in", user["_id"])
    return {"token": token}

@app.get("/api/auth/me")
def me(user=Depends(get_current_user)):
    return {"_id": str(user["_id"]), "phone": user["phone"]}

@app.post("/api/auth/logout")
def logout(authorization: Optional[str] = Header(None), store: TallyStore = Depends(get_store)):
    token = _bearer_token(authorization)
    if token:
        store.delete_session(token)
    return {"ok": True}

# Routes: Tally
@app.get("/api/data")
def read_data(
    user=Depends(get_current_user),
    store: TallyStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    today: str = Depends(get_today),
):
    # read-only: a rolled-over tally is only returned, never written back
    stored, _ = store.get_current_tally(user)
    current = reconcile(stored, catalog, today)
    return {"today": ser_tally(current), "reports": ser_reports(store, user["_id"])}

@app.post("/api/today")
def save_today(
    payload: UpdateTodayRequest,
    user=Depends(get_current_user),
    store: TallyStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    today: str = Depends(get_today),
):
    as_of = payload.today.date or today
    if as_of != today:
        raise PayloadValidationError(f"Tally date {as_of} is not today ({today})")

    stored, rev = store.get_current_tally(user)
    updated = update_today(stored, payload.today.categories, catalog, as_of)
    store.save_current_tally(user["_id"], updated, rev)
    report = store.upsert_report(derive_report(str(user["_id"]), as_of, updated.categories))
    return {
        "ok": True,
        "today": ser_tally(updated),
        "updatedReport": ser_report(report),
        "reports": ser_reports(store, user["_id"]),
    }

@app.post("/api/close")
def close_today(
    user=Depends(get_current_user),
    store: TallyStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    today: str = Depends(get_today),
):
    stored, rev = store.get_current_tally(user)
    report, zeroed = close_day(stored, catalog, str(user["_id"]), today)
    # tally before report, so a write conflict leaves both untouched
    store.save_current_tally(user["_id"], zeroed, rev)
    store.upsert_report(report)
    logger.info(
        "user %s closed %s: qty=%s amount=%s",
        user["_id"], today, report.total_qty, report.total_amount,
    )
    return {"ok": True, "today": ser_tally(zeroed), "reports": ser_reports(store, user["_id"])}

# Routes: Reports
@app.get("/api/reports")
def list_reports(user=Depends(get_current_user), store: TallyStore = Depends(get_store)):
    return {"reports": ser_reports(store, user["_id"])}

@app.delete("/api/reports/{report_id}")
def delete_report(report_id: str, user=Depends(get_current_user), store: TallyStore = Depends(get_store)):
    deleted = store.delete_report(user["_id"], report_id)
    if deleted:
        logger.info("user %s deleted report %s", user["_id"], report_id)
    return {"ok": True}

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
