import logging
from typing import Any, Optional, TypeVar

from fastapi import Body, Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal, init_db
from models import Profile, Transaction
from schemas import BudgetIn, CredentialsIn, ProfileIn, ProfilePictureIn, TransactionIn
from services import (
    BudgetExceeded,
    InvalidCredentials,
    LedgerNotFound,
    LedgerService,
    ProfileNotFound,
    ProfileService,
    TransactionService,
    UserService,
    cents_to_units,
)
from tokens import InvalidToken, verify_token


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()

app = FastAPI(title="Finance Tracker", version=APP_VERSION)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.on_event("startup")
def startup_event():
    init_db()
    logger.info(f"startup: version={APP_VERSION}")


def current_username(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        claims = verify_token(credentials.credentials)
    except InvalidToken as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    return str(claims["username"])


def parse_payload(model: type[ModelT], payload: Any) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(part) for part in first.get("loc", ()))
        detail = f"{where}: {first['msg']}" if where else first["msg"]
        raise HTTPException(status_code=400, detail=detail) from exc


def transaction_to_dict(txn: Transaction) -> dict[str, object]:
    return {
        "id": txn.id,
        "username": txn.username,
        "description": txn.description,
        "amount": cents_to_units(txn.amount_cents),
        "type": txn.type.value,
        "category": txn.category,
        "date": txn.date.isoformat(),
    }


def profile_to_dict(profile: Profile) -> dict[str, object]:
    return {
        "username": profile.username,
        "name": profile.name,
        "email": profile.email,
        "profilePic": profile.profile_pic,
        "bio": profile.bio,
    }


def category_summary(balances_cents: dict[str, int]) -> dict[str, float]:
    return {name: cents_to_units(cents) for name, cents in balances_cents.items()}


@app.get("/api/health")
def health():
    return {"status": "ok", "version": APP_VERSION}


@app.post("/api/register")
def register(payload: Any = Body(...), db: Session = Depends(get_db)):
    data = parse_payload(CredentialsIn, payload)
    try:
        UserService(db).register(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"message": "User registered successfully"}


@app.post("/api/login")
def login(payload: Any = Body(...), db: Session = Depends(get_db)):
    data = parse_payload(CredentialsIn, payload)
    try:
        token = UserService(db).login(data)
    except InvalidCredentials as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"token": token}


@app.get("/profile")
def get_profile(
    username: str = Depends(current_username), db: Session = Depends(get_db)
):
    try:
        profile = ProfileService(db, username).get()
    except ProfileNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return profile_to_dict(profile)


@app.put("/profile")
def update_profile(
    payload: Any = Body(...),
    username: str = Depends(current_username),
    db: Session = Depends(get_db),
):
    data = parse_payload(ProfileIn, payload)
    profile = ProfileService(db, username).upsert(data)
    return {"message": "Profile updated successfully", "profile": profile_to_dict(profile)}


@app.put("/profile/picture")
def update_profile_picture(
    payload: Any = Body(...),
    username: str = Depends(current_username),
    db: Session = Depends(get_db),
):
    data = parse_payload(ProfilePictureIn, payload)
    profile = ProfileService(db, username).set_picture(data)
    return {"message": "Profile picture updated", "profile": profile_to_dict(profile)}


@app.post("/transaction")
def add_transaction(
    payload: Any = Body(...),
    username: str = Depends(current_username),
    db: Session = Depends(get_db),
):
    data = parse_payload(TransactionIn, payload)
    try:
        txn = TransactionService(db, username).submit(data)
    except BudgetExceeded as exc:
        raise HTTPException(
            status_code=400,
            detail={"error": str(exc), "remaining": exc.remaining},
        ) from exc
    except LedgerNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "message": "Transaction added successfully",
        "transaction": transaction_to_dict(txn),
    }


@app.get("/transactions")
def list_transactions(
    username: str = Depends(current_username), db: Session = Depends(get_db)
):
    items = TransactionService(db, username).list_for_user()
    return [transaction_to_dict(txn) for txn in items]


@app.get("/report")
def get_report(
    username: str = Depends(current_username), db: Session = Depends(get_db)
):
    try:
        report = LedgerService(db, username).snapshot_report()
    except LedgerNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        "totalIncome": cents_to_units(report.total_income_cents),
        "totalExpense": cents_to_units(report.total_expense_cents),
        "netBalance": cents_to_units(report.net_balance_cents),
        "categorySummary": category_summary(report.category_summary_cents),
    }


@app.post("/budget")
def set_budget(
    payload: Any = Body(...),
    username: str = Depends(current_username),
    db: Session = Depends(get_db),
):
    data = parse_payload(BudgetIn, payload)
    try:
        balances = LedgerService(db, username).set_budget(data)
    except LedgerNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        "message": f"Budget for {data.category} set to {data.limit}",
        "categoryBalance": category_summary(balances),
    }


@app.get("/budget")
def get_budget(
    username: str = Depends(current_username), db: Session = Depends(get_db)
):
    try:
        balances = LedgerService(db, username).get_budget()
    except LedgerNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return category_summary(balances)
