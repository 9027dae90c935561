import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr
from pymongo.database import Database

from database import USERS, create_document, get_db, utcnow
from errors import BadRequest, Conflict, Unauthorized
from routes.common import ok
from schemas import AdminAccount
from security import (
    admin_profile,
    check_password_policy,
    get_current_admin,
    get_password_hash,
    token_for,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class RegisterBody(BaseModel):
    name: Optional[str] = None
    surname: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class LoginBody(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


@router.post("/register", status_code=201)
def register(body: RegisterBody, db: Database = Depends(get_db)):
    if not (body.name and body.surname and body.email and body.password):
        raise BadRequest("Please provide name, surname, email and password")
    check_password_policy(body.password)

    email = body.email.lower().strip()
    if db[USERS].find_one({"email": email}):
        raise Conflict("Email already registered")

    model = AdminAccount(
        name=body.name.strip(),
        surname=body.surname.strip(),
        email=email,
        password=get_password_hash(body.password),
    )
    admin_id = create_document(db, USERS, model)
    admin = db[USERS].find_one({"email": email})
    logger.info("Admin created: %s (%s)", email, admin_id)
    return ok(message="Registration successful", token=token_for(admin), admin=admin_profile(admin))


@router.post("/login")
def login(body: LoginBody, db: Database = Depends(get_db)):
    if not body.email or not body.password:
        raise BadRequest("Email and password are required")

    account = db[USERS].find_one({"email": body.email.lower().strip()})
    if not account or account.get("role") != "admin" or not verify_password(body.password, account.get("password")):
        raise Unauthorized("Invalid credentials")

    db[USERS].update_one(
        {"_id": account["_id"]},
        {"$set": {"account_activity.last_login": utcnow()}, "$inc": {"account_activity.login_count": 1}},
    )
    logger.info("Login successful: %s", account["email"])
    return ok(message="Login successful", token=token_for(account), admin=admin_profile(account))


@router.get("/verify")
def verify(admin=Depends(get_current_admin)):
    return ok(admin=admin_profile(admin))
