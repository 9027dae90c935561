import logging
from typing import Optional

from pydantic import BaseModel
from pymongo.database import Database

from database import USERS, utcnow
from errors import BadRequest
from routes.common import find_or_404
from security import check_password_policy, get_password_hash, verify_password

logger = logging.getLogger(__name__)


class PasswordBody(BaseModel):
    new_password: Optional[str] = None
    current_password: Optional[str] = None


def change_password(db: Database, account_id: str, body: PasswordBody, role: str, not_found: str) -> None:
    """Set a new password for an account of `role`; current_password is checked only when given."""
    check_password_policy(body.new_password)
    account = find_or_404(db, USERS, account_id, not_found, {"role": role})
    if body.current_password and not verify_password(body.current_password, account.get("password")):
        raise BadRequest("Current password is incorrect")
    db[USERS].update_one(
        {"_id": account["_id"]},
        {"$set": {"password": get_password_hash(body.new_password), "updated_at": utcnow()}},
    )
    logger.info("Password updated for %s %s", role, account_id)
