"""MongoDB persistence for users, sessions, current tallies and reports.

Each entity lives in a single document and every write here is a single
document operation, so a failed write leaves the previous state intact.
"""

import logging
import re
import secrets
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple, Union

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import create_document
from errors import StorageError
from schemas import DailyTally, Report, User

logger = logging.getLogger(__name__)

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

IdLike = Union[str, ObjectId]


def as_oid(value: IdLike) -> ObjectId:
    return value if isinstance(value, ObjectId) else ObjectId(value)


def _aware(dt: datetime) -> datetime:
    # pymongo hands back naive UTC datetimes unless the client is tz_aware
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


@contextmanager
def _storage(action: str):
    try:
        yield
    except PyMongoError as exc:
        logger.error("Storage failure while %s: %s", action, exc)
        raise StorageError(f"Storage failure while {action}") from exc


class TallyStore:
    def __init__(self, database):
        if database is None:
            raise StorageError("Database not available. Check DATABASE_URL and DATABASE_NAME.")
        self.db = database

    def ensure_indexes(self) -> None:
        with _storage("creating indexes"):
            self.db["user"].create_index("phone", unique=True)
            self.db["session"].create_index("token", unique=True)
            self.db["session"].create_index("expires_at", expireAfterSeconds=0)
            self.db["report"].create_index(
                [("user_id", ASCENDING), ("date", ASCENDING)], unique=True
            )

    # Users
    def create_user(self, phone: str, pin_hash: str, pin_salt: str, today: Optional[DailyTally] = None) -> str:
        user = User(phone=phone, pin_hash=pin_hash, pin_salt=pin_salt, today=today, tally_rev=0)
        with _storage("creating user"):
            try:
                return create_document("user", user, self.db)
            except DuplicateKeyError as exc:
                raise StorageError(f"User {phone} already exists") from exc

    def find_user_by_phone(self, phone: str) -> Optional[dict]:
        with _storage("looking up user"):
            return self.db["user"].find_one({"phone": phone})

    def get_user(self, user_id: IdLike) -> Optional[dict]:
        with _storage("loading user"):
            return self.db["user"].find_one({"_id": as_oid(user_id)})

    # Sessions
    def create_session(self, user_id: IdLike, ttl: timedelta) -> str:
        token = secrets.token_urlsafe(32)
        now = datetime.now(timezone.utc)
        with _storage("creating session"):
            self.db["session"].insert_one({
                "user_id": as_oid(user_id),
                "token": token,
                "created_at": now,
                "expires_at": now + ttl,
            })
        return token

    def resolve_session(self, token: str) -> Optional[dict]:
        """Return the user owning ``token``, or ``None`` if it is unknown or expired."""
        with _storage("resolving session"):
            session = self.db["session"].find_one({"token": token})
            if not session:
                return None
            if _aware(session["expires_at"]) <= datetime.now(timezone.utc):
                self.db["session"].delete_one({"_id": session["_id"]})
                return None
            return self.db["user"].find_one({"_id": session["user_id"]})

    def delete_session(self, token: str) -> None:
        with _storage("deleting session"):
            self.db["session"].delete_one({"token": token})

    # Current tally
    def get_current_tally(self, user: dict) -> Tuple[Optional[DailyTally], int]:
        """Return the user's stored tally and the revision it was read at."""
        raw = user.get("today")
        tally = DailyTally.model_validate(raw) if raw else None
        return tally, user.get("tally_rev", 0)

    def save_current_tally(self, user_id: IdLike, tally: DailyTally, expected_rev: int) -> int:
        """Replace the current tally if nobody wrote it since ``expected_rev`` was read.

        Returns the new revision. Raises ``StorageError`` on a lost race.
        """
        query = {"_id": as_oid(user_id)}
        query["tally_rev"] = expected_rev if expected_rev else {"$in": [0, None]}
        with _storage("saving current tally"):
            result = self.db["user"].update_one(
                query,
                {
                    "$set": {"today": tally.model_dump(), "updated_at": datetime.now(timezone.utc)},
                    "$inc": {"tally_rev": 1},
                },
            )
        if result.matched_count == 0:
            logger.warning("Write conflict on current tally for user %s at rev %s", user_id, expected_rev)
            raise StorageError("Write conflict on current tally, retry the request")
        return expected_rev + 1

    # Reports
    def upsert_report(self, report: Report) -> dict:
        """Create or fully replace the report for ``(report.user_id, report.date)``."""
        key = {"user_id": as_oid(report.user_id), "date": report.date}
        now = datetime.now(timezone.utc)
        with _storage("saving report"):
            self.db["report"].update_one(
                key,
                {
                    "$set": {
                        "items": [it.model_dump() for it in report.items],
                        "total_qty": report.total_qty,
                        "total_amount": report.total_amount,
                        "updated_at": now,
                    },
                    "$setOnInsert": {"created_at": now},
                },
                upsert=True,
            )
            return self.db["report"].find_one(key)

    def list_reports(self, user_id: IdLike) -> List[dict]:
        with _storage("listing reports"):
            return list(
                self.db["report"].find({"user_id": as_oid(user_id)}).sort("date", DESCENDING)
            )

    def delete_report(self, user_id: IdLike, key: str) -> int:
        """Delete one report by id or by ``YYYY-MM-DD`` date. Unknown keys delete nothing."""
        query = {"user_id": as_oid(user_id)}
        if DATE_RE.match(key):
            query["date"] = key
        elif ObjectId.is_valid(key):
            query["_id"] = ObjectId(key)
        else:
            return 0
        with _storage("deleting report"):
            return self.db["report"].delete_one(query).deleted_count
