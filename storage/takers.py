"""
Taker directory: credential check and attempt permission
Stored as JSON next to the question bank
"""

import bcrypt
import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from core.models import Taker
from config.settings import TAKERS_FILE

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash a plain text password with a fresh bcrypt salt"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """Check a password against a stored hash; malformed hashes never match"""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


class TakerDirectory:
    """
    Maps a username/password credential to a Taker
    Passwords are kept as bcrypt hashes
    """

    def __init__(self, filepath: Path = TAKERS_FILE):
        self.filepath = Path(filepath)

    def _load(self) -> Dict[str, Dict]:
        if not self.filepath.exists():
            return {}
        with open(self.filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
        return {row["username"]: row for row in data.get("takers", [])}

    def _save(self, rows: Dict[str, Dict]):
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "updated_at": datetime.now().isoformat(),
            "takers": list(rows.values()),
        }
        with open(self.filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    @staticmethod
    def _to_taker(row: Dict) -> Taker:
        return Taker(
            id=row["id"],
            username=row["username"],
            can_attempt=bool(row.get("can_attempt", False)),
        )

    def authenticate(self, username: str, password: str) -> Optional[Taker]:
        """Return the Taker for valid credentials, or None"""
        row = self._load().get((username or "").strip())
        if row is None or not verify_password(password or "", row.get("password_hash", "")):
            logger.info(f"Failed login for username={username!r}")
            return None
        logger.info(f"Taker {row['id']} logged in")
        return self._to_taker(row)

    def add_taker(self, username: str, password: str, can_attempt: bool = True) -> Taker:
        """Create a taker, or reset the password of an existing one"""
        rows = self._load()
        row = rows.get(username) or {"id": uuid.uuid4().hex, "username": username}
        row["password_hash"] = hash_password(password)
        row["can_attempt"] = can_attempt
        rows[username] = row
        self._save(rows)
        logger.info(f"Saved taker {username} (can_attempt={can_attempt})")
        return self._to_taker(row)

    def set_access(self, username: str, can_attempt: bool) -> Optional[Taker]:
        rows = self._load()
        row = rows.get(username)
        if row is None:
            return None
        row["can_attempt"] = can_attempt
        self._save(rows)
        return self._to_taker(row)

    def get(self, username: str) -> Optional[Taker]:
        row = self._load().get(username)
        return self._to_taker(row) if row else None

    def list_takers(self) -> List[Taker]:
        return [self._to_taker(row) for row in self._load().values()]
