"""
Capture store access.

The capture pipeline owns session data; the exporter only needs
"sessions for date" and "sessions for ISO week". JsonSessionStore reads the
pipeline's per-day JSON dumps from data/sessions/<YYYY-MM-DD>.json.
"""
import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from models import Session
from paths import parse_day, week_days

logger = logging.getLogger("screen_analyzer.store")

DATA_DIR = Path("data")


class StoreError(Exception):
    """Session data could not be loaded."""


class SessionStore(Protocol):
    def sessions_for_date(self, day) -> list[Session]:
        ...

    def sessions_for_week(self, iso_year: int, iso_week: int) -> list[Session]:
        ...


class JsonSessionStore:
    """Reads sessions from one JSON file per day."""

    def __init__(self, data_dir: Path | str = DATA_DIR):
        self.sessions_dir = Path(data_dir) / "sessions"

    def sessions_for_date(self, day) -> list[Session]:
        day = parse_day(day)
        file_path = self.sessions_dir / f"{day.isoformat()}.json"
        if not file_path.exists():
            return []

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Error loading {file_path}: {e}")

        items = raw.get("sessions", []) if isinstance(raw, dict) else raw
        sessions = []
        for item in items:
            try:
                sessions.append(Session.model_validate({"date": day.isoformat(), **item}))
            except ValidationError as e:
                raise StoreError(f"Invalid session in {file_path}: {e.errors()[0]['msg']}")

        logger.debug("Loaded %d sessions for %s", len(sessions), day)
        return sessions

    def sessions_for_week(self, iso_year: int, iso_week: int) -> list[Session]:
        sessions = []
        for day in week_days(iso_year, iso_week):
            sessions.extend(self.sessions_for_date(day))
        return sessions

    def save_sessions(self, day, sessions: list[Session]) -> Path:
        """Write sessions for a day (used by capture tooling and tests)."""
        day = parse_day(day)
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        file_path = self.sessions_dir / f"{day.isoformat()}.json"
        payload = [s.model_dump(mode="json") for s in sessions]
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2)
        return file_path
