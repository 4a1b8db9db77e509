"""
Shared pytest fixtures for vault exporter tests.
"""
import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Generator

import pytest

from config import VaultConfig
from models import Session, TimelineSegment
from paths import week_days


class MemorySessionStore:
    """In-memory SessionStore keyed by date."""

    def __init__(self, sessions=None):
        self.by_date = {}
        for session in sessions or []:
            self.by_date.setdefault(session.date, []).append(session)

    def sessions_for_date(self, day):
        return list(self.by_date.get(day, []))

    def sessions_for_week(self, iso_year, iso_week):
        sessions = []
        for day in week_days(iso_year, iso_week):
            sessions.extend(self.by_date.get(day, []))
        return sessions


def make_session(session_id, day=date(2025, 1, 15), start=(9, 0), end=(10, 0),
                 category="work", **kwargs) -> Session:
    return Session(
        id=session_id,
        date=day,
        start=datetime(day.year, day.month, day.day, *start),
        end=datetime(day.year, day.month, day.day, *end),
        category=category,
        **kwargs,
    )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def vault_dir(temp_dir) -> Path:
    vault = temp_dir / "vault"
    vault.mkdir()
    return vault


@pytest.fixture
def vault_config(vault_dir) -> VaultConfig:
    """Enabled link-mode vault with default weights."""
    return VaultConfig(enabled=True, vault_path=str(vault_dir))


@pytest.fixture
def sample_config(vault_dir) -> dict:
    """Sample config.json contents with export switched on."""
    return {
        "data_dir": "data",
        "log_dir": "logs",
        "obsidian": {
            "enabled": True,
            "vault_path": str(vault_dir),
            "root_folder": "ScreenAnalyzer",
            "export_mode": "link",
            "include_screenshots": True,
            "include_video_link": True,
            "templates": {"daily": "", "session": "", "weekly": ""},
            "focus_weight": 70,
            "daily_target_minutes": 480,
            "weekly_target_minutes": 2400,
            "top_categories": 5,
            "max_workers": 2,
        },
    }


@pytest.fixture
def sample_session() -> Session:
    """Session 123 on 2025-01-15, 09:00-10:15, three timeline segments."""
    day = date(2025, 1, 15)
    return Session(
        id=123,
        date=day,
        start=datetime(2025, 1, 15, 9, 0),
        end=datetime(2025, 1, 15, 10, 15),
        category="work",
        title="Refactor exporter",
        summary="Split the export pipeline into steps",
        tags=["coding", "deep"],
        segments=[
            TimelineSegment(start=datetime(2025, 1, 15, 9, 0), end=datetime(2025, 1, 15, 9, 45),
                            category="work", title="Editor"),
            TimelineSegment(start=datetime(2025, 1, 15, 9, 45), end=datetime(2025, 1, 15, 10, 0),
                            category="communication", title="Chat"),
            TimelineSegment(start=datetime(2025, 1, 15, 10, 0), end=datetime(2025, 1, 15, 10, 15),
                            category="work", title="Editor"),
        ],
    )


@pytest.fixture
def screenshot_files(temp_dir) -> list[str]:
    """Three fake screenshots on disk, capture order."""
    shots = temp_dir / "captures"
    shots.mkdir()
    paths = []
    for i in range(3):
        path = shots / f"frame-{i}.png"
        path.write_bytes(b"\x89PNG" + bytes([i]))
        paths.append(str(path))
    return paths


@pytest.fixture
def memory_store(sample_session) -> MemorySessionStore:
    return MemorySessionStore([sample_session])
