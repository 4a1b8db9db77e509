"""
Path resolution for vault notes.

Every path returned here is relative to the vault root (PurePosixPath), so
notes and links stay valid when the vault is moved.
"""
import datetime as dt
import re
import threading
from pathlib import Path, PurePosixPath

from errors import AmbiguousSession, InvalidDate

INDEX_KINDS = ("sessions", "weeks", "overview")

_UNSAFE_CHARS = re.compile(r'[/\\:*?"<>|\s]')
_LINK_UNSAFE = re.compile(r"[|\[\]\n]+")


def sanitize_filename(raw: str) -> str:
    """Replace characters that are unsafe in file names."""
    return _UNSAFE_CHARS.sub("_", str(raw).strip())


def parse_day(value) -> dt.date:
    """Accept a date, datetime or YYYY-MM-DD string."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value).strip())
    except ValueError:
        raise InvalidDate(f"Not a valid calendar date: {value!r}")


def iso_week_of(day) -> tuple[int, int]:
    """(iso_year, iso_week) for a date; weeks start on Monday."""
    iso = parse_day(day).isocalendar()
    return iso[0], iso[1]


def week_bounds(iso_year: int, iso_week: int) -> tuple[dt.date, dt.date]:
    """Monday and Sunday of an ISO week."""
    try:
        monday = dt.date.fromisocalendar(iso_year, iso_week, 1)
    except ValueError:
        raise InvalidDate(f"Not a valid ISO week: {iso_year}-W{iso_week}")
    return monday, monday + dt.timedelta(days=6)


def week_days(iso_year: int, iso_week: int) -> list[dt.date]:
    monday, _ = week_bounds(iso_year, iso_week)
    return [monday + dt.timedelta(days=i) for i in range(7)]


class PathResolver:
    """
    Builds vault-relative paths for daily, session, weekly and index notes.

    Session paths are claimed per resolver instance: a second, different
    session landing on an already claimed path raises AmbiguousSession
    instead of silently overwriting the first one.
    """

    def __init__(self, root_folder: str = "ScreenAnalyzer"):
        self.root = PurePosixPath(root_folder) if root_folder else PurePosixPath()
        self._claims: dict[PurePosixPath, tuple] = {}
        self._lock = threading.Lock()

    def resolve_daily(self, day) -> PurePosixPath:
        day = parse_day(day)
        return self.root / "Daily" / f"{day.isoformat()}.md"

    def resolve_session(self, day, start: dt.datetime, end: dt.datetime,
                        session_id) -> PurePosixPath:
        day = parse_day(day)
        date_text = day.isoformat()
        filename = "{}_{}-{}_session-{}.md".format(
            date_text,
            sanitize_filename(start.strftime("%H%M")),
            sanitize_filename(end.strftime("%H%M")),
            sanitize_filename(session_id),
        )
        path = self.root / "Sessions" / date_text / filename

        owner = (str(session_id), start, end)
        with self._lock:
            claimed = self._claims.get(path)
            if claimed is not None and claimed != owner:
                raise AmbiguousSession(
                    f"Session {session_id} resolves to {path}, already used by session {claimed[0]}"
                )
            self._claims[path] = owner
        return path

    def resolve_weekly(self, iso_year: int, iso_week: int) -> PurePosixPath:
        week_bounds(iso_year, iso_week)
        return self.root / "Weekly" / f"{iso_year:04d}-W{iso_week:02d}.md"

    def resolve_index(self, kind: str, period: tuple[int, int] | None = None) -> PurePosixPath:
        """
        Index note path.

        Args:
            kind: 'sessions' (period = (year, month)), 'weeks'
                (period = (iso_year, iso_week)) or 'overview' (no period)
        """
        if kind == "overview":
            return self.root / "Index" / "overview.md"
        if kind not in INDEX_KINDS or period is None:
            raise ValueError(f"Unknown index kind or missing period: {kind} {period}")

        year, part = period
        if kind == "sessions":
            if not 1 <= part <= 12:
                raise InvalidDate(f"Not a valid month: {year}-{part}")
            return self.root / "Index" / f"sessions-{year:04d}-{part:02d}.md"

        week_bounds(year, part)
        return self.root / "Index" / f"weeks-{year:04d}-W{part:02d}.md"

    def assets_dir(self, day) -> PurePosixPath:
        return self.root / "Assets" / parse_day(day).isoformat()

    def resolve_asset(self, day, name: str) -> PurePosixPath:
        return self.assets_dir(day) / sanitize_filename(name)

    @staticmethod
    def absolute(vault_path: str | Path, relative: PurePosixPath) -> Path:
        return Path(vault_path).expanduser().joinpath(*relative.parts)

    @staticmethod
    def link(relative: PurePosixPath, display: str = None) -> str:
        """Wiki-link to a note, e.g. [[ScreenAnalyzer/Daily/2025-01-15|2025-01-15]]."""
        target = str(relative.with_suffix("")) if relative.suffix == ".md" else str(relative)
        # | and brackets would end the alias early
        display = " ".join(_LINK_UNSAFE.sub(" ", display or "").split())
        if display:
            return f"[[{target}|{display}]]"
        return f"[[{target}]]"
