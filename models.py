"""
Pydantic models for screen-activity export.

Session and TimelineSegment come from the capture pipeline and are read-only
here. Summaries, index entries and results are derived per export call.
"""
import datetime as dt
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def minutes_between(start: dt.datetime, end: dt.datetime) -> int:
    """Whole minutes from start to end, never negative."""
    return max(int((end - start).total_seconds() // 60), 0)


# =============================================================================
# CAPTURE RECORDS
# =============================================================================

class TimelineSegment(BaseModel):
    """A categorized stretch of activity inside a session."""
    model_config = ConfigDict(frozen=True)

    start: dt.datetime
    end: dt.datetime
    category: str = Field(default="other", description="Raw category label from capture")
    duration_minutes: Optional[int] = Field(
        default=None, description="Reported duration; end - start is used when missing"
    )
    title: str = ""
    summary: str = ""

    @property
    def minutes(self) -> int:
        if self.duration_minutes is None or self.duration_minutes < 0:
            return minutes_between(self.start, self.end)
        return self.duration_minutes


class Session(BaseModel):
    """A captured work session on one device."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique within its date")
    date: dt.date
    start: dt.datetime
    end: dt.datetime
    tags: frozenset[str] = frozenset()
    category: str = "other"
    title: str = ""
    summary: str = ""
    video_path: Optional[str] = None
    preview_assets: list[str] = Field(
        default_factory=list, description="Screenshot/thumbnail paths, capture order"
    )
    segments: list[TimelineSegment] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return str(value)

    @property
    def duration_minutes(self) -> int:
        return minutes_between(self.start, self.end)


# =============================================================================
# SUMMARIES
# =============================================================================

SummaryState = Literal["ok", "no-data"]


class SessionMetrics(BaseModel):
    """Fragmentation metrics for a single session."""
    segment_count: int = 0
    context_switches: int = 0
    avg_segment_minutes: int = 0
    fragmentation_level: Literal["low", "medium", "high"] = "low"


class DailySummary(BaseModel):
    """Per-day statistics rendered into the Daily note."""
    date: dt.date
    session_count: int = 0
    total_minutes: int = 0
    tracked_minutes: int = 0
    focus_score: int = 0
    effort_score: int = 0
    productivity_score: int = 0
    top_categories: list[str] = Field(default_factory=list)
    summary: str = ""
    state: SummaryState = "no-data"


class WeekSummary(BaseModel):
    """Statistics for one ISO week (Monday to Sunday)."""
    iso_year: int
    iso_week: int
    week_start: dt.date
    week_end: dt.date
    total_minutes: int = 0
    total_sessions: int = 0
    avg_session_minutes: int = 0
    tracked_minutes: int = 0
    focus_minutes: int = 0
    distraction_minutes: int = 0
    communication_minutes: int = 0
    focus_ratio: int = 0
    distraction_ratio: int = 0
    focus_score: int = 0
    effort_score: int = 0
    productivity_score: int = 0
    focus_weight: int = 70
    effort_weight: int = 30
    target_minutes: int = 2400
    top_categories: list[str] = Field(default_factory=list)
    category_minutes: dict[str, int] = Field(default_factory=dict)
    bucket_minutes: dict[str, int] = Field(default_factory=dict)
    state: SummaryState = "no-data"

    @property
    def label(self) -> str:
        return f"{self.iso_year:04d}-W{self.iso_week:02d}"

    @property
    def top_categories_text(self) -> str:
        return ", ".join(self.top_categories)


# =============================================================================
# INDEX ENTRIES
# =============================================================================

class IndexRow(BaseModel):
    """One session line inside an index section."""
    session_id: str
    link: str
    start: str
    end: str
    minutes: int
    category: str


class IndexEntry(BaseModel):
    """
    A dated section inside an index note.

    The note itself is keyed by (year, month) for the sessions index and
    (iso_year, iso_week) for the weeks index; `key` names the section.
    """
    kind: Literal["sessions", "weeks"]
    period: tuple[int, int]
    key: str
    daily_link: str
    rows: list[IndexRow] = Field(default_factory=list)

    @property
    def session_count(self) -> int:
        return len(self.rows)

    @property
    def minutes(self) -> int:
        return sum(row.minutes for row in self.rows)


# =============================================================================
# EXPORT RESULTS
# =============================================================================

class ExportState(str, Enum):
    IDLE = "idle"
    EXPORTING = "exporting"
    SUCCESS = "success"
    FAILED = "failed"


class ExportStep(str, Enum):
    VALIDATE_CONFIG = "validate_config"
    LOAD_SESSIONS = "load_sessions"
    DAILY_SUMMARY = "daily_summary"
    DAILY_NOTE = "daily_note"
    SESSION_NOTES = "session_notes"
    WEEK_SUMMARY = "week_summary"
    WEEKLY_NOTE = "weekly_note"
    SESSIONS_INDEX = "sessions_index"
    WEEKS_INDEX = "weeks_index"
    OVERVIEW = "overview"


class ErrorRecord(BaseModel):
    """A failure recorded during export."""
    kind: str
    step: ExportStep
    message: str
    path: Optional[str] = None


class ExportResult(BaseModel):
    """Outcome of one export_day call, including partial failures."""
    date: Optional[dt.date] = None
    state: ExportState = ExportState.IDLE
    written_paths: list[str] = Field(default_factory=list)
    completed_steps: list[ExportStep] = Field(default_factory=list)
    week_summary: Optional[WeekSummary] = None
    errors: list[ErrorRecord] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == ExportState.SUCCESS

    @property
    def busy(self) -> bool:
        return any(err.kind == "busy" for err in self.errors)

    def render_message(self) -> str:
        """Human-readable summary for CLI and UI display."""
        day = self.date.isoformat() if self.date else "-"
        lines = [f"Export {self.state.value} for {day}",
                 f"Files written: {len(self.written_paths)}"]
        for path in self.written_paths:
            lines.append(f"- {path}")
        if self.week_summary:
            lines.append(
                f"Week {self.week_summary.label}: {self.week_summary.total_sessions} sessions, "
                f"productivity {self.week_summary.productivity_score}/100"
            )
        if self.errors:
            lines.append("")
            lines.append("Warnings:")
            for err in self.errors:
                where = f" ({err.path})" if err.path else ""
                lines.append(f"- [{err.step.value}] {err.kind}: {err.message}{where}")
        return "\n".join(lines)


class PreviewData(BaseModel):
    """
    Read-only snapshot for a presentation layer.

    Defaults: enabled=False, vault_path="" (not configured), generated_paths=[]
    (nothing would be written), week_summary=None (no week computed),
    state=IDLE, message="" (no notice).
    """
    enabled: bool = False
    vault_path: str = ""
    generated_paths: list[str] = Field(default_factory=list)
    week_summary: Optional[WeekSummary] = None
    state: ExportState = ExportState.IDLE
    message: str = ""
