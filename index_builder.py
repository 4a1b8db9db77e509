"""
Upsert-only index notes.

The sessions index is one note per (year, month) and the weeks index one
note per (iso_year, iso_week). Inside each note every exported date owns a
marked section. An update rewrites only the section for the date being
exported; sections for other dates are carried over verbatim and the
header totals are recomputed from the section markers.
"""
import logging
import re
from pathlib import PurePosixPath

from errors import IOFailure
from models import IndexEntry, IndexRow, Session, WeekSummary
from paths import PathResolver, iso_week_of, parse_day, week_bounds
from renderer import Renderer

logger = logging.getLogger("screen_analyzer.index")

SECTION_RE = re.compile(
    r"<!-- section:(?P<key>\S+) sessions=(?P<sessions>\d+) minutes=(?P<minutes>\d+) -->\n"
    r"(?P<body>.*?)\n"
    r"<!-- /section:(?P=key) -->",
    re.DOTALL,
)


def parse_sections(text: str) -> dict[str, tuple[int, int, str]]:
    """Map section key -> (sessions, minutes, body) for an existing index note."""
    sections = {}
    for match in SECTION_RE.finditer(text or ""):
        sections[match.group("key")] = (
            int(match.group("sessions")),
            int(match.group("minutes")),
            match.group("body"),
        )
    return sections


def _table_cell(text: str) -> str:
    # a bare | would split the table cell
    return str(text).replace("|", "\\|").replace("\n", " ")


def render_section_body(entry: IndexEntry) -> str:
    lines = [f"### {entry.daily_link}"]
    if not entry.rows:
        lines.append("- No sessions recorded")
        return "\n".join(lines)

    lines.append("| Session | Start | End | Minutes | Category |")
    lines.append("| --- | --- | --- | --- | --- |")
    for row in entry.rows:
        lines.append(
            f"| {_table_cell(row.link)} | {row.start} | {row.end} | {row.minutes} "
            f"| {_table_cell(row.category)} |"
        )
    return "\n".join(lines)


def render_sections(sections: dict[str, tuple[int, int, str]]) -> str:
    blocks = []
    for key in sorted(sections):
        sessions, minutes, body = sections[key]
        blocks.append(
            f"<!-- section:{key} sessions={sessions} minutes={minutes} -->\n"
            f"{body}\n"
            f"<!-- /section:{key} -->"
        )
    return "\n\n".join(blocks) if blocks else "*No exported days yet.*"


class IndexBuilder:
    """Maintains the sessions, weeks and overview index notes."""

    def __init__(self, resolver: PathResolver, renderer: Renderer):
        self.resolver = resolver
        self.renderer = renderer

    def build_entry(self, kind: str, day, sessions: list[tuple[Session, PurePosixPath]]) -> IndexEntry:
        """Section for one date; rows sorted by date then start time."""
        day = parse_day(day)
        period = (day.year, day.month) if kind == "sessions" else iso_week_of(day)
        ordered = sorted(sessions, key=lambda pair: (pair[0].date, pair[0].start, pair[0].id))
        rows = [
            IndexRow(
                session_id=session.id,
                link=PathResolver.link(path, f"session-{session.id}"),
                start=session.start.strftime("%H:%M"),
                end=session.end.strftime("%H:%M"),
                minutes=session.duration_minutes,
                category=session.category,
            )
            for session, path in ordered
        ]
        daily_link = PathResolver.link(self.resolver.resolve_daily(day), day.isoformat())
        return IndexEntry(kind=kind, period=period, key=day.isoformat(),
                          daily_link=daily_link, rows=rows)

    def upsert(self, entry: IndexEntry, week: WeekSummary = None) -> PurePosixPath:
        """Replace the entry's section in its index note, keeping all others."""
        relative = self.resolver.resolve_index(entry.kind, entry.period)
        target = PathResolver.absolute(self.renderer.vault.vault_path, relative)

        existing = ""
        try:
            if target.exists():
                existing = target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise IOFailure(f"Cannot read index note: {e}", relative)

        sections = parse_sections(existing)
        sections[entry.key] = (entry.session_count, entry.minutes, render_section_body(entry))

        if entry.kind == "sessions":
            content = self._render_sessions_index(entry.period, sections)
        else:
            content = self._render_weeks_index(entry.period, sections, week)

        self.renderer.write(relative, content)
        logger.info("Updated %s index %s (section %s)", entry.kind, relative, entry.key)
        return relative

    def update_overview(self, day, week_label: str = None) -> PurePosixPath:
        day = parse_day(day)
        iso_year, iso_week = iso_week_of(day)
        daily = self.resolver.resolve_daily(day)
        weekly = self.resolver.resolve_weekly(iso_year, iso_week)
        week_index = self.resolver.resolve_index("weeks", (iso_year, iso_week))
        month_index = self.resolver.resolve_index("sessions", (day.year, day.month))

        links = "\n".join([
            f"- Latest day: {PathResolver.link(daily, day.isoformat())}",
            f"- This week: {PathResolver.link(weekly, week_label) if week_label else 'none'}",
            f"- Week index: {PathResolver.link(week_index)}",
            f"- Month index: {PathResolver.link(month_index)}",
        ])
        relative = self.resolver.resolve_index("overview")
        self.renderer.write(relative, self.renderer.render("overview", {}, {"links": links}))
        return relative

    def _render_sessions_index(self, period: tuple[int, int], sections: dict) -> str:
        year, month = period
        total_sessions = sum(s for s, _, _ in sections.values())
        total_minutes = sum(m for _, m, _ in sections.values())
        label = f"{year:04d}-{month:02d}"
        return self.renderer.render(
            "sessions_index",
            {
                "month": label,
                "days": len(sections),
                "total_sessions": total_sessions,
                "total_minutes": total_minutes,
                "avg_session_minutes": total_minutes // total_sessions if total_sessions else 0,
            },
            {"title": f"{label} Sessions Index", "sections": render_sections(sections)},
        )

    def _render_weeks_index(self, period: tuple[int, int], sections: dict,
                            week: WeekSummary = None) -> str:
        iso_year, iso_week = period
        start, end = week_bounds(iso_year, iso_week)
        label = f"{iso_year:04d}-W{iso_week:02d}"
        return self.renderer.render(
            "weeks_index",
            {
                "week": label,
                "week_start": start.isoformat(),
                "week_end": end.isoformat(),
                "days": len(sections),
                "total_sessions": sum(s for s, _, _ in sections.values()),
                "total_minutes": sum(m for _, m, _ in sections.values()),
                "focus_ratio": week.focus_ratio if week else None,
                "productivity_score": week.productivity_score if week else None,
            },
            {"title": f"{label} Weekly Index", "sections": render_sections(sections)},
        )
