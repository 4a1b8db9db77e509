"""
Markdown note rendering for the vault.

Each note kind has a fixed frontmatter schema and a body template with
{{placeholder}} slots. Daily, session and weekly notes accept a user
template override; overrides are validated when the Renderer is built.
Writes are full-file replaces, UTF-8, always ending in a newline.
"""
import logging
import os
import platform
import re
import tempfile
import time
from pathlib import Path, PurePosixPath

from aggregator import compact_text
from config import VaultConfig
from errors import ConfigInvalid, IOFailure
from models import DailySummary, Session, SessionMetrics, WeekSummary

logger = logging.getLogger("screen_analyzer.renderer")

SOURCE = "screen-analyzer"

PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")

# plain scalars may not start with these
YAML_INDICATORS = "-?:,[]{}#&*!|>'\"%@`"

# strings YAML 1.1 would load as null, bool or number
YAML_PLAIN_LITERAL = re.compile(
    r"^(?:~|null|true|false|yes|no|on|off|y|n"
    r"|[-+]?(?:\d[\d_]*)?\.?\d[\d_]*(?:[eE][-+]?\d+)?"
    r"|0x[0-9a-f_]+|0o?[0-7_]+|[-+]?\.(?:inf|nan))$",
    re.IGNORECASE,
)

FRONTMATTER_FIELDS = {
    "daily": (
        "type", "date", "session_count", "total_minutes", "focus_score",
        "productivity_score", "top_categories", "state", "source",
    ),
    "session": (
        "type", "date", "session_id", "title", "start", "end", "duration_minutes",
        "category", "tags", "segments", "context_switches", "fragmentation_level",
        "asset", "source",
    ),
    "weekly": (
        "type", "week", "week_start", "week_end", "total_sessions", "total_minutes",
        "avg_session_minutes", "focus_minutes", "focus_ratio", "distraction_minutes",
        "distraction_ratio", "communication_minutes", "focus_score", "effort_score",
        "productivity_score", "focus_weight", "effort_weight", "target_minutes",
        "top_categories", "state", "source",
    ),
    "sessions_index": (
        "type", "month", "days", "total_sessions", "total_minutes",
        "avg_session_minutes", "source",
    ),
    "weeks_index": (
        "type", "week", "week_start", "week_end", "days", "total_sessions",
        "total_minutes", "focus_ratio", "productivity_score", "source",
    ),
    "overview": ("type", "source"),
}

BODY_FIELDS = {
    "daily": ("summary", "session_list", "focus_section"),
    "session": ("summary", "metrics", "timeline", "video_block", "screenshots_block", "daily_link"),
    "weekly": ("overview", "focus_section", "insights", "scoring", "highlights", "week_index_link"),
    "sessions_index": ("title", "sections"),
    "weeks_index": ("title", "sections"),
    "overview": ("links",),
}

NOTE_TYPES = {
    "daily": "screen-analyzer-daily",
    "session": "screen-analyzer-session",
    "weekly": "screen-analyzer-weekly",
    "sessions_index": "screen-analyzer-index",
    "weeks_index": "screen-analyzer-week-index",
    "overview": "screen-analyzer-overview",
}

DEFAULT_TEMPLATES = {
    "daily": """{{frontmatter}}

# {{date}} Screen Activity

{{summary}}

## Sessions
{{session_list}}

## Focus
{{focus_section}}
""",
    "session": """{{frontmatter}}

# {{title}}

{{summary}}

Day: {{daily_link}}

## Metrics
{{metrics}}

## Timeline
{{timeline}}
{{video_block}}{{screenshots_block}}""",
    "weekly": """{{frontmatter}}

# {{week}} Weekly Review

## Overview
{{overview}}

## Focus
{{focus_section}}

## Insights
{{insights}}

## Scoring
{{scoring}}

## Daily Highlights
{{highlights}}

## Week Index
- {{week_index_link}}
""",
    "sessions_index": "{{frontmatter}}\n\n# {{title}}\n\n{{sections}}\n",
    "weeks_index": "{{frontmatter}}\n\n# {{title}}\n\n{{sections}}\n",
    "overview": "{{frontmatter}}\n\n# Screen Analyzer Overview\n\n{{links}}\n",
}


# =============================================================================
# FORMATTING HELPERS
# =============================================================================

def safe_replace(src, dst, retries=3, delay=0.1):
    """Cross-platform atomic file replace with Windows retry logic."""
    for attempt in range(retries):
        try:
            os.replace(src, dst)
            return
        except PermissionError:
            if platform.system() == 'Windows' and attempt < retries - 1:
                time.sleep(delay)
            else:
                raise


def sanitize_yaml_string(value: str) -> str:
    """Escape YAML special characters in string values."""
    if not isinstance(value, str):
        return str(value)
    if value == "":
        return '""'
    if (any(c in value for c in [':', '#', '[', ']', '{', '}', '"', "'", '\n', '|', '>', ',', '\t'])
            or value[0] in YAML_INDICATORS
            or value != value.strip()
            or YAML_PLAIN_LITERAL.match(value)):
        escaped = value.replace('\\', '\\\\').replace('"', '\\"').replace('\n', '\\n')
        return f'"{escaped}"'
    return value


def format_frontmatter(metadata: dict) -> str:
    """Generate YAML frontmatter block. None values render as empty keys."""
    lines = ["---"]

    for key, value in metadata.items():
        if value is None:
            lines.append(f"{key}:")
        elif isinstance(value, (list, tuple)):
            if not value:
                lines.append(f"{key}: []")
            else:
                lines.append(f"{key}:")
                for item in value:
                    lines.append(f"  - {sanitize_yaml_string(item) if isinstance(item, str) else item}")
        elif isinstance(value, bool):
            lines.append(f"{key}: {str(value).lower()}")
        elif isinstance(value, str):
            lines.append(f"{key}: {sanitize_yaml_string(value)}")
        else:
            lines.append(f"{key}: {value}")

    lines.append("---")
    return "\n".join(lines)


def fill_template(template: str, values: dict) -> str:
    """Replace {{name}} slots; unknown or missing values render empty."""
    def _sub(match):
        value = values.get(match.group(1))
        return "" if value is None else str(value)
    return PLACEHOLDER.sub(_sub, template)


def bullet_list(items: list[str], empty: str) -> str:
    if not items:
        return f"- {empty}"
    return "\n".join(f"- {item}" for item in items)


def validate_template(kind: str, text: str) -> None:
    """Raise ConfigInvalid when an override uses unknown placeholders."""
    if not text.strip():
        raise ConfigInvalid(f"Template override for {kind} is empty")
    allowed = {"frontmatter", *FRONTMATTER_FIELDS[kind], *BODY_FIELDS[kind]}
    unknown = sorted({name for name in PLACEHOLDER.findall(text)} - allowed)
    if unknown:
        raise ConfigInvalid(f"Template override for {kind} uses unknown fields: {', '.join(unknown)}")


# =============================================================================
# RENDERER
# =============================================================================

class Renderer:
    """Fills note templates and writes them under the vault root."""

    def __init__(self, vault: VaultConfig):
        self.vault = vault
        self.templates = dict(DEFAULT_TEMPLATES)
        for kind in ("daily", "session", "weekly"):
            path = vault.template_path(kind)
            if path is None:
                continue
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise ConfigInvalid(f"Cannot read template override for {kind}: {e}")
            validate_template(kind, text)
            self.templates[kind] = text
            logger.debug("Using template override for %s: %s", kind, path)

    def render(self, kind: str, fields: dict, body: dict) -> str:
        """Render one note of `kind` from frontmatter fields and body slots."""
        fixed = {"type": NOTE_TYPES[kind], "source": SOURCE}
        metadata = {key: fixed[key] if key in fixed else fields.get(key)
                    for key in FRONTMATTER_FIELDS[kind]}

        values = {key: _scalar(value) for key, value in metadata.items()}
        values.update(body)
        values["frontmatter"] = format_frontmatter(metadata)
        return fill_template(self.templates[kind], values)

    def write(self, relative: PurePosixPath, content: str) -> Path:
        """Atomically replace the note at `relative`; raises IOFailure."""
        target = Path(self.vault.vault_path).expanduser().joinpath(*relative.parts)
        text = content.rstrip("\n") + "\n"
        tmp_path = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=target.parent, suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8', newline='\n') as f:
                f.write(text)
            safe_replace(tmp_path, target)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise IOFailure(f"Failed to write note: {e}", relative)
        logger.debug("Wrote %s", relative)
        return target

    # -------------------------------------------------------------------------
    # Note kinds
    # -------------------------------------------------------------------------

    def render_daily_note(self, summary: DailySummary, session_links: list[str]) -> str:
        if summary.state == "no-data":
            focus = "No timeline data for this day"
        else:
            focus = "\n".join([
                f"- Tracked: {summary.tracked_minutes} minutes",
                f"- Focus score: {summary.focus_score} / 100",
                f"- Effort score: {summary.effort_score} / 100",
                f"- Productivity score: {summary.productivity_score} / 100",
            ])
        return self.render(
            "daily",
            {
                "date": summary.date.isoformat(),
                "session_count": summary.session_count,
                "total_minutes": summary.total_minutes,
                "focus_score": summary.focus_score,
                "productivity_score": summary.productivity_score,
                "top_categories": summary.top_categories,
                "state": summary.state,
            },
            {
                "summary": summary.summary,
                "session_list": bullet_list(session_links, "No sessions recorded"),
                "focus_section": focus,
            },
        )

    def render_session_note(self, session: Session, metrics: SessionMetrics,
                            daily_link: str, screenshots: list[str],
                            asset: str = None, video_link: str = "") -> str:
        if metrics.segment_count:
            metrics_text = "\n".join([
                f"- Segments: {metrics.segment_count}",
                f"- Context switches: {metrics.context_switches}",
                f"- Average segment: {metrics.avg_segment_minutes} minutes",
                f"- Fragmentation: {metrics.fragmentation_level}",
            ])
        else:
            metrics_text = "No metrics"

        timeline = bullet_list([
            f"{seg.start.strftime('%H:%M')}-{seg.end.strftime('%H:%M')} [{seg.category}] "
            f"{seg.title or 'Untitled'}" + (f": {compact_text(seg.summary)}" if seg.summary else "")
            for seg in session.segments
        ], "No timeline available")

        video_block = f"\n## Video\n{video_link}\n" if video_link else ""
        screenshots_block = "\n## Screenshots\n" + "\n".join(screenshots) + "\n" if screenshots else ""

        return self.render(
            "session",
            {
                "date": session.date.isoformat(),
                "session_id": session.id,
                "title": session.title or None,
                "start": session.start.strftime("%H:%M"),
                "end": session.end.strftime("%H:%M"),
                "duration_minutes": session.duration_minutes,
                "category": session.category,
                "tags": sorted(session.tags),
                "segments": metrics.segment_count,
                "context_switches": metrics.context_switches,
                "fragmentation_level": metrics.fragmentation_level,
                "asset": asset,
            },
            {
                "title": session.title or f"Session {session.id}",
                "summary": session.summary or "No summary",
                "metrics": metrics_text,
                "timeline": timeline,
                "video_block": video_block,
                "screenshots_block": screenshots_block,
                "daily_link": daily_link,
            },
        )

    def render_weekly_note(self, week: WeekSummary, insights: list[str],
                           highlights: list[str], week_index_link: str) -> str:
        overview = "\n".join([
            f"- Sessions: {week.total_sessions}",
            f"- Total time: {week.total_minutes} minutes",
            f"- Average session: {week.avg_session_minutes} minutes",
            f"- Top categories: {week.top_categories_text or 'none'}",
        ])
        scoring = "\n".join([
            "- Focus score = focus share of tracked time",
            f"- Effort score: {week.target_minutes} minutes scores 100, capped",
            f"- Productivity score = focus score x {week.focus_weight}% + effort score x {week.effort_weight}%",
        ])
        fields = week.model_dump(include={
            "total_sessions", "total_minutes", "avg_session_minutes", "focus_minutes",
            "focus_ratio", "distraction_minutes", "distraction_ratio", "communication_minutes",
            "focus_score", "effort_score", "productivity_score", "focus_weight",
            "effort_weight", "target_minutes", "top_categories", "state",
        })
        fields.update({
            "week": week.label,
            "week_start": week.week_start.isoformat(),
            "week_end": week.week_end.isoformat(),
        })
        return self.render(
            "weekly",
            fields,
            {
                "overview": overview,
                "focus_section": render_focus_metrics(week),
                "insights": bullet_list(insights, "No insights"),
                "scoring": scoring,
                "highlights": "\n".join(highlights) if highlights else "- No daily summaries",
                "week_index_link": week_index_link,
            },
        )


def render_focus_metrics(week: WeekSummary) -> str:
    if week.state == "no-data":
        return "No focus data available"

    b = week.bucket_minutes
    return "\n".join([
        f"- Focus: {week.focus_minutes} minutes ({week.focus_ratio}%)",
        f"- Communication: {week.communication_minutes} minutes",
        f"- Distraction: {week.distraction_minutes} minutes ({week.distraction_ratio}%)",
        f"- Focus score: {week.focus_score} / 100",
        f"- Effort score: {week.effort_score} / 100 (target {week.target_minutes} minutes)",
        f"- Productivity score: {week.productivity_score} / 100 "
        f"(weights {week.focus_weight}% / {week.effort_weight}%)",
        f"- Breakdown: work {b.get('work', 0)} / learning {b.get('learning', 0)} / "
        f"personal {b.get('personal', 0)} / idle {b.get('idle', 0)} / other {b.get('other', 0)}",
    ])


def _scalar(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)
