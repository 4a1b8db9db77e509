"""
Tests for renderer.py - Note rendering and writes.
"""
from datetime import date
from pathlib import PurePosixPath

import pytest

from aggregator import session_metrics, summarize_day, summarize_week, week_insights
from config import VaultConfig
from errors import ConfigInvalid, IOFailure
from renderer import (
    Renderer,
    fill_template,
    format_frontmatter,
    sanitize_yaml_string,
    validate_template,
)


def test_sanitize_yaml_string():
    assert sanitize_yaml_string("plain") == "plain"
    assert sanitize_yaml_string("") == '""'
    assert sanitize_yaml_string('a: "b"') == '"a: \\"b\\""'


@pytest.mark.parametrize("value", [
    "- standup", "*draft notes", "&anchor", "!important", "%todo", "@alice sync",
    "`code` review", "? maybe", " padded", "trailing ",
    "null", "~", "yes", "No", "true", "off", "42", "3.5", "1e3", "0x1f", ".inf",
])
def test_sanitize_yaml_string_quotes_ambiguous_scalars(value):
    """Values YAML would misparse are wrapped in double quotes."""
    assert sanitize_yaml_string(value) == f'"{value}"'


def test_sanitize_yaml_string_leaves_plain_text():
    for value in ("Refactor exporter", "work", "2025-01-15", "2025-W03", "deep-work"):
        assert sanitize_yaml_string(value) == value


def test_format_frontmatter():
    text = format_frontmatter({"type": "x", "tags": ["b", "a"], "empty": [], "asset": None})
    assert text.splitlines() == ["---", "type: x", "tags:", "  - b", "  - a", "empty: []", "asset:", "---"]


def test_fill_template_missing_values_render_empty():
    assert fill_template("{{a}}-{{ b }}-{{c}}", {"a": 1, "b": "x"}) == "1-x-"


def test_validate_template_unknown_field():
    with pytest.raises(ConfigInvalid):
        validate_template("daily", "{{frontmatter}} {{weather}}")


def test_validate_template_accepts_known_fields():
    validate_template("session", "{{frontmatter}}\n{{session_id}} {{timeline}}")


def test_renderer_rejects_bad_override(vault_dir):
    template = vault_dir / "daily.md"
    template.write_text("{{frontmatter}} {{nope}}", encoding="utf-8")
    with pytest.raises(ConfigInvalid):
        Renderer(VaultConfig(enabled=True, vault_path=str(vault_dir), templates={"daily": str(template)}))


def test_renderer_uses_override(vault_dir, sample_session):
    template = vault_dir / "daily.md"
    template.write_text("{{frontmatter}}\nCustom {{date}}: {{summary}}\n", encoding="utf-8")
    renderer = Renderer(VaultConfig(enabled=True, vault_path=str(vault_dir),
                                    templates={"daily": str(template)}))

    text = renderer.render_daily_note(summarize_day(date(2025, 1, 15), [sample_session]), [])
    assert "Custom 2025-01-15: 1 sessions" in text
    assert text.startswith("---\ntype: screen-analyzer-daily\n")


def test_daily_note(vault_config, sample_session):
    renderer = Renderer(vault_config)
    text = renderer.render_daily_note(summarize_day(date(2025, 1, 15), [sample_session]),
                                      ["[[ScreenAnalyzer/Sessions/x|Refactor exporter]]"])

    assert "date: 2025-01-15" in text
    assert "session_count: 1" in text
    assert "total_minutes: 75" in text
    assert "# 2025-01-15 Screen Activity" in text
    assert "- [[ScreenAnalyzer/Sessions/x|Refactor exporter]]" in text
    assert "- Productivity score: 61 / 100" in text


def test_daily_note_without_sessions(vault_config):
    text = Renderer(vault_config).render_daily_note(summarize_day(date(2025, 1, 15), []), [])
    assert "- No sessions recorded" in text
    assert "state: no-data" in text


def test_session_note(vault_config, sample_session):
    renderer = Renderer(vault_config)
    text = renderer.render_session_note(
        sample_session, session_metrics(sample_session),
        "[[ScreenAnalyzer/Daily/2025-01-15|2025-01-15]]", [],
    )

    assert 'session_id: "123"' in text  # numeric-looking ids stay strings
    assert "start: 09:00" not in text  # colon forces quoting
    assert 'start: "09:00"' in text
    assert "duration_minutes: 75" in text
    assert "tags:\n  - coding\n  - deep" in text
    assert "fragmentation_level: medium" in text
    assert "asset:" in text
    assert "- 09:00-09:45 [work] Editor" in text
    assert "## Screenshots" not in text
    assert "Day: [[ScreenAnalyzer/Daily/2025-01-15|2025-01-15]]" in text


def test_session_note_with_media(vault_config, sample_session):
    text = Renderer(vault_config).render_session_note(
        sample_session, session_metrics(sample_session), "[[d]]",
        ["![](file:///shots/a.png)"], asset="file:///shots/a.png",
        video_link="[Playback video](file:///videos/a.mp4)",
    )
    assert "## Video\n[Playback video](file:///videos/a.mp4)" in text
    assert "## Screenshots\n![](file:///shots/a.png)" in text
    assert 'asset: "file:///shots/a.png"' in text


def test_session_note_quotes_free_text_fields(vault_config, sample_session):
    session = sample_session.model_copy(update={
        "title": "- standup", "category": "@alice sync", "tags": frozenset({"*draft", "yes"}),
    })
    text = Renderer(vault_config).render_session_note(session, session_metrics(session), "[[d]]", [])

    assert 'title: "- standup"' in text
    assert 'category: "@alice sync"' in text
    assert 'tags:\n  - "*draft"\n  - "yes"' in text


def test_weekly_note(vault_config, sample_session):
    week = summarize_week(2025, 3, [sample_session])
    text = Renderer(vault_config).render_weekly_note(
        week, week_insights(week), ["- [[d|2025-01-15]]: summary"], "[[ScreenAnalyzer/Index/weeks-2025-W03]]"
    )

    assert "week: 2025-W03" in text
    assert "week_start: 2025-01-13" in text
    assert "focus_ratio: 80" in text
    assert "productivity_score: 57" in text
    assert "top_categories:\n  - work\n  - communication" in text
    assert "# 2025-W03 Weekly Review" in text
    assert "- Focus was high" in text
    assert "- [[ScreenAnalyzer/Index/weeks-2025-W03]]" in text


def test_rendering_is_deterministic(vault_config, sample_session):
    renderer = Renderer(vault_config)
    metrics = session_metrics(sample_session)
    first = renderer.render_session_note(sample_session, metrics, "[[d]]", [])
    second = renderer.render_session_note(sample_session, metrics, "[[d]]", [])
    assert first == second


def test_write_creates_parents_and_trailing_newline(vault_config, vault_dir):
    relative = PurePosixPath("ScreenAnalyzer/Daily/2025-01-15.md")
    Renderer(vault_config).write(relative, "hello")

    target = vault_dir / "ScreenAnalyzer" / "Daily" / "2025-01-15.md"
    assert target.read_bytes() == b"hello\n"
    assert list(target.parent.glob("*.tmp")) == []


def test_write_failure_raises_io_failure(vault_config, vault_dir):
    # a file where a directory is expected
    (vault_dir / "ScreenAnalyzer").write_text("blocker")
    with pytest.raises(IOFailure) as excinfo:
        Renderer(vault_config).write(PurePosixPath("ScreenAnalyzer/Daily/x.md"), "text")
    assert excinfo.value.path == "ScreenAnalyzer/Daily/x.md"
