"""
Tests for index_builder.py - Upsert-only index notes.
"""
from datetime import date

from conftest import make_session
from index_builder import IndexBuilder, parse_sections, render_sections
from paths import PathResolver
from renderer import Renderer


def _entry_pairs(resolver, sessions):
    return [(s, resolver.resolve_session(s.date, s.start, s.end, s.id)) for s in sessions]


def _builder(vault_config):
    resolver = PathResolver()
    return resolver, IndexBuilder(resolver, Renderer(vault_config))


def test_render_sections_empty():
    assert render_sections({}) == "*No exported days yet.*"


def test_parse_sections_round_trip():
    sections = {"2025-01-15": (2, 90, "### day\nbody"), "2025-01-14": (1, 30, "### other")}
    assert parse_sections(render_sections(sections)) == sections


def test_build_entry_rows_sorted(vault_config):
    resolver, builder = _builder(vault_config)
    late = make_session("2", start=(14, 0), end=(15, 0))
    early = make_session("1", start=(9, 0), end=(9, 30))
    entry = builder.build_entry("sessions", date(2025, 1, 15), _entry_pairs(resolver, [late, early]))

    assert entry.period == (2025, 1)
    assert [row.session_id for row in entry.rows] == ["1", "2"]
    assert entry.session_count == 2
    assert entry.minutes == 90


def test_upsert_creates_sessions_index(vault_config, vault_dir, sample_session):
    resolver, builder = _builder(vault_config)
    entry = builder.build_entry("sessions", sample_session.date, _entry_pairs(resolver, [sample_session]))
    relative = builder.upsert(entry)

    assert str(relative) == "ScreenAnalyzer/Index/sessions-2025-01.md"
    text = (vault_dir / relative).read_text(encoding="utf-8")
    assert "month: 2025-01" in text
    assert "total_sessions: 1" in text
    assert "total_minutes: 75" in text
    assert "<!-- section:2025-01-15 sessions=1 minutes=75 -->" in text
    assert "| 09:00 | 10:15 | 75 | work |" in text


def test_upsert_keeps_other_days(vault_config, vault_dir):
    resolver, builder = _builder(vault_config)
    tuesday = make_session("1", day=date(2025, 1, 14))
    wednesday = make_session("2", day=date(2025, 1, 15), start=(9, 0), end=(9, 45))

    builder.upsert(builder.build_entry("sessions", tuesday.date, _entry_pairs(resolver, [tuesday])))
    relative = builder.upsert(builder.build_entry("sessions", wednesday.date,
                                                  _entry_pairs(resolver, [wednesday])))

    text = (vault_dir / relative).read_text(encoding="utf-8")
    sections = parse_sections(text)
    assert set(sections) == {"2025-01-14", "2025-01-15"}
    assert "total_sessions: 2" in text
    assert "total_minutes: 105" in text
    assert text.index("section:2025-01-14") < text.index("section:2025-01-15")


def test_upsert_replaces_same_day_section(vault_config, vault_dir, sample_session):
    resolver, builder = _builder(vault_config)
    pairs = _entry_pairs(resolver, [sample_session])

    builder.upsert(builder.build_entry("sessions", sample_session.date, pairs))
    first = (vault_dir / "ScreenAnalyzer/Index/sessions-2025-01.md").read_text(encoding="utf-8")
    builder.upsert(builder.build_entry("sessions", sample_session.date, pairs))
    second = (vault_dir / "ScreenAnalyzer/Index/sessions-2025-01.md").read_text(encoding="utf-8")

    assert first == second
    assert second.count("<!-- section:2025-01-15 ") == 1


def test_upsert_weeks_index(vault_config, vault_dir, sample_session):
    from aggregator import summarize_week

    resolver, builder = _builder(vault_config)
    entry = builder.build_entry("weeks", sample_session.date, _entry_pairs(resolver, [sample_session]))
    relative = builder.upsert(entry, summarize_week(2025, 3, [sample_session]))

    text = (vault_dir / relative).read_text(encoding="utf-8")
    assert str(relative) == "ScreenAnalyzer/Index/weeks-2025-W03.md"
    assert "week_start: 2025-01-13" in text
    assert "focus_ratio: 80" in text


def test_empty_day_section(vault_config, vault_dir):
    _, builder = _builder(vault_config)
    relative = builder.upsert(builder.build_entry("sessions", date(2025, 1, 16), []))
    assert "- No sessions recorded" in (vault_dir / relative).read_text(encoding="utf-8")


def test_update_overview(vault_config, vault_dir):
    _, builder = _builder(vault_config)
    relative = builder.update_overview(date(2025, 1, 15), "2025-W03")

    text = (vault_dir / relative).read_text(encoding="utf-8")
    assert "type: screen-analyzer-overview" in text
    assert "- Latest day: [[ScreenAnalyzer/Daily/2025-01-15|2025-01-15]]" in text
    assert "- This week: [[ScreenAnalyzer/Weekly/2025-W03|2025-W03]]" in text


def test_pipe_in_category_stays_in_its_cell(vault_config, vault_dir):
    resolver, builder = _builder(vault_config)
    session = make_session("5", category="design|review")
    relative = builder.upsert(builder.build_entry("sessions", session.date, _entry_pairs(resolver, [session])))

    text = (vault_dir / relative).read_text(encoding="utf-8")
    assert "| 09:00 | 10:00 | 60 | design\\|review |" in text
