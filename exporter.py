#!/usr/bin/env python3
"""
Vault exporter for screen-activity sessions.

Exports one day of captured sessions into an Obsidian-compatible vault:
a Daily note, one note per session, the ISO-week Weekly note, the monthly
sessions index, the weekly index and an overview note.

Usage:
    python exporter.py                      # Export today
    python exporter.py --date 2025-01-15    # Export a specific day
    python exporter.py --date 2025-01-15 --preview
"""
import argparse
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import date
from pathlib import Path, PurePosixPath

from aggregator import (
    compact_text,
    session_metrics,
    sort_sessions,
    summarize_day,
    summarize_week,
    week_insights,
)
from assets import AssetLinker, pick_preview_assets, to_file_url
from config import VaultConfig, load_config, validate_vault_config, vault_config_from_dict
from errors import AmbiguousSession, Busy, ConfigInvalid, ExportError, InvalidDate, IOFailure
from index_builder import IndexBuilder
from logging_utils import setup_logging
from models import ErrorRecord, ExportResult, ExportState, ExportStep, PreviewData, Session, WeekSummary
from paths import PathResolver, iso_week_of, parse_day, week_days
from renderer import Renderer
from store import JsonSessionStore, SessionStore, StoreError

logger = logging.getLogger("screen_analyzer.exporter")


# =============================================================================
# VAULT LOCKS
# =============================================================================

_VAULT_LOCKS: dict[str, threading.Lock] = {}
_VAULT_LOCKS_GUARD = threading.Lock()


def _vault_key(vault_path: str) -> str:
    return str(Path(vault_path).expanduser().resolve())


@contextmanager
def vault_lock(vault_path: str):
    """Hold the export lock for a vault; raise Busy instead of waiting."""
    key = _vault_key(vault_path)
    with _VAULT_LOCKS_GUARD:
        lock = _VAULT_LOCKS.setdefault(key, threading.Lock())
    if not lock.acquire(blocking=False):
        raise Busy(f"An export is already running for {key}")
    try:
        yield
    finally:
        lock.release()


class _Abort(Exception):
    """Stops an export after a fatal step; the error is already recorded."""


# =============================================================================
# EXPORTER
# =============================================================================

class VaultExporter:
    """
    Single entry point for manual and scheduled exports.

    State moves Idle -> Exporting -> Success | Failed and is exposed through
    `state` and `last_result` for callers that poll. Files written before a
    failure are kept; re-running the export overwrites them identically.
    """

    def __init__(self, vault: VaultConfig, store: SessionStore):
        self.vault = vault
        self.store = store
        self._state = ExportState.IDLE
        self._step = ExportStep.VALIDATE_CONFIG
        self.last_result: ExportResult | None = None

    @property
    def state(self) -> ExportState:
        return self._state

    def export_day(self, day) -> ExportResult:
        """Export every note for `day` and report what succeeded."""
        result = ExportResult()
        try:
            result.date = parse_day(day)
            renderer = self._prepare()
        except (InvalidDate, ConfigInvalid) as e:
            self._record(result, ExportStep.VALIDATE_CONFIG, e)
            result.state = ExportState.FAILED
            self._state, self.last_result = result.state, result
            return result
        result.completed_steps.append(ExportStep.VALIDATE_CONFIG)

        try:
            with vault_lock(self.vault.vault_path):
                self._state = ExportState.EXPORTING
                self._step = ExportStep.LOAD_SESSIONS
                logger.info("Exporting %s to %s", result.date, self.vault.vault_path)
                try:
                    self._run(result.date, renderer, result)
                except _Abort:
                    pass
                except Exception as e:
                    logger.exception("Export of %s stopped during %s", result.date, self._step.value)
                    self._record(result, self._step, e)
                finally:
                    result.state = ExportState.FAILED if result.errors else ExportState.SUCCESS
                    self._state, self.last_result = result.state, result
        except Busy as e:
            # the running export keeps its own state
            logger.warning(str(e))
            self._record(result, ExportStep.VALIDATE_CONFIG, e)
            result.state = ExportState.FAILED
            return result

        logger.info("Export %s for %s: %d files, %d errors", result.state.value,
                    result.date, len(result.written_paths), len(result.errors))
        return result

    def preview(self, day) -> PreviewData:
        """Paths and week summary an export of `day` would produce; writes nothing."""
        if not self.vault.enabled:
            return PreviewData(message="Vault export is disabled", state=self._state)

        try:
            self._prepare()
        except ConfigInvalid as e:
            return PreviewData(enabled=True, vault_path=self.vault.vault_path,
                               message=str(e), state=self._state)
        try:
            day = parse_day(day)
            sessions = sort_sessions(self.store.sessions_for_date(day))
            week_sessions = self._week_sessions(day, sessions)
        except (InvalidDate, StoreError) as e:
            return PreviewData(enabled=True, vault_path=self.vault.vault_path,
                               message=str(e), state=self._state)

        resolver = PathResolver(self.vault.root_folder)
        linker = AssetLinker(self.vault, resolver)
        resolved, _ = self._resolve_sessions(resolver, sessions)
        iso_year, iso_week = iso_week_of(day)

        paths = [resolver.resolve_daily(day)]
        for session, path in resolved:
            paths.append(path)
            if not self.vault.include_screenshots:
                continue
            for index, source in enumerate(pick_preview_assets(session.preview_assets)):
                target = linker.copy_target(session, source, index)
                if target is not None:
                    paths.append(target)
        paths += [
            resolver.resolve_weekly(iso_year, iso_week),
            resolver.resolve_index("sessions", (day.year, day.month)),
            resolver.resolve_index("weeks", (iso_year, iso_week)),
            resolver.resolve_index("overview"),
        ]

        return PreviewData(
            enabled=True,
            vault_path=self.vault.vault_path,
            generated_paths=[str(p) for p in paths],
            week_summary=summarize_week(iso_year, iso_week, week_sessions, self.vault.weights),
            state=self._state,
        )

    # -------------------------------------------------------------------------
    # Export steps
    # -------------------------------------------------------------------------

    def _prepare(self) -> Renderer:
        valid, error = validate_vault_config(self.vault)
        if not valid:
            raise ConfigInvalid(error)
        return Renderer(self.vault)

    def _run(self, day: date, renderer: Renderer, result: ExportResult) -> None:
        resolver = PathResolver(self.vault.root_folder)
        linker = AssetLinker(self.vault, resolver)
        indexer = IndexBuilder(resolver, renderer)
        iso_year, iso_week = iso_week_of(day)

        # 1. Load
        try:
            sessions = sort_sessions(self.store.sessions_for_date(day))
        except StoreError as e:
            self._record(result, ExportStep.LOAD_SESSIONS, e, kind="store_error")
            raise _Abort()
        result.completed_steps.append(ExportStep.LOAD_SESSIONS)

        resolved, ambiguous = self._resolve_sessions(resolver, sessions)
        for error in ambiguous:
            self._record(result, ExportStep.SESSION_NOTES, error)
        exported = [session for session, _ in resolved]

        # 2. Daily summary
        self._step = ExportStep.DAILY_SUMMARY
        daily = summarize_day(day, exported, self.vault.weights)
        result.completed_steps.append(ExportStep.DAILY_SUMMARY)

        # 3. Daily note
        daily_path = resolver.resolve_daily(day)
        links = [
            PathResolver.link(path, session.title or
                              f"{session.start.strftime('%H:%M')}-{session.end.strftime('%H:%M')} "
                              f"session-{session.id}")
            for session, path in resolved
        ]
        self._write(result, ExportStep.DAILY_NOTE, renderer, daily_path,
                    lambda: renderer.render_daily_note(daily, links))

        # 4. Session notes, independent files
        self._step = ExportStep.SESSION_NOTES
        daily_link = PathResolver.link(daily_path, day.isoformat())
        with ThreadPoolExecutor(max_workers=self.vault.max_workers) as pool:
            outcomes = list(pool.map(
                lambda pair: self._export_session(renderer, linker, daily_link, *pair),
                resolved,
            ))
        session_errors = bool(ambiguous)
        for written, errors in outcomes:
            result.written_paths.extend(written)
            for error in errors:
                session_errors = True
                self._record(result, ExportStep.SESSION_NOTES, error)
        if not session_errors:
            result.completed_steps.append(ExportStep.SESSION_NOTES)

        # 5. Week summary including the sessions just exported
        self._step = ExportStep.WEEK_SUMMARY
        week = None
        try:
            week_sessions = self._week_sessions(day, exported)
            week = summarize_week(iso_year, iso_week, week_sessions, self.vault.weights)
            result.week_summary = week
            result.completed_steps.append(ExportStep.WEEK_SUMMARY)
        except StoreError as e:
            self._record(result, ExportStep.WEEK_SUMMARY, e, kind="store_error")

        # 6. Weekly note and indices, one writer at a time
        week_index_path = resolver.resolve_index("weeks", (iso_year, iso_week))
        if week is not None:
            self._write(result, ExportStep.WEEKLY_NOTE, renderer,
                        resolver.resolve_weekly(iso_year, iso_week),
                        lambda: renderer.render_weekly_note(
                            week, week_insights(week),
                            self._daily_highlights(resolver, iso_year, iso_week, week_sessions),
                            PathResolver.link(week_index_path)))

        self._index(result, ExportStep.SESSIONS_INDEX,
                    lambda: indexer.upsert(indexer.build_entry("sessions", day, resolved)))
        if week is not None:
            self._index(result, ExportStep.WEEKS_INDEX,
                        lambda: indexer.upsert(indexer.build_entry("weeks", day, resolved), week))
        self._index(result, ExportStep.OVERVIEW,
                    lambda: indexer.update_overview(day, week.label if week else None))

    def _export_session(self, renderer: Renderer, linker: AssetLinker, daily_link: str,
                        session: Session, path: PurePosixPath) -> tuple[list[str], list[ExportError]]:
        refs, errors = linker.screenshots(session)
        written = [ref.vault_path for ref in refs if ref.vault_path]

        asset = None
        if refs:
            asset = refs[0].vault_path or to_file_url(refs[0].source)
        try:
            video_link = linker.video_link(session)
        except IOFailure as e:
            logger.warning("Video link for session %s skipped: %s", session.id, e)
            errors.append(e)
            video_link = ""
        content = renderer.render_session_note(
            session,
            session_metrics(session),
            daily_link,
            [ref.markdown for ref in refs],
            asset=asset,
            video_link=video_link,
        )
        try:
            renderer.write(path, content)
            written.append(str(path))
        except ExportError as e:
            logger.warning("Session %s not written: %s", session.id, e)
            errors.append(e)
        return written, errors

    def _resolve_sessions(self, resolver: PathResolver, sessions: list[Session]):
        """(session, path) pairs plus AmbiguousSession errors for clashes."""
        resolved, errors, seen = [], [], set()
        for session in sessions:
            try:
                if session.id in seen:
                    raise AmbiguousSession(f"Duplicate session id {session.id} on {session.date}")
                path = resolver.resolve_session(session.date, session.start, session.end, session.id)
            except AmbiguousSession as e:
                logger.warning(str(e))
                errors.append(e)
                continue
            seen.add(session.id)
            resolved.append((session, path))
        return resolved, errors

    def _week_sessions(self, day: date, exported: list[Session]) -> list[Session]:
        iso_year, iso_week = iso_week_of(day)
        others = [s for s in self.store.sessions_for_week(iso_year, iso_week) if s.date != day]
        return sort_sessions(others + list(exported))

    def _daily_highlights(self, resolver: PathResolver, iso_year: int, iso_week: int,
                          sessions: list[Session]) -> list[str]:
        lines = []
        for day in week_days(iso_year, iso_week):
            link = PathResolver.link(resolver.resolve_daily(day), day.isoformat())
            day_sessions = [s for s in sessions if s.date == day]
            if day_sessions:
                text = compact_text(summarize_day(day, day_sessions, self.vault.weights).summary)
            else:
                text = "No summary"
            lines.append(f"- {link}: {text}")
        return lines

    def _write(self, result: ExportResult, step: ExportStep, renderer: Renderer,
               relative: PurePosixPath, render) -> None:
        self._step = step
        try:
            renderer.write(relative, render())
        except ExportError as e:
            logger.warning("%s failed: %s", step.value, e)
            self._record(result, step, e)
            return
        result.written_paths.append(str(relative))
        result.completed_steps.append(step)

    def _index(self, result: ExportResult, step: ExportStep, update) -> None:
        self._step = step
        try:
            relative = update()
        except ExportError as e:
            logger.warning("%s failed: %s", step.value, e)
            self._record(result, step, e)
            return
        result.written_paths.append(str(relative))
        result.completed_steps.append(step)

    @staticmethod
    def _record(result: ExportResult, step: ExportStep, error: Exception, kind: str = None) -> None:
        result.errors.append(ErrorRecord(
            kind=kind or getattr(error, "kind", "export_error"),
            step=step,
            message=str(error),
            path=getattr(error, "path", None),
        ))


def format_week_summary(week: WeekSummary) -> str:
    return (f"{week.label} ({week.week_start} - {week.week_end}): "
            f"{week.total_sessions} sessions, {week.total_minutes} minutes, "
            f"focus {week.focus_ratio}%, productivity {week.productivity_score}/100, "
            f"top: {week.top_categories_text or 'none'}")


# =============================================================================
# CLI INTERFACE
# =============================================================================

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Export screen activity to an Obsidian vault")
    parser.add_argument("--date", default=date.today().isoformat(), help="Day to export (YYYY-MM-DD)")
    parser.add_argument("--preview", action="store_true", help="Show what would be written")
    args = parser.parse_args()

    config = load_config()
    setup_logging(config.get("log_dir", "logs"))
    exporter = VaultExporter(vault_config_from_dict(config),
                             JsonSessionStore(config.get("data_dir", "data")))

    if args.preview:
        preview = exporter.preview(args.date)
        if preview.message:
            print(preview.message)
        for path in preview.generated_paths:
            print(f"  {path}")
        if preview.week_summary:
            print(format_week_summary(preview.week_summary))
    else:
        print(exporter.export_day(args.date).render_message())
