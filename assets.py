"""
Asset references for session notes.

Link mode points at the original file with a file:// URI. Copy mode copies
only preview screenshots into Assets/<date>/ and embeds the vault path.
Full videos are never copied in either mode.
"""
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

from config import VaultConfig
from errors import IOFailure
from models import Session
from paths import PathResolver

logger = logging.getLogger("screen_analyzer.assets")

VIDEO_SUFFIXES = {".mp4", ".mov", ".mkv", ".webm", ".avi", ".m4v"}


@dataclass(frozen=True)
class AssetRef:
    markdown: str
    source: str
    vault_path: Optional[str] = None  # set only for copied files


def local_path(path: str) -> Path:
    """Expand ~ in a capture path; raises IOFailure when it cannot be resolved."""
    try:
        return Path(path).expanduser().absolute()
    except (RuntimeError, OSError) as e:
        raise IOFailure(f"Cannot resolve {path}: {e}", path)


def to_file_url(path: str) -> str:
    return local_path(path).as_uri()


def pick_preview_assets(paths: list[str]) -> list[str]:
    """First and last screenshot of a session, without duplicates."""
    if not paths:
        return []
    picked = [paths[0]]
    if paths[-1] != paths[0]:
        picked.append(paths[-1])
    return picked


class AssetLinker:
    """Decides link-vs-copy for each asset of a session."""

    def __init__(self, vault: VaultConfig, resolver: PathResolver):
        self.vault = vault
        self.resolver = resolver

    def screenshots(self, session: Session) -> tuple[list[AssetRef], list[IOFailure]]:
        """
        Resolve screenshot references for a session.

        Returns the references that could be produced and the failures for
        the ones that could not; a failure never stops the other assets.
        """
        if not self.vault.include_screenshots:
            return [], []

        refs, errors = [], []
        for index, source in enumerate(pick_preview_assets(session.preview_assets)):
            try:
                refs.append(self._prepare(session, source, index))
            except IOFailure as e:
                logger.warning("Screenshot for session %s skipped: %s", session.id, e)
                errors.append(e)
        return refs, errors

    def video_link(self, session: Session) -> str:
        if not self.vault.include_video_link or not session.video_path:
            return ""
        return f"[Playback video]({to_file_url(session.video_path)})"

    def copy_target(self, session: Session, source: str, index: int) -> Optional[PurePosixPath]:
        """Vault path a screenshot is copied to, or None when it stays linked."""
        suffix = Path(source).suffix.lower()
        if self.vault.export_mode != "copy" or suffix in VIDEO_SUFFIXES:
            return None
        return self.resolver.resolve_asset(session.date, f"session-{session.id}-{index}{suffix or '.jpg'}")

    def _prepare(self, session: Session, source: str, index: int) -> AssetRef:
        source_path = local_path(source)
        if not source_path.is_file():
            raise IOFailure(f"Screenshot not found: {source}", source)

        relative = self.copy_target(session, source, index)
        if relative is not None:
            target = PathResolver.absolute(self.vault.vault_path, relative)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                # same derived name means same asset; overwrite in place
                shutil.copyfile(source_path, target)
            except OSError as e:
                raise IOFailure(f"Failed to copy screenshot: {e}", relative)
            logger.debug("Copied %s -> %s", source_path, relative)
            return AssetRef(markdown=f"![[{relative}]]", source=source, vault_path=str(relative))

        return AssetRef(markdown=f"![]({to_file_url(source)})", source=source)
