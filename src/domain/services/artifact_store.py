"""
Filesystem storage for rendered report artifacts.

Reports live under ``{PUBLIC_DIR}/uploads/{owner}/{file}``, where the owner
segment is the user id, ``guest/{email}`` or ``guest/anonymous``. The stored
pointer is always the public-relative path (``/uploads/...``).
"""

from __future__ import annotations

import asyncio
import os
import re
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

import structlog
from src.domain.errors import TransientExternalError, ValidationError

if TYPE_CHECKING:
    from src.core.config import Settings
    from src.domain.models import OwnerContext

logger = structlog.get_logger(__name__)

UPLOADS_DIR = "uploads"
LEGACY_REPORT_NAME = re.compile(r"^report-(\d+)\.pdf$")
_UNSAFE_SEGMENT = re.compile(r"[/\\\x00]")


class ArtifactPathError(ValidationError):
    """Raised when an artifact path tries to leave the public directory."""


class ArtifactWriteError(TransientExternalError):
    """Raised when an artifact cannot be written to disk in time."""


@dataclass(slots=True, frozen=True)
class StoredArtifact:
    absolute_path: Path
    relative_path: str
    file_name: str
    size: int


@dataclass(slots=True, frozen=True)
class ResolvedPath:
    """Outcome of resolving a stored pointer against the filesystem."""

    path: Path | None = None
    legacy_assessment_id: int | None = None

    @property
    def found(self) -> bool:
        return self.path is not None


def owner_segments(owner: OwnerContext) -> tuple[str, ...]:
    if owner.user_id is not None:
        return (str(owner.user_id),)
    if owner.guest_email:
        email = _UNSAFE_SEGMENT.sub("_", owner.guest_email.strip())
        if email in ("", ".", ".."):
            return ("guest", "anonymous")
        return ("guest", email)
    return ("guest", "anonymous")


class ArtifactStore:
    """Writes report PDFs atomically beneath the public uploads directory."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.public_dir = Path(settings.public_dir)
        self.uploads_dir = self.public_dir / UPLOADS_DIR

    def relative_path_for(self, owner: OwnerContext, file_name: str) -> str:
        return "/" + str(PurePosixPath(UPLOADS_DIR, *owner_segments(owner), file_name))

    def absolute_path_for(self, owner: OwnerContext, file_name: str) -> Path:
        return self.uploads_dir.joinpath(*owner_segments(owner), file_name)

    async def save(self, owner: OwnerContext, file_name: str, content: bytes) -> StoredArtifact:
        target = self.absolute_path_for(owner, file_name)
        timeout = self.settings.artifact_write_timeout_seconds
        try:
            await asyncio.wait_for(asyncio.to_thread(_write_atomic, target, content), timeout)
        except TimeoutError as exc:
            raise ArtifactWriteError(f"Writing {target} exceeded {timeout}s") from exc
        except OSError as exc:
            raise ArtifactWriteError(f"Failed to write {target}: {exc}") from exc

        relative_path = self.relative_path_for(owner, file_name)
        await logger.ainfo(
            "artifact_stored",
            relative_path=relative_path,
            size=len(content),
        )
        return StoredArtifact(
            absolute_path=target,
            relative_path=relative_path,
            file_name=file_name,
            size=len(content),
        )


def _write_atomic(target: Path, content: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, target)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


class LegacyPathResolver:
    """
    Finds the file behind a stored report pointer.

    Pointers have been written in several shapes over time: absolute paths,
    paths relative to the project root, public-relative paths with and without
    a leading slash, and ``report-{id}.pdf`` names from the first generation.
    Candidates are tried in order and the first existing file wins. Legacy
    names also yield the assessment id, which recovery uses as a lookup hint.
    """

    def __init__(self, settings: Settings) -> None:
        self.project_root = Path(settings.project_root)
        self.public_dir = Path(settings.public_dir)
        self.strategies: list[Callable[[str], Path | None]] = [
            self._literal,
            self._under_public,
            self._stripped_under_public,
        ]

    def resolve(self, stored_path: str | None) -> ResolvedPath:
        if not stored_path or not stored_path.strip():
            return ResolvedPath()

        stored_path = stored_path.strip()
        normalised = stored_path.replace("\\", "/")
        if ".." in PurePosixPath(normalised).parts:
            raise ArtifactPathError(f"Artifact path escapes the public directory: {stored_path}")

        for strategy in self.strategies:
            candidate = strategy(normalised)
            if candidate is not None and self._is_allowed(candidate) and candidate.is_file():
                return ResolvedPath(path=candidate)

        return ResolvedPath(legacy_assessment_id=legacy_assessment_id(normalised))

    def _literal(self, stored_path: str) -> Path | None:
        path = Path(stored_path)
        if path.is_absolute():
            return path
        return self.project_root / path

    def _under_public(self, stored_path: str) -> Path | None:
        if stored_path.startswith("/"):
            return None
        return self.public_dir / stored_path

    def _stripped_under_public(self, stored_path: str) -> Path | None:
        stripped = stored_path.lstrip("/")
        if not stripped:
            return None
        return self.public_dir / stripped

    def _is_allowed(self, candidate: Path) -> bool:
        resolved = candidate.resolve()
        roots = (self.public_dir.resolve(), self.project_root.resolve())
        return any(resolved.is_relative_to(root) for root in roots)


def legacy_assessment_id(stored_path: str) -> int | None:
    match = LEGACY_REPORT_NAME.match(PurePosixPath(stored_path).name)
    return int(match.group(1)) if match else None
