"""Content-addressed local store for SKILL.md files."""

from __future__ import annotations

import hashlib
import shutil
from pathlib import Path

from skillctl.config import SkillEntry, utc_timestamp
from skillctl.exceptions import IntegrityError, StorageError
from skillctl.logging import get_logger
from skillctl.security import ensure_within, is_valid_skill_name, validate_skill_name

log = get_logger(__name__)

SKILL_FILENAME = "SKILL.md"


class SkillStore:
    """Skills stored as ``<root>/<name>/SKILL.md``, tracked by SHA-256.

    The root is canonicalized once; every path derived from a skill name is
    re-checked to stay under it before it is read, written or deleted.
    """

    def __init__(self, root: Path | str):
        raw_root = Path(root).expanduser()
        try:
            raw_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to create skill store directory {raw_root}: {exc}") from exc
        self._root = raw_root.resolve()

    @property
    def root(self) -> Path:
        return self._root

    @staticmethod
    def calculate_hash(content: str) -> str:
        """Lowercase hex SHA-256 of the UTF-8 encoded content."""
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    def _skill_dir(self, skill_name: str) -> Path:
        validate_skill_name(skill_name)
        return ensure_within(self._root, self._root / skill_name)

    def get_path(self, skill_name: str) -> Path:
        """Path of the skill's SKILL.md (whether or not it exists)."""
        return ensure_within(self._root, self._skill_dir(skill_name) / SKILL_FILENAME)

    def install(self, skill_name: str, content: str, source_url: str) -> SkillEntry:
        """Write a skill, replacing any previous copy."""
        skill_file = self.get_path(skill_name)
        digest = self.calculate_hash(content)
        try:
            skill_file.parent.mkdir(parents=True, exist_ok=True)
            skill_file.write_bytes(content.encode("utf-8"))
        except OSError as exc:
            raise StorageError(f"Failed to write {skill_file}: {exc}") from exc

        log.info("Skill stored", skill=skill_name, hash=digest, path=str(skill_file))
        return SkillEntry(
            url=source_url,
            local_path=str(skill_file),
            hash=digest,
            last_updated=utc_timestamp(),
        )

    def _current_hash(self, skill_name: str) -> str | None:
        skill_file = self.get_path(skill_name)
        try:
            data = skill_file.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Failed to read {skill_file}: {exc}") from exc
        return hashlib.sha256(data).hexdigest()

    def verify(self, skill_name: str, expected_hash: str) -> bool:
        """True when the stored file exists and matches ``expected_hash``."""
        actual = self._current_hash(skill_name)
        return actual is not None and actual == expected_hash

    def ensure_integrity(self, skill_name: str, expected_hash: str) -> None:
        """Like :meth:`verify` but raises :class:`IntegrityError` on drift."""
        actual = self._current_hash(skill_name)
        if actual != expected_hash:
            raise IntegrityError(skill_name, expected_hash, actual)

    def remove(self, skill_name: str) -> None:
        """Delete the skill directory; missing skills are ignored."""
        skill_dir = self._skill_dir(skill_name)
        if not skill_dir.exists():
            return
        try:
            shutil.rmtree(skill_dir)
        except OSError as exc:
            raise StorageError(f"Failed to remove {skill_dir}: {exc}") from exc
        log.info("Skill removed from store", skill=skill_name)

    def list_skills(self) -> set[str]:
        """Names of sub-directories that are valid skill names."""
        if not self._root.exists():
            return set()
        try:
            entries = list(self._root.iterdir())
        except OSError as exc:
            raise StorageError(f"Failed to read store directory {self._root}: {exc}") from exc
        return {entry.name for entry in entries if entry.is_dir() and is_valid_skill_name(entry.name)}
