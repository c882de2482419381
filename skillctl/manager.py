"""Install/remove/restore workflow tying fetcher, store and editors together."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from skillctl.config import ProjectConfig, Settings, SkillEntry, get_settings
from skillctl.editors import (
    EditorType,
    detect_installed_editors,
    inject_memory_context,
    inject_reference,
    remove_reference,
)
from skillctl.exceptions import IntegrityError, NetworkError, ValidationError
from skillctl.logging import get_logger
from skillctl.memory import MemoryStore
from skillctl.network import SecureHttpClient
from skillctl.resolver import SkillResolver, normalize_repo_path
from skillctl.security import validate_skill_name
from skillctl.store import SkillStore

log = get_logger(__name__)

# (skill name, entry currently recorded, hash of the freshly fetched content) -> overwrite?
ConfirmOverwrite = Callable[[str, SkillEntry, str], bool]


class AddStatus(StrEnum):
    INSTALLED = "installed"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


class RestoreStatus(StrEnum):
    VERIFIED = "verified"
    RESTORED = "restored"
    FAILED = "failed"


class SkillState(StrEnum):
    OK = "ok"
    MODIFIED = "modified"
    MISSING = "missing"
    UNTRACKED = "untracked"


@dataclass
class AddResult:
    skill_name: str
    status: AddStatus
    entry: SkillEntry
    repo_path: str
    url: str


@dataclass
class RestoreResult:
    skill_name: str
    status: RestoreStatus
    message: str = ""


@dataclass
class InstalledSkill:
    name: str
    state: SkillState
    entry: SkillEntry | None = None


def derive_skill_name(explicit_path: str) -> str:
    """Skill name implied by a repository path such as ``skills/foo/SKILL.md``."""
    parts = normalize_repo_path(explicit_path).split("/")
    if parts[-1].lower() == "skill.md":
        if len(parts) < 2:
            raise ValidationError("Cannot derive a skill name from a root-level SKILL.md; pass --skill.")
        name = parts[-2]
    else:
        name = parts[-1].removesuffix(".md")
    return validate_skill_name(name)


class SkillManager:
    """Everything one command needs: project config, store, HTTP client, resolver.

    The project configuration is held here and written back explicitly with
    :meth:`save`; nothing is kept in module-level state.
    """

    def __init__(
        self,
        project_dir: Path | str,
        config: ProjectConfig,
        settings: Settings | None = None,
        client: SecureHttpClient | None = None,
    ):
        self.project_dir = Path(project_dir).expanduser().resolve()
        self.config = config
        self.settings = settings or get_settings()
        self.store = SkillStore(config.resolved_store_path(self.project_dir))
        self.client = client or SecureHttpClient(self.settings.network)
        self.resolver = SkillResolver(self.client, self.settings.resolver)

    @classmethod
    def open(
        cls,
        project_dir: Path | str,
        settings: Settings | None = None,
        client: SecureHttpClient | None = None,
    ) -> "SkillManager":
        """Load ``skills.json`` from ``project_dir``."""
        return cls(project_dir, ProjectConfig.load(project_dir), settings=settings, client=client)

    @staticmethod
    def init_project(
        project_dir: Path | str,
        editors: Iterable[EditorType] | None = None,
    ) -> ProjectConfig | None:
        """Create ``skills.json`` and the store; ``None`` if already initialized."""
        if ProjectConfig.exists(project_dir):
            return None
        selected = list(editors or []) or detect_installed_editors(project_dir)
        config = ProjectConfig(active_editors=selected)
        SkillStore(config.resolved_store_path(project_dir))
        config.save(project_dir)
        log.info("Project initialized", editors=[editor.value for editor in selected])
        return config

    def __enter__(self) -> "SkillManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def save(self) -> None:
        self.config.save(self.project_dir)

    @property
    def memory(self) -> MemoryStore:
        return MemoryStore(self.store.root)

    def _inject_all(self, skill_name: str) -> None:
        skill_path = self.store.get_path(skill_name)
        for editor in self.config.active_editors:
            inject_reference(editor, skill_name, skill_path, self.project_dir)

    def _remove_all(self, skill_name: str) -> None:
        for editor in self.config.active_editors:
            remove_reference(editor, skill_name, self.project_dir)

    def add_skill(
        self,
        repo_url: str,
        skill_name: str,
        explicit_path: str | None = None,
        confirm: ConfirmOverwrite | None = None,
    ) -> AddResult:
        """Fetch a skill, store it and reference it from every active editor.

        When the skill is already recorded, identical content (and an intact
        local copy) is a no-op; anything else needs ``confirm`` to return
        True, and without ``confirm`` the existing copy is kept.
        """
        validate_skill_name(skill_name)
        resolved = self.resolver.resolve(repo_url, skill_name, explicit_path)
        new_hash = SkillStore.calculate_hash(resolved.content)

        status = AddStatus.INSTALLED
        existing = self.config.skills.get(skill_name)
        if existing is not None:
            if existing.hash == new_hash and self.store.verify(skill_name, existing.hash):
                log.info("Skill unchanged", skill=skill_name, hash=new_hash)
                self._inject_all(skill_name)
                return AddResult(skill_name, AddStatus.UNCHANGED, existing, resolved.path, resolved.url)
            if confirm is None or not confirm(skill_name, existing, new_hash):
                log.warning("Overwrite declined", skill=skill_name, stored=existing.hash, fetched=new_hash)
                return AddResult(skill_name, AddStatus.SKIPPED, existing, resolved.path, resolved.url)
            status = AddStatus.UPDATED

        entry = self.store.install(skill_name, resolved.content, resolved.url)
        self.config.skills[skill_name] = entry
        self.save()
        self._inject_all(skill_name)
        return AddResult(skill_name, status, entry, resolved.path, resolved.url)

    def remove_skills(self, skill_names: Iterable[str]) -> list[str]:
        """Remove skills from store, editors and config; returns the names removed."""
        names = [validate_skill_name(name) for name in skill_names]
        removed: list[str] = []
        for name in names:
            if name not in self.config.skills and name not in self.store.list_skills():
                log.warning("Skill not installed", skill=name)
                continue
            self.store.remove(name)
            self._remove_all(name)
            self.config.skills.pop(name, None)
            removed.append(name)
        if removed:
            self.save()
        return removed

    def restore(self) -> list[RestoreResult]:
        """Re-create every recorded skill whose stored copy is missing or altered."""
        results: list[RestoreResult] = []
        changed = False
        for name, entry in sorted(self.config.skills.items()):
            try:
                validate_skill_name(name)
                self.store.ensure_integrity(name, entry.hash)
            except ValidationError as exc:
                results.append(RestoreResult(name, RestoreStatus.FAILED, str(exc)))
                continue
            except IntegrityError as exc:
                log.warning("Integrity check failed, re-downloading", skill=name, error=str(exc))
                try:
                    content = self.client.download(entry.url)
                except (NetworkError, ValidationError) as download_exc:
                    log.error("Restore failed", skill=name, url=entry.url, error=str(download_exc))
                    results.append(RestoreResult(name, RestoreStatus.FAILED, str(download_exc)))
                    continue
                new_entry = self.store.install(name, content, entry.url)
                message = ""
                if new_entry.hash != entry.hash:
                    message = "upstream content changed since it was recorded"
                    log.warning("Upstream content changed", skill=name, recorded=entry.hash, fetched=new_entry.hash)
                self.config.skills[name] = new_entry
                changed = True
                results.append(RestoreResult(name, RestoreStatus.RESTORED, message))
            else:
                results.append(RestoreResult(name, RestoreStatus.VERIFIED))
            self._inject_all(name)
        if changed:
            self.save()
        return results

    def list_skills(self) -> list[InstalledSkill]:
        """Recorded skills with their store state, plus untracked store directories."""
        installed: list[InstalledSkill] = []
        on_disk = self.store.list_skills()
        for name, entry in sorted(self.config.skills.items()):
            if name not in on_disk or not self.store.get_path(name).is_file():
                state = SkillState.MISSING
            elif self.store.verify(name, entry.hash):
                state = SkillState.OK
            else:
                state = SkillState.MODIFIED
            installed.append(InstalledSkill(name, state, entry))
        for name in sorted(on_disk - set(self.config.skills)):
            installed.append(InstalledSkill(name, SkillState.UNTRACKED))
        return installed

    def sync_memory(self) -> None:
        """Render the memory store into every active editor."""
        content = self.memory.to_context_string()
        for editor in self.config.active_editors:
            inject_memory_context(editor, content, self.project_dir)
