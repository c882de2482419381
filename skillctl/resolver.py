"""Locate a skill's SKILL.md inside a remote repository."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlparse

from skillctl.config import ResolverConfig, get_settings
from skillctl.exceptions import NetworkError, SkillNotFoundError, ValidationError
from skillctl.logging import get_logger
from skillctl.security import validate_skill_name, validate_url

log = get_logger(__name__)

# Conventional SKILL.md locations, highest priority first.
SKILL_PATH_TEMPLATES: tuple[str, ...] = (
    "skills/{name}/SKILL.md",
    "plugins/javascript-typescript/skills/{name}/SKILL.md",
    "plugins/typescript/skills/{name}/SKILL.md",
    "plugins/javascript/skills/{name}/SKILL.md",
    ".agent/skills/{name}/SKILL.md",
    ".cursor/skills/{name}/SKILL.md",
    ".windsurf/skills/{name}/SKILL.md",
)


class Downloader(Protocol):
    def download(self, url: str) -> str: ...


@dataclass(frozen=True)
class ResolvedSkill:
    """Content found for a skill and where it came from."""

    content: str
    path: str
    url: str


def normalize_repo_path(path_text: str) -> str:
    """Normalize a repository-relative path, refusing to escape the repository."""
    cleaned = str(path_text or "").replace("\\", "/").strip().strip("/")
    if not cleaned:
        raise ValidationError("Skill path cannot be empty.")
    parts = [part for part in cleaned.split("/") if part]
    if any(part in {".", ".."} for part in parts):
        raise ValidationError("Skill path cannot contain '.' or '..' path segments.")
    return posixpath.join(*parts)


def raw_base_url(repo_url: str) -> str:
    """Turn a repository web URL into the base URL serving raw files.

    ``https://github.com/o/r`` becomes ``https://raw.githubusercontent.com/o/r``
    and ``https://gitlab.com/g/r`` becomes ``https://gitlab.com/g/r/-/raw``;
    a branch and a file path are appended to the result.
    """
    parsed = urlparse(str(repo_url or "").strip())
    host = (parsed.hostname or "").lower()
    path = parsed.path.rstrip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]

    if host in {"github.com", "www.github.com"}:
        return f"https://raw.githubusercontent.com{path}"
    if host in {"gitlab.com", "www.gitlab.com"}:
        if "/-/raw" in path:
            path = path[: path.index("/-/raw")]
        return f"https://gitlab.com{path}/-/raw"
    return f"{parsed.scheme}://{parsed.netloc}{path}"


def candidate_paths(skill_name: str, explicit_path: str | None = None) -> list[str]:
    """Repository-relative paths to try, in priority order."""
    if explicit_path is not None:
        return [normalize_repo_path(explicit_path)]
    return [template.format(name=skill_name) for template in SKILL_PATH_TEMPLATES]


class SkillResolver:
    """Probe candidate paths through a downloader until one succeeds."""

    def __init__(self, downloader: Downloader, resolver: ResolverConfig | None = None):
        self.downloader = downloader
        self._branches = list((resolver or get_settings().resolver).branches) or ["main"]

    def candidate_urls(
        self,
        repo_url: str,
        skill_name: str,
        explicit_path: str | None = None,
    ) -> list[tuple[str, str]]:
        """Return ``(repo_path, url)`` pairs; each branch gets every path before the next."""
        base = raw_base_url(repo_url)
        paths = candidate_paths(skill_name, explicit_path)
        return [(path, f"{base}/{branch}/{path}") for branch in self._branches for path in paths]

    def resolve(
        self,
        repo_url: str,
        skill_name: str,
        explicit_path: str | None = None,
    ) -> ResolvedSkill:
        """Find and download a skill.

        Network failures move on to the next candidate; validation failures
        (bad URL, suspicious content) abort immediately.

        Raises:
            SkillNotFoundError: every candidate failed.
        """
        validate_skill_name(skill_name)
        validate_url(repo_url)

        last_url: str | None = None
        last_error = "no candidate paths"
        for repo_path, url in self.candidate_urls(repo_url, skill_name, explicit_path):
            try:
                content = self.downloader.download(url)
            except NetworkError as exc:
                last_url, last_error = url, str(exc)
                log.debug("Candidate path failed", skill=skill_name, url=url, error=str(exc))
                continue
            log.info("Skill resolved", skill=skill_name, url=url)
            return ResolvedSkill(content=content, path=repo_path, url=url)

        raise SkillNotFoundError(skill_name, last_url, last_error)
