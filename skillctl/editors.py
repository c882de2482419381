"""Editor targets and injection of skill references into their config files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from skillctl.exceptions import StorageError
from skillctl.logging import get_logger
from skillctl.memory import MEMORY_CONTEXT_HEADER
from skillctl.security import validate_skill_name

log = get_logger(__name__)


class EditorType(StrEnum):
    """Supported AI editors; values are the names stored in skills.json."""

    CURSOR = "Cursor"
    WINDSURF = "Windsurf"
    ANTIGRAVITY = "Antigravity"
    CLAUDE_CODE = "ClaudeCode"
    CLINE = "Cline"
    ROO = "Roo"
    OPENHANDS = "OpenHands"
    TRAE = "Trae"
    COPILOT = "GitHub Copilot"
    CONTINUE = "Continue"
    VSCODE = "VSCode"

    @classmethod
    def parse(cls, raw: str) -> "EditorType":
        """Match a user-supplied editor name (value, member name or alias)."""
        needle = re.sub(r"[\s_-]+", "", str(raw or "")).lower()
        for editor in cls:
            if needle in {
                re.sub(r"[\s_-]+", "", editor.value).lower(),
                editor.name.replace("_", "").lower(),
            }:
                return editor
        if needle in _EDITOR_ALIASES:
            return _EDITOR_ALIASES[needle]
        choices = ", ".join(editor.value for editor in cls)
        raise ValueError(f"Unknown editor '{raw}'. Choose from: {choices}")

    @property
    def spec(self) -> "EditorSpec":
        return EDITOR_SPECS[self]

    @property
    def config_file(self) -> Path:
        return self.spec.config_file

    @property
    def config_dir(self) -> Path:
        return self.spec.config_dir

    @property
    def skills_dir(self) -> Path:
        return self.spec.skills_dir

    @property
    def rules_dir(self) -> Path | None:
        return self.spec.rules_dir


_EDITOR_ALIASES = {
    "claude": EditorType.CLAUDE_CODE,
    "vscodecopilot": EditorType.COPILOT,
    "code": EditorType.VSCODE,
}


@dataclass(frozen=True)
class SnippetTemplate:
    """Text appended to a shared config file for one skill.

    ``marker`` is a regex with a ``{name}`` placeholder that identifies the
    skill's line. ``has_path_line`` means the path sits on the line after it.
    """

    text: str
    marker: str
    has_path_line: bool = False

    def render(self, skill_name: str, path: str) -> str:
        return self.text.format(name=skill_name, path=path)

    def pattern(self, skill_name: str) -> re.Pattern[str]:
        return re.compile(self.marker.replace("{name}", re.escape(skill_name)))


LIST_TEMPLATE = SnippetTemplate(
    text="\n- Skill ({name}) -> Read file: {path}\n",
    marker=r"Skill \({name}\)",
)
HEADING_TEMPLATE = SnippetTemplate(
    text="\n### Skill: {name}\nRefer to logic in: `{path}`\n",
    marker=r"Skill: {name}\s*$",
    has_path_line=True,
)
CONTEXT_TEMPLATE = SnippetTemplate(
    text="\nRunning context for {name}: See {path}\n",
    marker=r"context for {name}:",
)
SNIPPET_TEMPLATES = (LIST_TEMPLATE, HEADING_TEMPLATE, CONTEXT_TEMPLATE)

# Phrases that identify the path line following a two-line marker.
PATH_LINE_FRAGMENTS = ("Read file:", "Refer to logic", "See ")

CURSOR_RULE_TEMPLATE = "---\ndescription: Skill {name}\nglobs: *\n---\n# {name}\n\nRead logic from: {path}\n"
CURSOR_MEMORY_TEMPLATE = "---\ndescription: Global Active Memory\nglobs: *\n---\n{content}"


@dataclass(frozen=True)
class EditorSpec:
    """Paths (relative to the project directory) and injection template of an editor."""

    config_dir: Path
    config_file: Path
    skills_dir: Path
    template: SnippetTemplate = LIST_TEMPLATE
    rules_dir: Path | None = None
    memory_file: Path | None = None


def _spec(directory: str, config_file: str, **kwargs) -> EditorSpec:
    return EditorSpec(
        config_dir=Path(directory),
        config_file=Path(config_file),
        skills_dir=Path(directory) / "skills",
        **kwargs,
    )


EDITOR_SPECS: dict[EditorType, EditorSpec] = {
    EditorType.CURSOR: _spec(".cursor", ".cursorrules", rules_dir=Path(".cursor/rules")),
    EditorType.WINDSURF: _spec(".windsurf", ".windsurfrules"),
    EditorType.ANTIGRAVITY: _spec(
        ".agent",
        ".agent/rules.md",
        template=HEADING_TEMPLATE,
        memory_file=Path(".agent/memory.md"),
    ),
    EditorType.CLAUDE_CODE: _spec(".claude", ".claude/config"),
    EditorType.CLINE: _spec(".cline", ".cline/config", template=CONTEXT_TEMPLATE),
    EditorType.ROO: _spec(".roo", ".roo/config", template=CONTEXT_TEMPLATE),
    EditorType.OPENHANDS: _spec(".openhands", ".openhands/config"),
    EditorType.TRAE: _spec(".trae", ".trae/config"),
    EditorType.COPILOT: _spec(".github", ".github/copilot-instructions.md"),
    EditorType.CONTINUE: _spec(".continue", ".continue/config.json"),
    EditorType.VSCODE: _spec(".vscode", ".vscode/settings.json"),
}


def _base_dir(project_dir: Path | str | None) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir is not None else Path.cwd().resolve()


def reference_path(skill_path: Path | str, project_dir: Path | str | None = None) -> str:
    """Path written into editor files: project-relative when possible."""
    path = Path(skill_path)
    base = _base_dir(project_dir)
    if path.is_absolute():
        try:
            return path.resolve().relative_to(base).as_posix()
        except ValueError:
            return str(path)
    return path.as_posix()


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise StorageError(f"Failed to read editor config file {path}: {exc}") from exc


def _write_text(path: Path, content: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise StorageError(f"Failed to write editor config file {path}: {exc}") from exc


def _unlink(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise StorageError(f"Failed to remove {path}: {exc}") from exc
    return True


def _split_memory_block(content: str) -> tuple[str, str]:
    """Split shared-file content into skill references and the trailing memory block."""
    index = content.find(MEMORY_CONTEXT_HEADER)
    if index == -1:
        return content, ""
    return content[:index], content[index:]


def has_reference(content: str, skill_name: str) -> bool:
    """True when a line before the memory block carries a marker for exactly ``skill_name``."""
    head, _ = _split_memory_block(content)
    patterns = [template.pattern(skill_name) for template in SNIPPET_TEMPLATES]
    return any(pattern.search(line) for line in head.splitlines() for pattern in patterns)


def detect_installed_editors(project_dir: Path | str | None = None) -> list[EditorType]:
    """Editors whose config directory exists in the project."""
    base = _base_dir(project_dir)
    return [editor for editor in EditorType if (base / editor.config_dir).is_dir()]


def inject_reference(
    editor: EditorType,
    skill_name: str,
    skill_path: Path | str,
    project_dir: Path | str | None = None,
) -> bool:
    """Point an editor at a skill. Returns False when nothing had to change."""
    validate_skill_name(skill_name)
    base = _base_dir(project_dir)
    path_text = reference_path(skill_path, base)
    spec = editor.spec

    if spec.rules_dir is not None:
        rule_file = base / spec.rules_dir / f"{skill_name}.mdc"
        content = CURSOR_RULE_TEMPLATE.format(name=skill_name, path=path_text)
        if _read_text(rule_file) == content:
            return False
        _write_text(rule_file, content)
        log.info("Rule file written", editor=editor.value, skill=skill_name, path=str(rule_file))
        return True

    config_file = base / spec.config_file
    current = _read_text(config_file) or ""
    if has_reference(current, skill_name):
        log.debug("Reference already present", editor=editor.value, skill=skill_name)
        return False

    snippet = spec.template.render(skill_name, path_text)
    head, memory_block = _split_memory_block(current)
    if memory_block:
        # Keep the memory block last so memory syncs can replace it wholesale.
        new_content = f"{head.rstrip()}{snippet}\n{memory_block}"
    else:
        new_content = current + snippet
    _write_text(config_file, new_content)
    log.info("Reference injected", editor=editor.value, skill=skill_name, path=str(config_file))
    return True


def remove_reference(
    editor: EditorType,
    skill_name: str,
    project_dir: Path | str | None = None,
) -> bool:
    """Drop a skill's reference from an editor. Returns True if anything was removed.

    Shared files are edited line by line up to the memory block: marker lines
    for the skill go together with the blank line the snippet added before
    them, and after a two-line template marker the following path line goes too.
    """
    validate_skill_name(skill_name)
    base = _base_dir(project_dir)
    spec = editor.spec

    if spec.rules_dir is not None:
        removed = _unlink(base / spec.rules_dir / f"{skill_name}.mdc")
        if removed:
            log.info("Rule file removed", editor=editor.value, skill=skill_name)
        return removed

    config_file = base / spec.config_file
    content = _read_text(config_file)
    if content is None:
        return False

    head, memory_block = _split_memory_block(content)
    matchers = [(template.pattern(skill_name), template.has_path_line) for template in SNIPPET_TEMPLATES]
    kept: list[str] = []
    skip_path_line = False
    for line in head.splitlines():
        matched = [has_path for pattern, has_path in matchers if pattern.search(line)]
        if matched:
            if kept and not kept[-1].strip():
                kept.pop()
            skip_path_line = any(matched)
            continue
        if skip_path_line and any(fragment in line for fragment in PATH_LINE_FRAGMENTS):
            skip_path_line = False
            continue
        skip_path_line = False
        kept.append(line)

    new_content = "\n".join(kept)
    if kept and head.endswith("\n"):
        new_content += "\n"
    new_content += memory_block
    if new_content == content:
        return False
    _write_text(config_file, new_content)
    log.info("Reference removed", editor=editor.value, skill=skill_name, path=str(config_file))
    return True


def inject_memory_context(
    editor: EditorType,
    memory_content: str,
    project_dir: Path | str | None = None,
) -> None:
    """Write the active-memory block into an editor.

    For shared config files the block is assumed to be the trailing content:
    everything from the memory header to the end of the file is replaced.
    """
    base = _base_dir(project_dir)
    spec = editor.spec

    if spec.rules_dir is not None or spec.memory_file is not None:
        if spec.rules_dir is not None:
            target = base / spec.rules_dir / "memory.mdc"
            content = CURSOR_MEMORY_TEMPLATE.format(content=memory_content)
        else:
            target = base / spec.memory_file
            content = memory_content
        if memory_content.strip():
            _write_text(target, content)
        else:
            _unlink(target)
        return

    config_file = base / spec.config_file
    current = _read_text(config_file)
    if current is None:
        if memory_content.strip():
            _write_text(config_file, memory_content)
        return

    if MEMORY_CONTEXT_HEADER in current:
        before = current.split(MEMORY_CONTEXT_HEADER, 1)[0].rstrip()
        new_content = f"{before}\n{memory_content}"
    elif memory_content.strip():
        new_content = f"{current.rstrip()}\n{memory_content}"
    else:
        return
    if new_content != current:
        _write_text(config_file, new_content)
        log.info("Memory context updated", editor=editor.value, path=str(config_file))
