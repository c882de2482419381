"""Console output for skillctl commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from skillctl.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

    from skillctl.config import SkillEntry
    from skillctl.editors import EditorType
    from skillctl.manager import InstalledSkill
    from skillctl.memory import MemoryEntry

log = get_logger(__name__)

_STATE_STYLES = {
    "ok": "green",
    "modified": "yellow",
    "missing": "red",
    "untracked": "dim",
}


class TerminalUI:
    """Terminal output using rich."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console(soft_wrap=True, highlight=False)

    def print_error(self, error: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]Error:[/red] {escape(error)}")

    def print_warning(self, warning: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]Warning:[/yellow] {escape(warning)}")

    def print_success(self, message: str) -> None:
        """Print success message."""
        self.console.print(f"[green]OK:[/green] {escape(message)}")

    def print_info(self, message: str) -> None:
        self.console.print(escape(message))

    def print_skills(self, skills: list[InstalledSkill]) -> None:
        """Print installed skills with their store state."""
        if not skills:
            self.console.print("No skills installed.")
            self.console.print("Use 'skillctl add <url> --skill <name>' to add one.")
            return

        table = Table(title=f"Installed skills ({len(skills)})")
        table.add_column("Skill", style="bold")
        table.add_column("State")
        table.add_column("Hash")
        table.add_column("Source", overflow="fold")
        for skill in skills:
            style = _STATE_STYLES.get(skill.state.value, "")
            entry = skill.entry
            table.add_row(
                escape(skill.name),
                f"[{style}]{skill.state.value}[/{style}]" if style else skill.state.value,
                entry.hash[:12] if entry else "-",
                escape(entry.url) if entry else "-",
            )
        self.console.print(table)

    def print_editors(self, editors: list[EditorType], active: set[EditorType], detected: set[EditorType]) -> None:
        """Print the editor target table."""
        table = Table(title="Editors")
        table.add_column("Editor", style="bold")
        table.add_column("Config")
        table.add_column("Skills dir")
        table.add_column("Active")
        table.add_column("Detected")
        for editor in editors:
            config = editor.rules_dir if editor.rules_dir is not None else editor.config_file
            table.add_row(
                editor.value,
                f"{config.as_posix()}/" if editor.rules_dir is not None else config.as_posix(),
                editor.skills_dir.as_posix(),
                "yes" if editor in active else "",
                "yes" if editor in detected else "",
            )
        self.console.print(table)

    def print_memories(self, memories: list[MemoryEntry], title: str = "Active memory") -> None:
        if not memories:
            self.console.print("No memories stored.")
            return
        table = Table(title=f"{title} ({len(memories)})")
        table.add_column("ID", style="bold")
        table.add_column("Priority")
        table.add_column("Content", overflow="fold")
        for memory in memories:
            table.add_row(memory.id, str(memory.priority), escape(memory.content))
        self.console.print(table)

    def print_path(self, label: str, path: Path) -> None:
        self.console.print(f"{escape(label)}: [cyan]{escape(str(path))}[/cyan]")

    def confirm_overwrite(self, skill_name: str, existing: SkillEntry, new_hash: str) -> bool:
        """Ask before replacing a skill whose content changed."""
        self.print_warning(
            f"Skill '{skill_name}' differs from the installed copy "
            f"(installed {existing.hash[:12]}, fetched {new_hash[:12]})."
        )
        answer = Confirm.ask("Overwrite the installed skill?", default=False, console=self.console)
        log.debug("Overwrite prompt answered", skill=skill_name, overwrite=answer)
        return answer


# Global UI instance
_ui: TerminalUI | None = None


def get_ui() -> TerminalUI:
    """Get the global UI instance."""
    global _ui
    if _ui is None:
        _ui = TerminalUI()
    return _ui


def set_ui(ui: TerminalUI | None) -> None:
    """Set (or reset with ``None``) the global UI instance."""
    global _ui
    _ui = ui
