"""Command line entry point for skillctl."""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import typer

from skillctl import __version__
from skillctl.cli import get_ui
from skillctl.config import ProjectConfig, Settings, set_settings
from skillctl.editors import EditorType, detect_installed_editors
from skillctl.exceptions import SkillctlError
from skillctl.logging import configure_logging, get_logger
from skillctl.manager import AddStatus, RestoreStatus, SkillManager, derive_skill_name

log = get_logger(__name__)

app = typer.Typer(help="skillctl - Secure AI skill manager", no_args_is_help=True)
memory_app = typer.Typer(help="Manage active memory", no_args_is_help=True)
app.add_typer(memory_app, name="memory")


@dataclass
class _State:
    project_dir: Path
    settings: Settings


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Report skillctl errors in red and exit with status 1."""
    try:
        yield
    except SkillctlError as exc:
        log.debug("Command failed", error_type=type(exc).__name__, error=str(exc))
        get_ui().print_error(str(exc))
        raise typer.Exit(code=1) from exc


def _state(ctx: typer.Context) -> _State:
    return ctx.find_object(_State)


def _open_manager(ctx: typer.Context) -> SkillManager:
    state = _state(ctx)
    return SkillManager.open(state.project_dir, settings=state.settings)


@app.callback()
def _main(
    ctx: typer.Context,
    project_dir: Path = typer.Option(Path("."), "-C", "--project-dir", help="Project directory"),
    config: str = typer.Option("", "-c", "--config", help="Path to settings YAML"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
) -> None:
    with _handle_errors():
        settings = Settings.load(config or None)
    set_settings(settings)
    configure_logging(settings, verbose=verbose)
    ctx.obj = _State(project_dir=project_dir.expanduser().resolve(), settings=settings)


@app.command()
def init(
    ctx: typer.Context,
    editor: list[str] | None = typer.Option(None, "-e", "--editor", help="Editor to activate (repeatable)"),
) -> None:
    """Initialize skillctl in the project directory."""
    ui = get_ui()
    state = _state(ctx)
    try:
        editors = [EditorType.parse(name) for name in editor or []]
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--editor") from exc

    with _handle_errors():
        config = SkillManager.init_project(state.project_dir, editors)
    if config is None:
        ui.print_warning("skills.json already exists.")
        return

    ui.print_success("Project initialized.")
    ui.print_path("Store", config.resolved_store_path(state.project_dir))
    if config.active_editors:
        ui.print_info("Active editors: " + ", ".join(editor.value for editor in config.active_editors))
    else:
        ui.print_warning("No editors detected. Re-run with --editor <name> to choose one.")


@app.command()
def add(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Repository URL (e.g. https://github.com/user/repo)"),
    skill: str | None = typer.Option(None, "-s", "--skill", help="Skill name to install"),
    path: str | None = typer.Option(None, "-p", "--path", help="Path to SKILL.md within the repository"),
    yes: bool = typer.Option(False, "-y", "--yes", help="Overwrite changed skills without asking"),
) -> None:
    """Add a skill from a repository."""
    ui = get_ui()
    with _handle_errors():
        if skill:
            name = skill
        elif path:
            name = derive_skill_name(path)
        else:
            raise typer.BadParameter("Pass --skill or --path.", param_hint="--skill")

        with _open_manager(ctx) as manager:
            confirm = (lambda *_: True) if yes else ui.confirm_overwrite
            result = manager.add_skill(url, name, explicit_path=path, confirm=confirm)

    if result.status is AddStatus.UNCHANGED:
        ui.print_success(f"Skill '{name}' is already up to date.")
    elif result.status is AddStatus.SKIPPED:
        ui.print_warning(f"Kept the installed copy of '{name}'.")
    else:
        ui.print_success(f"Skill '{name}' {result.status.value} from {result.repo_path}")
        ui.print_info(f"sha256: {result.entry.hash}")


@app.command()
def remove(
    ctx: typer.Context,
    skills: list[str] = typer.Argument(..., help="Names of skills to remove"),
) -> None:
    """Remove installed skills."""
    ui = get_ui()
    with _handle_errors(), _open_manager(ctx) as manager:
        removed = manager.remove_skills(skills)
    for name in skills:
        if name in removed:
            ui.print_success(f"Removed '{name}'.")
        else:
            ui.print_warning(f"Skill '{name}' is not installed.")


@app.command()
def install(ctx: typer.Context) -> None:
    """Restore skills recorded in skills.json."""
    ui = get_ui()
    with _handle_errors(), _open_manager(ctx) as manager:
        results = manager.restore()
    if not results:
        ui.print_info("No skills recorded in skills.json.")
        return
    failed = False
    for result in results:
        if result.status is RestoreStatus.VERIFIED:
            ui.print_success(f"{result.skill_name}: verified")
        elif result.status is RestoreStatus.RESTORED:
            suffix = f" ({result.message})" if result.message else ""
            ui.print_success(f"{result.skill_name}: restored{suffix}")
        else:
            failed = True
            ui.print_error(f"{result.skill_name}: {result.message}")
    if failed:
        raise typer.Exit(code=1)


@app.command("list")
def list_skills(ctx: typer.Context) -> None:
    """List installed skills."""
    with _handle_errors(), _open_manager(ctx) as manager:
        skills = manager.list_skills()
    get_ui().print_skills(skills)


@app.command()
def editors(ctx: typer.Context) -> None:
    """Show supported editors and which are active or detected."""
    state = _state(ctx)
    active: set[EditorType] = set()
    if ProjectConfig.exists(state.project_dir):
        with _handle_errors():
            active = set(ProjectConfig.load(state.project_dir).active_editors)
    detected = set(detect_installed_editors(state.project_dir))
    get_ui().print_editors(list(EditorType), active, detected)


@memory_app.command("learn")
def memory_learn(
    ctx: typer.Context,
    text: str = typer.Argument(..., help="The knowledge to remember"),
    priority: int = typer.Option(0, "--priority", help="Higher values are listed first"),
) -> None:
    """Add a new memory."""
    with _handle_errors(), _open_manager(ctx) as manager:
        memory_id = manager.memory.add_memory(text, source="cli", priority=priority)
        manager.sync_memory()
    get_ui().print_success(f"Remembered [{memory_id}]")


@memory_app.command("forget")
def memory_forget(
    ctx: typer.Context,
    memory_id: str = typer.Argument(..., metavar="ID", help="Memory ID"),
) -> None:
    """Remove a memory by ID."""
    ui = get_ui()
    with _handle_errors(), _open_manager(ctx) as manager:
        removed = manager.memory.remove_memory(memory_id)
        if removed:
            manager.sync_memory()
    if removed:
        ui.print_success(f"Forgot [{memory_id}]")
    else:
        ui.print_warning(f"No memory with ID {memory_id}")
        raise typer.Exit(code=1)


@memory_app.command("list")
def memory_list(ctx: typer.Context) -> None:
    """List all memories."""
    with _handle_errors(), _open_manager(ctx) as manager:
        memories = manager.memory.list_memories()
    get_ui().print_memories(memories)


@memory_app.command("search")
def memory_search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Query string"),
) -> None:
    """Search memories."""
    with _handle_errors(), _open_manager(ctx) as manager:
        memories = manager.memory.search_memories(query)
    get_ui().print_memories(memories, title=f"Matches for '{query}'")


@app.command()
def version() -> None:
    """Show version information."""
    get_ui().print_info(f"skillctl v{__version__}")


if __name__ == "__main__":
    app()
