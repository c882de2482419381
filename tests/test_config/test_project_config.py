import json
from pathlib import Path

import pytest

from skillctl.config import PROJECT_CONFIG_FILENAME, ProjectConfig, SkillEntry
from skillctl.editors import EditorType
from skillctl.exceptions import ConfigurationError


def _entry() -> SkillEntry:
    return SkillEntry(
        url="https://github.com/acme/skills",
        local_path="/tmp/store/auth/SKILL.md",
        hash="a" * 64,
        last_updated="2024-01-01T00:00:00+00:00",
    )


def test_defaults():
    config = ProjectConfig()
    assert config.active_editors == []
    assert config.store_path == ".skillctl/store"
    assert config.skills == {}


def test_save_writes_indented_json(tmp_path: Path):
    config = ProjectConfig(active_editors=[EditorType.CURSOR, EditorType.COPILOT])
    config.skills["auth"] = _entry()

    config.save(tmp_path)

    text = (tmp_path / PROJECT_CONFIG_FILENAME).read_text(encoding="utf-8")
    assert text.endswith("\n")
    payload = json.loads(text)
    assert payload["active_editors"] == ["Cursor", "GitHub Copilot"]
    assert payload["store_path"] == ".skillctl/store"
    assert payload["skills"]["auth"]["hash"] == "a" * 64


def test_load_round_trips(tmp_path: Path):
    config = ProjectConfig(active_editors=[EditorType.WINDSURF])
    config.skills["auth"] = _entry()
    config.save(tmp_path)

    loaded = ProjectConfig.load(tmp_path)

    assert loaded == config
    assert loaded.active_editors == [EditorType.WINDSURF]


def test_load_missing_file_suggests_init(tmp_path: Path):
    assert ProjectConfig.exists(tmp_path) is False
    with pytest.raises(ConfigurationError, match="skillctl init"):
        ProjectConfig.load(tmp_path)


@pytest.mark.parametrize(
    "text",
    [
        "{not json",
        '{"active_editors": ["Emacs"]}',
        '{"skills": {"x": {"url": "u"}}}',
    ],
)
def test_load_corrupt_file(tmp_path: Path, text: str):
    (tmp_path / PROJECT_CONFIG_FILENAME).write_text(text, encoding="utf-8")
    with pytest.raises(ConfigurationError, match="corrupted"):
        ProjectConfig.load(tmp_path)


def test_resolved_store_path(tmp_path: Path):
    assert ProjectConfig().resolved_store_path(tmp_path) == tmp_path.resolve() / ".skillctl" / "store"

    absolute = tmp_path / "elsewhere"
    assert ProjectConfig(store_path=str(absolute)).resolved_store_path(tmp_path) == absolute
