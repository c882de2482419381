from skillctl.editors import EditorType, has_reference, inject_memory_context, inject_reference, remove_reference
from skillctl.memory import MEMORY_CONTEXT_HEADER, MemoryStore


def _context(tmp_path, *notes: str) -> str:
    store = MemoryStore(tmp_path / "store")
    for note in notes:
        store.add_memory(note)
    return store.to_context_string()


def test_memory_block_is_appended_then_replaced(tmp_path):
    rules = tmp_path / ".windsurfrules"
    rules.write_text("Project rules.\n", encoding="utf-8")

    inject_memory_context(EditorType.WINDSURF, _context(tmp_path, "Use tabs"), tmp_path)
    first = rules.read_text(encoding="utf-8")
    assert first.startswith("Project rules.\n")
    assert "Use tabs" in first

    inject_memory_context(EditorType.WINDSURF, _context(tmp_path, "Prefer pathlib"), tmp_path)
    second = rules.read_text(encoding="utf-8")
    assert second.count(MEMORY_CONTEXT_HEADER) == 1
    assert "Prefer pathlib" in second
    assert second.startswith("Project rules.\n")


def test_empty_memory_clears_the_block(tmp_path):
    rules = tmp_path / ".windsurfrules"
    rules.write_text("Project rules.\n", encoding="utf-8")
    inject_memory_context(EditorType.WINDSURF, _context(tmp_path, "Use tabs"), tmp_path)

    inject_memory_context(EditorType.WINDSURF, "", tmp_path)

    content = rules.read_text(encoding="utf-8")
    assert MEMORY_CONTEXT_HEADER not in content
    assert content == "Project rules.\n"


def test_empty_memory_does_not_create_files(tmp_path):
    inject_memory_context(EditorType.CLAUDE_CODE, "", tmp_path)
    inject_memory_context(EditorType.CURSOR, "", tmp_path)
    assert list(tmp_path.iterdir()) == []


def test_skill_references_stay_ahead_of_memory_block(tmp_path):
    skill = tmp_path / ".skillctl" / "store" / "late" / "SKILL.md"
    inject_memory_context(EditorType.WINDSURF, _context(tmp_path, "Use tabs"), tmp_path)

    inject_reference(EditorType.WINDSURF, "late", skill, tmp_path)

    content = (tmp_path / ".windsurfrules").read_text(encoding="utf-8")
    assert content.index("Skill (late)") < content.index(MEMORY_CONTEXT_HEADER)
    assert "Use tabs" in content.split(MEMORY_CONTEXT_HEADER, 1)[1]


def test_cursor_memory_goes_into_its_own_rule(tmp_path):
    inject_memory_context(EditorType.CURSOR, _context(tmp_path, "Use tabs"), tmp_path)

    rule = tmp_path / ".cursor" / "rules" / "memory.mdc"
    content = rule.read_text(encoding="utf-8")
    assert content.startswith("---\ndescription: Global Active Memory\nglobs: *\n---\n")
    assert "Use tabs" in content

    inject_memory_context(EditorType.CURSOR, "", tmp_path)
    assert not rule.exists()


def test_antigravity_memory_goes_into_memory_file(tmp_path):
    inject_memory_context(EditorType.ANTIGRAVITY, _context(tmp_path, "Use tabs"), tmp_path)

    memory_file = tmp_path / ".agent" / "memory.md"
    assert "Use tabs" in memory_file.read_text(encoding="utf-8")
    assert not (tmp_path / ".agent" / "rules.md").exists()


def test_memory_notes_are_not_mistaken_for_skill_references(tmp_path):
    rules = tmp_path / ".windsurfrules"
    rules.write_text("Project rules.\n", encoding="utf-8")
    inject_memory_context(EditorType.WINDSURF, _context(tmp_path, "Skill (foo) is deprecated"), tmp_path)
    before = rules.read_text(encoding="utf-8")
    skill = tmp_path / ".skillctl" / "store" / "foo" / "SKILL.md"

    assert not has_reference(before, "foo")
    assert inject_reference(EditorType.WINDSURF, "foo", skill, tmp_path) is True
    head = rules.read_text(encoding="utf-8").split(MEMORY_CONTEXT_HEADER, 1)[0]
    assert "Skill (foo) -> Read file: .skillctl/store/foo/SKILL.md" in head

    assert remove_reference(EditorType.WINDSURF, "foo", tmp_path) is True
    after = rules.read_text(encoding="utf-8")
    assert "Skill (foo) is deprecated" in after
    assert after == before
    assert remove_reference(EditorType.WINDSURF, "foo", tmp_path) is False
