"""Active memory: short notes rendered into every editor's context."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from skillctl.exceptions import ConfigurationError, StorageError, ValidationError
from skillctl.logging import get_logger

log = get_logger(__name__)

MEMORY_FILENAME = "memory.json"
MEMORY_CONTEXT_HEADER = "# 🧠 Active Memory Context"


class MemoryEntry(BaseModel):
    """One remembered note."""

    id: str
    content: str
    source: str = "cli"
    timestamp: str
    priority: int = 0


class _MemoryFile(BaseModel):
    memories: list[MemoryEntry] = Field(default_factory=list)


class MemoryStore:
    """Flat list of notes persisted as ``<store_path>/memory.json``."""

    def __init__(self, store_path: Path | str):
        self.file_path = Path(store_path).expanduser() / MEMORY_FILENAME
        self.memories: list[MemoryEntry] = self._load()

    def _load(self) -> list[MemoryEntry]:
        try:
            raw = self.file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StorageError(f"Failed to read memory file {self.file_path}: {exc}") from exc
        try:
            return _MemoryFile.model_validate_json(raw).memories
        except PydanticValidationError as exc:
            raise ConfigurationError(f"Failed to parse memory file {self.file_path}: {exc}") from exc

    def save(self) -> None:
        payload = _MemoryFile(memories=self.memories)
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            self.file_path.write_text(payload.model_dump_json(indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Failed to write memory file {self.file_path}: {exc}") from exc

    def add_memory(self, content: str, source: str = "cli", priority: int = 0) -> str:
        """Remember ``content`` and return its short id."""
        if not str(content or "").strip():
            raise ValidationError("Memory content cannot be empty")

        memory_id = uuid.uuid4().hex[:8]
        self.memories.append(
            MemoryEntry(
                id=memory_id,
                content=content.strip(),
                source=source,
                timestamp=datetime.now(UTC).isoformat(),
                priority=int(priority),
            )
        )
        self.save()
        log.info("Memory added", id=memory_id, priority=priority)
        return memory_id

    def remove_memory(self, memory_id: str) -> bool:
        original_len = len(self.memories)
        self.memories = [memory for memory in self.memories if memory.id != memory_id]
        if len(self.memories) == original_len:
            return False
        self.save()
        log.info("Memory removed", id=memory_id)
        return True

    def list_memories(self) -> list[MemoryEntry]:
        """Highest priority first, oldest first within a priority."""
        return sorted(self.memories, key=lambda memory: (-memory.priority, memory.timestamp))

    def search_memories(self, query: str) -> list[MemoryEntry]:
        needle = str(query or "").lower()
        return [memory for memory in self.list_memories() if needle in memory.content.lower()]

    def to_context_string(self) -> str:
        """Format memories for injection into editor context; empty when nothing is stored."""
        memories = self.list_memories()
        if not memories:
            return ""

        lines = ["", MEMORY_CONTEXT_HEADER, ""]
        lines.extend(f"- [ID: {memory.id}] {memory.content}" for memory in memories)
        lines.extend(
            [
                "",
                "# 🛠️ Memory Tools",
                '- Save: `skillctl memory learn "text"`',
                "- Delete: `skillctl memory forget ID`",
                "",
            ]
        )
        return "\n".join(lines)
