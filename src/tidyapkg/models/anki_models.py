"""Pydantic models for Anki data structures."""

import copy
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AnkiModel(BaseModel):
    """Represents an Anki note type model."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    fields: list[dict[str, Any]] = Field(default_factory=list)
    templates: list[dict[str, Any]] = Field(default_factory=list)
    css: str = ""
    original_data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "AnkiModel":
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            fields=data.get("flds", []),
            templates=data.get("tmpls", []),
            css=data.get("css", ""),
            original_data=copy.deepcopy(data),
        )

    def to_json(self) -> dict[str, Any]:
        """Serialize back to the collection's JSON layout."""
        data = copy.deepcopy(self.original_data)
        data.update(
            id=self.id,
            name=self.name,
            flds=copy.deepcopy(self.fields),
            tmpls=copy.deepcopy(self.templates),
            css=self.css,
        )
        return data

    def __hash__(self) -> int:
        """Hash based on model ID for deduplication."""
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        """Equality based on model ID."""
        if not isinstance(other, AnkiModel):
            return False
        return self.id == other.id


class AnkiDeck(BaseModel):
    """Represents an Anki deck document."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    dyn: int = 0  # 1 for filtered decks, which carry no options group
    conf: int | None = None
    original_data: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_dyn(self) -> bool:
        return bool(self.dyn)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "AnkiDeck":
        conf = data.get("conf")
        return cls(
            id=int(data["id"]),
            name=data["name"],
            dyn=int(data.get("dyn", 0)),
            conf=int(conf) if conf is not None else None,
            original_data=copy.deepcopy(data),
        )

    def with_conf(self, conf_id: int) -> "AnkiDeck":
        """Independent copy of this deck pointing at another options group."""
        return self.model_copy(update={"conf": conf_id}, deep=True)

    def to_json(self) -> dict[str, Any]:
        data = copy.deepcopy(self.original_data)
        data.update(id=self.id, name=self.name, dyn=self.dyn)
        if self.conf is not None:
            data["conf"] = self.conf
        return data


class AnkiDeckConfig(BaseModel):
    """Represents a deck options group shared by decks."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str = ""
    original_data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "AnkiDeckConfig":
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            original_data=copy.deepcopy(data),
        )

    def to_json(self) -> dict[str, Any]:
        data = copy.deepcopy(self.original_data)
        data.update(id=self.id, name=self.name)
        return data


class ExportOptions(BaseModel):
    """What to put into a package."""

    did: int | None = Field(None, description="Deck to export with its children; None for all")
    include_sched: bool = Field(False, description="Keep review history and scheduling")
    include_media: bool = Field(True, description="Bundle referenced media files")


class CopyResult(BaseModel):
    """Result of copying a selection into a derived collection."""

    model_config = ConfigDict(frozen=True)

    path: Path
    card_count: int
    note_ids: list[int]
    model_ids: list[int]


class ExportResult(BaseModel):
    """Result of writing a package."""

    model_config = ConfigDict(frozen=True)

    package_path: Path
    cards_exported: int
    media: dict[str, str] = Field(default_factory=dict)  # archive entry -> filename
    message: str = ""
