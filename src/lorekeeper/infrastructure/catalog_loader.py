from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Type, TypeVar

from lorekeeper.domain.models.character import (
    Character,
    CharacterRole,
    LineCategory,
    RarityTier,
    RequirementKind,
    UnlockRequirement,
)
from lorekeeper.domain.models.story import (
    DialogueNode,
    Emotion,
    RelationshipDelta,
    StoryArc,
    StoryChoice,
    StoryReward,
    StoryScene,
)
from lorekeeper.domain.services.story_catalog import CatalogValidationError, StoryCatalog, validate_catalog


DEFAULT_CATALOG_PATH = "data/story/catalog.json"
_PROJECT_ROOT = Path(__file__).resolve().parents[3]

_EnumT = TypeVar("_EnumT", bound=Enum)

_logger = logging.getLogger(__name__)


class _Reader:
    """Collects every structural problem instead of stopping at the first."""

    def __init__(self) -> None:
        self.errors: list[str] = []

    def text(self, raw: dict, key: str, path: str, *, required: bool = True) -> str:
        value = raw.get(key)
        if value is None:
            if required:
                self.errors.append(f"{path}.{key} is required")
            return ""
        if not isinstance(value, str):
            self.errors.append(f"{path}.{key} must be a string")
            return ""
        return value

    def integer(self, raw: dict, key: str, path: str, *, default: int | None = None) -> int:
        value = raw.get(key, default)
        if isinstance(value, bool) or not isinstance(value, int):
            self.errors.append(f"{path}.{key} must be an integer")
            return 0
        return value

    def id_list(self, raw: dict, key: str, path: str) -> tuple[str, ...]:
        value = raw.get(key, [])
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            self.errors.append(f"{path}.{key} must be a list of strings")
            return ()
        return tuple(value)

    def objects(self, raw: dict, key: str, path: str) -> list[dict]:
        value = raw.get(key, [])
        if not isinstance(value, list):
            self.errors.append(f"{path}.{key} must be a list")
            return []
        rows: list[dict] = []
        for index, row in enumerate(value):
            if not isinstance(row, dict):
                self.errors.append(f"{path}.{key}[{index}] must be an object")
                continue
            rows.append(row)
        return rows

    def choice_of(self, enum_type: Type[_EnumT], value: Any, path: str, default: _EnumT) -> _EnumT:
        if value is None:
            return default
        try:
            return enum_type(value)
        except ValueError:
            allowed = ", ".join(str(member.value) for member in enum_type)
            self.errors.append(f"{path} has unsupported value {value!r} (allowed: {allowed})")
            return default


def _parse_node(reader: _Reader, raw: dict, path: str, default_speaker: str | None = None) -> DialogueNode:
    speaker = reader.text(raw, "speaker", path, required=default_speaker is None) or (default_speaker or "")
    voice_effect = raw.get("voice_effect")
    if voice_effect is not None and not isinstance(voice_effect, str):
        reader.errors.append(f"{path}.voice_effect must be a string")
        voice_effect = None
    return DialogueNode(
        speaker=speaker,
        text=reader.text(raw, "text", path),
        emotion=reader.choice_of(Emotion, raw.get("emotion"), f"{path}.emotion", Emotion.NEUTRAL),
        voice_effect=voice_effect or None,
    )


def _parse_choice(reader: _Reader, raw: dict, path: str) -> StoryChoice:
    delta = None
    delta_raw = raw.get("relationship_delta")
    if delta_raw is not None:
        if not isinstance(delta_raw, dict):
            reader.errors.append(f"{path}.relationship_delta must be an object")
        else:
            delta = RelationshipDelta(
                character_id=reader.text(delta_raw, "character_id", f"{path}.relationship_delta"),
                change=reader.integer(delta_raw, "change", f"{path}.relationship_delta"),
            )
    return StoryChoice(
        id=reader.text(raw, "id", path),
        text=reader.text(raw, "text", path),
        consequence=reader.text(raw, "consequence", path, required=False),
        relationship_delta=delta,
        unlocks=reader.id_list(raw, "unlocks", path),
        blocks=reader.id_list(raw, "blocks", path),
    )


def _parse_scene(reader: _Reader, raw: dict, path: str) -> StoryScene:
    return StoryScene(
        id=reader.text(raw, "id", path),
        title=reader.text(raw, "title", path, required=False),
        setting=reader.text(raw, "setting", path, required=False),
        description=reader.text(raw, "description", path, required=False),
        dialogue=tuple(
            _parse_node(reader, row, f"{path}.dialogue[{index}]")
            for index, row in enumerate(reader.objects(raw, "dialogue", path))
        ),
        choices=tuple(
            _parse_choice(reader, row, f"{path}.choices[{index}]")
            for index, row in enumerate(reader.objects(raw, "choices", path))
        ),
        outcome=reader.text(raw, "outcome", path, required=False),
        unlocks=reader.id_list(raw, "unlocks", path),
    )


def _parse_reward(reader: _Reader, raw: dict, path: str) -> StoryReward:
    amount = raw.get("amount")
    if amount is not None and (isinstance(amount, bool) or not isinstance(amount, int)):
        reader.errors.append(f"{path}.amount must be an integer")
        amount = None
    return StoryReward(
        kind=reader.text(raw, "type", path),
        amount=amount,
        item=reader.text(raw, "item", path, required=False) or None,
        description=reader.text(raw, "description", path, required=False),
    )


def _parse_arc(reader: _Reader, raw: dict, path: str) -> StoryArc:
    return StoryArc(
        id=reader.text(raw, "id", path),
        title=reader.text(raw, "title", path),
        description=reader.text(raw, "description", path, required=False),
        chapter=reader.integer(raw, "chapter", path, default=1),
        unlock_level=reader.integer(raw, "unlock_level", path, default=0),
        prerequisites=reader.id_list(raw, "prerequisites", path),
        scenes=tuple(
            _parse_scene(reader, row, f"{path}.scenes[{index}]")
            for index, row in enumerate(reader.objects(raw, "scenes", path))
        ),
        rewards=tuple(
            _parse_reward(reader, row, f"{path}.rewards[{index}]")
            for index, row in enumerate(reader.objects(raw, "rewards", path))
        ),
    )


def _parse_requirement(reader: _Reader, raw: dict, path: str) -> UnlockRequirement:
    kind = reader.choice_of(RequirementKind, raw.get("type"), f"{path}.type", RequirementKind.LEVEL)
    value = raw.get("value")
    if kind == RequirementKind.LEVEL:
        if isinstance(value, bool) or not isinstance(value, int):
            reader.errors.append(f"{path}.value must be an integer for level requirements")
            value = 0
    elif not isinstance(value, str) or not value:
        reader.errors.append(f"{path}.value must be a non-empty string")
        value = ""
    return UnlockRequirement(kind=kind, value=value, description=reader.text(raw, "description", path, required=False))


def _parse_character(reader: _Reader, raw: dict, path: str) -> Character:
    character_id = reader.text(raw, "id", path)
    personality = raw.get("personality", [])
    if not isinstance(personality, list) or not all(isinstance(item, str) for item in personality):
        reader.errors.append(f"{path}.personality must be a list of strings")
        personality = []

    lines: dict[LineCategory, tuple[DialogueNode, ...]] = {}
    lines_raw = raw.get("dialogue_lines", {})
    if not isinstance(lines_raw, dict):
        reader.errors.append(f"{path}.dialogue_lines must be an object")
        lines_raw = {}
    for category_raw, rows in lines_raw.items():
        category = reader.choice_of(LineCategory, category_raw, f"{path}.dialogue_lines", LineCategory.RANDOM)
        if not isinstance(rows, list):
            reader.errors.append(f"{path}.dialogue_lines.{category_raw} must be a list")
            continue
        nodes = []
        for index, row in enumerate(rows):
            line_path = f"{path}.dialogue_lines.{category_raw}[{index}]"
            if not isinstance(row, dict):
                reader.errors.append(f"{line_path} must be an object")
                continue
            nodes.append(_parse_node(reader, row, line_path, default_speaker=character_id))
        lines[category] = lines.get(category, ()) + tuple(nodes)

    return Character(
        id=character_id,
        name=reader.text(raw, "name", path),
        title=reader.text(raw, "title", path, required=False),
        faction=reader.text(raw, "faction", path, required=False),
        rarity=reader.choice_of(RarityTier, raw.get("rarity"), f"{path}.rarity", RarityTier.COMMON),
        role=reader.choice_of(CharacterRole, raw.get("role"), f"{path}.role", CharacterRole.SUPPORT),
        personality=frozenset(personality),
        unlock_requirements=tuple(
            _parse_requirement(reader, row, f"{path}.unlock_requirements[{index}]")
            for index, row in enumerate(reader.objects(raw, "unlock_requirements", path))
        ),
        dialogue_lines=lines,
        story_arcs=tuple(
            _parse_arc(reader, row, f"{path}.story_arcs[{index}]")
            for index, row in enumerate(reader.objects(raw, "story_arcs", path))
        ),
    )


def _parse_characters(payload: Any) -> tuple[list[Character], list[str]]:
    reader = _Reader()
    if not isinstance(payload, dict):
        return [], ["catalog root must be an object"]
    characters = [
        _parse_character(reader, row, f"characters[{index}]")
        for index, row in enumerate(reader.objects(payload, "characters", "catalog"))
    ]
    return characters, reader.errors


def validate_catalog_payload(payload: Any) -> list[str]:
    characters, errors = _parse_characters(payload)
    if errors:
        return errors
    return validate_catalog(characters)


def parse_catalog(payload: Any) -> StoryCatalog:
    characters, errors = _parse_characters(payload)
    if errors:
        raise CatalogValidationError(errors)
    catalog = StoryCatalog(characters)
    _logger.debug("Story catalog loaded", extra={"characters": len(catalog), "stories": len(catalog.stories())})
    return catalog


def resolve_catalog_path(path: str | Path = DEFAULT_CATALOG_PATH) -> Path:
    """Relative paths are tried against the working directory, then the project root."""
    source = Path(path)
    if source.is_absolute() or source.exists():
        return source
    candidate = _PROJECT_ROOT / source
    return candidate if candidate.exists() else source


def load_catalog_file(path: str | Path = DEFAULT_CATALOG_PATH) -> StoryCatalog:
    source = resolve_catalog_path(path)
    try:
        payload = json.loads(source.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise CatalogValidationError([f"Invalid JSON: {exc}"]) from exc
    return parse_catalog(payload)
