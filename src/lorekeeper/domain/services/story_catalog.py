from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Dict, List, Optional

from lorekeeper.domain.models.character import NARRATOR, Character, RequirementKind
from lorekeeper.domain.models.story import StoryArc


class CatalogValidationError(ValueError):
    def __init__(self, errors: Sequence[str]) -> None:
        self.errors: list[str] = list(errors)
        summary = "; ".join(self.errors[:5])
        if len(self.errors) > 5:
            summary += f" (+{len(self.errors) - 5} more)"
        super().__init__(f"Story catalog invalid: {summary}")


def validate_catalog(characters: Sequence[Character]) -> list[str]:
    errors: list[str] = []
    character_ids: set[str] = set()
    character_names: set[str] = set()
    for character in characters:
        if not character.id:
            errors.append("character.id is required")
        elif character.id in character_ids:
            errors.append(f"duplicate character id: {character.id}")
        character_ids.add(character.id)
        character_names.add(character.name)

    def _known_speaker(speaker: str) -> bool:
        return speaker == NARRATOR or speaker in character_ids or speaker in character_names

    story_ids: set[str] = set()
    for character in characters:
        owner = f"characters[{character.id}]"
        for requirement in character.unlock_requirements:
            if requirement.kind == RequirementKind.LEVEL:
                if not isinstance(requirement.value, int) or requirement.value < 0:
                    errors.append(f"{owner}.unlock_requirements level value must be a non-negative int")
            elif requirement.kind == RequirementKind.CHARACTER and requirement.value not in character_ids:
                errors.append(f"{owner}.unlock_requirements references unknown character {requirement.value}")
        for category, lines in character.dialogue_lines.items():
            for index, line in enumerate(lines):
                if not line.text.strip():
                    errors.append(f"{owner}.dialogue_lines.{category.value}[{index}].text is required")

        for arc in character.story_arcs:
            arc_key = f"{owner}.story_arcs[{arc.id}]"
            if not arc.id:
                errors.append(f"{owner}.story_arcs id is required")
            elif arc.id in story_ids:
                errors.append(f"duplicate story id: {arc.id}")
            story_ids.add(arc.id)
            if arc.unlock_level < 0:
                errors.append(f"{arc_key}.unlock_level must be >= 0")
            if not arc.scenes:
                errors.append(f"{arc_key} must define at least one scene")

            scene_ids: set[str] = set()
            for scene in arc.scenes:
                scene_key = f"{arc_key}.scenes[{scene.id}]"
                if scene.id in scene_ids:
                    errors.append(f"{arc_key} has duplicate scene id {scene.id}")
                scene_ids.add(scene.id)
                if not scene.dialogue:
                    errors.append(f"{scene_key} must define at least one dialogue node")
                for index, node in enumerate(scene.dialogue):
                    if not _known_speaker(node.speaker):
                        errors.append(f"{scene_key}.dialogue[{index}] has unknown speaker {node.speaker}")
                    if not node.text.strip():
                        errors.append(f"{scene_key}.dialogue[{index}].text is required")
                choice_ids: set[str] = set()
                for choice in scene.choices:
                    if choice.id in choice_ids:
                        errors.append(f"{scene_key} has duplicate choice id {choice.id}")
                    choice_ids.add(choice.id)
                    delta = choice.relationship_delta
                    if delta is not None and delta.character_id not in character_ids:
                        errors.append(f"{scene_key}.choices[{choice.id}] affects unknown character {delta.character_id}")
    return errors


class StoryCatalog:
    """Read-only registry of characters and the story arcs they own."""

    def __init__(self, characters: Iterable[Character]) -> None:
        ordered = tuple(characters)
        errors = validate_catalog(ordered)
        if errors:
            raise CatalogValidationError(errors)

        self._characters: tuple[Character, ...] = ordered
        self._by_id: Dict[str, Character] = {row.id: row for row in ordered}
        self._by_name: Dict[str, Character] = {}
        for row in ordered:
            self._by_name.setdefault(row.name, row)
        self._stories: List[StoryArc] = []
        self._story_by_id: Dict[str, StoryArc] = {}
        self._story_owner: Dict[str, Character] = {}
        for character in ordered:
            for arc in character.story_arcs:
                self._stories.append(arc)
                self._story_by_id[arc.id] = arc
                self._story_owner[arc.id] = character

    def characters(self) -> tuple[Character, ...]:
        return self._characters

    def character(self, character_id: str) -> Optional[Character]:
        return self._by_id.get(str(character_id))

    def stories(self) -> tuple[StoryArc, ...]:
        return tuple(self._stories)

    def story(self, story_id: str) -> Optional[StoryArc]:
        return self._story_by_id.get(str(story_id))

    def owner_of(self, story_id: str) -> Optional[Character]:
        return self._story_owner.get(str(story_id))

    def resolve_speaker(self, speaker: str) -> Optional[Character]:
        """Speakers may be written as a character id or a display name."""
        if speaker == NARRATOR:
            return None
        return self._by_id.get(speaker) or self._by_name.get(speaker)

    def __len__(self) -> int:
        return len(self._characters)
