"""Small catalog builders shared by the unit tests."""

from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

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
from lorekeeper.domain.services.story_catalog import StoryCatalog


def node(text: str, speaker: str = "narrator", voice_effect: str | None = None) -> DialogueNode:
    return DialogueNode(speaker=speaker, text=text, emotion=Emotion.NEUTRAL, voice_effect=voice_effect)


def scene(scene_id: str, *texts: str, choices: tuple[StoryChoice, ...] = (), speaker: str = "narrator") -> StoryScene:
    return StoryScene(
        id=scene_id,
        setting=f"{scene_id} setting",
        description="",
        dialogue=tuple(node(text, speaker) for text in texts),
        choices=choices,
        outcome=f"{scene_id} outcome",
    )


def choice(choice_id: str, character_id: str | None = None, change: int = 0) -> StoryChoice:
    delta = RelationshipDelta(character_id=character_id, change=change) if character_id else None
    return StoryChoice(id=choice_id, text=f"Pick {choice_id}", consequence=f"{choice_id} happened", relationship_delta=delta)


def arc(
    arc_id: str,
    *scenes: StoryScene,
    unlock_level: int = 1,
    prerequisites: tuple[str, ...] = (),
    rewards: tuple[StoryReward, ...] = (),
) -> StoryArc:
    return StoryArc(
        id=arc_id,
        title=f"{arc_id} title",
        description="",
        chapter=1,
        unlock_level=unlock_level,
        scenes=tuple(scenes),
        prerequisites=prerequisites,
        rewards=rewards,
    )


def character(
    character_id: str,
    *,
    name: str | None = None,
    level: int = 1,
    personality: tuple[str, ...] = (),
    role: CharacterRole = CharacterRole.WARRIOR,
    arcs: tuple[StoryArc, ...] = (),
    requirements: tuple[UnlockRequirement, ...] | None = None,
    lines: dict[LineCategory, tuple[DialogueNode, ...]] | None = None,
) -> Character:
    if requirements is None:
        requirements = (UnlockRequirement(kind=RequirementKind.LEVEL, value=level),)
    if lines is None:
        lines = {
            LineCategory.RANDOM: (node(f"{character_id} muses.", character_id),),
            LineCategory.ACHIEVEMENT: (node(f"{character_id} cheers.", character_id),),
        }
    return Character(
        id=character_id,
        name=name or character_id.title(),
        rarity=RarityTier.RARE,
        role=role,
        personality=frozenset(personality),
        unlock_requirements=requirements,
        dialogue_lines=lines,
        story_arcs=arcs,
    )


def three_line_catalog() -> StoryCatalog:
    """One character owning a single-scene, three-line arc with no choices."""
    return StoryCatalog(
        [
            character(
                "mentor_01",
                arcs=(
                    arc(
                        "intro",
                        scene("only", "First.", "Second.", "Third.", speaker="mentor_01"),
                        rewards=(StoryReward(kind="experience", amount=50),),
                    ),
                ),
            )
        ]
    )


def branching_catalog() -> StoryCatalog:
    """Two characters; ``trial`` has a choice scene followed by a closing scene."""
    return StoryCatalog(
        [
            character(
                "mentor_01",
                personality=("Wise", "Patient"),
                arcs=(
                    arc(
                        "trial",
                        scene(
                            "crossroads",
                            "Which way?",
                            choices=(
                                choice("kind", "mentor_01", 15),
                                choice("cruel", "mentor_01", -10),
                            ),
                        ),
                        scene("ending", "It is done."),
                        rewards=(StoryReward(kind="experience", amount=100),),
                    ),
                    arc("sequel", scene("later", "Again."), unlock_level=1, prerequisites=("trial",)),
                ),
            ),
            character(
                "ally_02",
                personality=("Ambitious",),
                arcs=(arc("rival", scene("duel", "En garde."), unlock_level=5),),
            ),
        ]
    )
