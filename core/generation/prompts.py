# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

"""Prompt templates for every generation step.

View and pose-transfer prompts are keyed by pose so that secondary poses
keep their action while the camera rotates.
"""

from __future__ import annotations

from core.exceptions import UnknownPoseError, UnknownViewError

DEFAULT_CHARACTER = "sci-fi robot warrior"

GROUND_PROMPT = (
    "Ultra high quality seamless tileable sci-fi ground texture, photorealistic "
    "metallic floor with intricate circuit patterns, highly detailed surface with "
    "depth and normal mapping details, PBR ready texture, crisp clean edges for 3D "
    "model conversion, top-down orthographic view, 8K resolution, ultra sharp "
    "details, perfect for high-end game environments"
)

_CHARACTER_TEMPLATE = (
    "Ultra high quality 3D character design, photorealistic {character}, FULL BODY "
    "VIEW showing complete figure from head to toe including legs and feet, "
    "extremely detailed, perfect for 3D reconstruction, front view facing camera "
    "directly, character standing naturally, entire body visible in frame, neutral "
    "white background, studio lighting setup, ultra sharp focus, 8K resolution, "
    "highly detailed textures and materials, clean silhouette for 3D model "
    "generation, symmetrical design, no occlusions or overlapping parts, complete "
    "full-body character model"
)

_FULL_BODY = "FULL BODY VIEW from head to toe including legs and feet"
_SUFFIX = "clean white background, ultra sharp 8K resolution"

VIEW_PROMPTS: dict[str, dict[str, str]] = {
    "idle": {
        "back": (
            f"Ultra high quality back view of exact same character, {_FULL_BODY}, "
            "rear view showing all details, perfect for 3D reconstruction, "
            f"{_SUFFIX}, maintain exact proportions and design, no occlusions, "
            "complete full-body visible"
        ),
        "left": (
            "Ultra high quality left side profile view of exact same character, "
            f"{_FULL_BODY}, perfect 90 degree profile from left, optimal for 3D "
            f"model generation, {_SUFFIX}, maintain exact proportions, complete "
            "full-body visible"
        ),
        "right": (
            "Ultra high quality right side profile view of exact same character, "
            f"{_FULL_BODY}, perfect 90 degree profile from right, optimal for 3D "
            f"model generation, {_SUFFIX}, maintain exact proportions, complete "
            "full-body visible"
        ),
        "angle_30": (
            f"Ultra high quality three-quarter view, {_FULL_BODY}, character "
            "rotated exactly 30 degrees to the right, perfect for 3D "
            f"reconstruction, {_SUFFIX}, maintain all details and proportions, "
            "complete full-body visible"
        ),
        "angle_-30": (
            f"Ultra high quality three-quarter view, {_FULL_BODY}, character "
            "rotated exactly 30 degrees to the left, perfect for 3D "
            f"reconstruction, {_SUFFIX}, maintain all details and proportions, "
            "complete full-body visible"
        ),
    },
    "walking": {
        "back": (
            "Ultra high quality back view of character in dynamic walking pose, "
            f"{_FULL_BODY}, perfect rear view for 3D reconstruction, {_SUFFIX}, "
            "maintain exact pose and proportions, complete full-body visible"
        ),
        "left": (
            "Ultra high quality left side profile of character in dynamic walking "
            f"pose, {_FULL_BODY}, perfect 90 degree left view for 3D model "
            f"generation, {_SUFFIX}, complete full-body visible"
        ),
        "right": (
            "Ultra high quality right side profile of character in dynamic walking "
            f"pose, {_FULL_BODY}, perfect 90 degree right view for 3D model "
            f"generation, {_SUFFIX}, complete full-body visible"
        ),
        "angle_30": (
            "Ultra high quality three-quarter view of character in dynamic walking "
            f"pose, {_FULL_BODY}, rotated exactly 30 degrees right, perfect for 3D "
            f"reconstruction, {_SUFFIX}, complete full-body visible"
        ),
        "angle_-30": (
            "Ultra high quality three-quarter view of character in dynamic walking "
            f"pose, {_FULL_BODY}, rotated exactly 30 degrees left, perfect for 3D "
            f"reconstruction, {_SUFFIX}, complete full-body visible"
        ),
    },
    "shooting": {
        "back": (
            "Ultra high quality back view of character in shooting action pose, "
            f"perfect rear view for 3D reconstruction, {_SUFFIX}, maintain exact "
            "pose and proportions"
        ),
        "left": (
            "Ultra high quality left side profile of character in shooting action "
            f"pose, perfect 90 degree left view for 3D model generation, {_SUFFIX}"
        ),
        "right": (
            "Ultra high quality right side profile of character in shooting action "
            f"pose, perfect 90 degree right view for 3D model generation, {_SUFFIX}"
        ),
        "angle_30": (
            "Ultra high quality three-quarter view of character in shooting action "
            f"pose, rotated exactly 30 degrees right, perfect for 3D reconstruction, "
            f"{_SUFFIX}"
        ),
        "angle_-30": (
            "Ultra high quality three-quarter view of character in shooting action "
            f"pose, rotated exactly 30 degrees left, perfect for 3D reconstruction, "
            f"{_SUFFIX}"
        ),
    },
}

POSE_PROMPTS: dict[str, str] = {
    "walking": (
        "Ultra high quality exact same character in dynamic walking pose, FULL BODY "
        "VIEW showing complete figure from head to toe including legs and feet, "
        "mid-stride action with one leg forward, natural arm swing, entire body "
        f"visible in frame, perfect for 3D animation model, {_SUFFIX}, maintain all "
        "mechanical details and proportions, optimal for 3D reconstruction, "
        "complete full-body character model"
    ),
    "shooting": (
        "Ultra high quality exact same character in shooting action pose, FULL BODY "
        "VIEW showing complete figure from head to toe including legs and feet, arms "
        "extended forward holding futuristic weapon, dynamic combat stance, entire "
        f"body visible in frame, perfect for 3D game model, {_SUFFIX}, maintain all "
        "mechanical details, optimal for 3D reconstruction, complete full-body "
        "character model"
    ),
}

_LORE_TEMPLATE = (
    "You are writing flavour text for a small 3D game whose hero is a {character}. "
    "Write a short title for the hero and a two-sentence backstory."
)

_RIDDLE_TEMPLATE = (
    "You are designing a puzzle for a small 3D game whose hero is a {character}. "
    "Write one riddle the player must solve and its one-word answer."
)

LORE_FIELDS = ("title", "story")
RIDDLE_FIELDS = ("question", "answer")


def character_prompt(character: str | None = None) -> str:
    return _CHARACTER_TEMPLATE.format(character=character or DEFAULT_CHARACTER)


def view_prompt(pose: str, view: str) -> str:
    """Return the repose prompt for *view* of *pose*.

    Raises:
        UnknownViewError: If no template exists for the pair.
    """
    prompt = VIEW_PROMPTS.get(pose, {}).get(view)
    if prompt is None:
        raise UnknownViewError(f"Unknown view: {view} for pose: {pose}")
    return prompt


def pose_prompt(pose: str) -> str:
    """Return the pose-transfer prompt for a secondary *pose*.

    Raises:
        UnknownPoseError: If *pose* has no transfer template.
    """
    prompt = POSE_PROMPTS.get(pose)
    if prompt is None:
        raise UnknownPoseError(f"Unknown pose: {pose}")
    return prompt


def lore_prompt(character: str | None = None) -> str:
    return _LORE_TEMPLATE.format(character=character or DEFAULT_CHARACTER)


def riddle_prompt(character: str | None = None) -> str:
    return _RIDDLE_TEMPLATE.format(character=character or DEFAULT_CHARACTER)
