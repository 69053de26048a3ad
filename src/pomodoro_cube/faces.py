"""Cube face catalog: named duration presets grouped into mode sets."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class CubeMode(str, Enum):
    FOCUS = "Focus"
    GYM = "Gym"
    MEDITATION = "Meditation"


@dataclass(frozen=True)
class CubeFace:
    id: int
    name: str
    color: str
    duration: float  # seconds

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "color": self.color,
                "duration": self.duration}


CUSTOM_FACE_NAME = "Custom"

# Face ids follow the cube's face order [Front, Right, Left, Top, Bottom, Back]
MODE_FACES: dict[CubeMode, tuple[CubeFace, ...]] = {
    CubeMode.FOCUS: (
        CubeFace(0, "Focus", "cyan", 25 * 60),
        CubeFace(1, "Short Break", "green", 5 * 60),
        CubeFace(2, "Long Break", "blue", 15 * 60),
        CubeFace(3, CUSTOM_FACE_NAME, "yellow", 10 * 60),
        CubeFace(4, "Deep Work", "purple", 60 * 60),
        CubeFace(5, "Energy", "orange", 30 * 60),
    ),
    CubeMode.GYM: (
        CubeFace(0, "HIIT", "red", 45),
        CubeFace(1, "Rest", "orange", 60),
        CubeFace(2, "Heavy Rest", "yellow", 90),
        CubeFace(3, "Recovery", "green", 2 * 60),
        CubeFace(4, "Quick Rest", "cyan", 30),
        CubeFace(5, "Max Break", "purple", 3 * 60),
    ),
    CubeMode.MEDITATION: (
        CubeFace(0, "Grounding", "brown", 5 * 60),
        CubeFace(1, "Clarity", "teal", 15 * 60),
        CubeFace(2, "Zen", "purple", 30 * 60),
        CubeFace(3, "Deep Dive", "indigo", 20 * 60),
        CubeFace(4, "Breathe", "mint", 3 * 60),
        CubeFace(5, "Mindfulness", "blue", 10 * 60),
    ),
}

# The companion keeps its own presets; they may diverge from the phone's.
COMPANION_FACES: tuple[CubeFace, ...] = (
    CubeFace(0, "Focus", "red", 25 * 60),
    CubeFace(1, "Short", "green", 5 * 60),
    CubeFace(2, "Long", "blue", 15 * 60),
    CubeFace(3, "Deep", "purple", 45 * 60),
    CubeFace(4, "Quick", "orange", 10 * 60),
    CubeFace(5, "Hour", "cyan", 60 * 60),
)


def faces_for(mode: CubeMode) -> list[CubeFace]:
    return list(MODE_FACES[mode])


def find_by_duration(faces: list[CubeFace], duration: Optional[float]) -> Optional[CubeFace]:
    if duration is None:
        return None
    return next((face for face in faces if face.duration == duration), None)


def find_by_name(faces: list[CubeFace], name: str) -> Optional[CubeFace]:
    wanted = name.strip().lower()
    return next((face for face in faces if face.name.lower() == wanted), None)


def with_custom_duration(faces: list[CubeFace], minutes: int) -> list[CubeFace]:
    """Return the face set with the Custom face set to `minutes`."""
    return [
        replace(face, duration=float(minutes * 60)) if face.name == CUSTOM_FACE_NAME else face
        for face in faces
    ]


async def select_face(controller, face: CubeFace):
    """Selecting a face is stop-then-start with the face's duration."""
    await controller.stop()
    return await controller.start(face.duration)
