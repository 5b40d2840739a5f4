"""
src/risk/challenge.py
======================
Challenge Selector — VoiceSentinel Risk Layer

Maps a risk score to a challenge tier and draws display text from a static
per-tier catalogue. The draw is cosmetic: it never feeds back into scoring.
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Sequence


class ChallengeType(str, Enum):
    PREFERENCE = "PREFERENCE"
    LINGUISTIC_TRAP = "LINGUISTIC_TRAP"
    CRITICAL_CONTEXT = "CRITICAL_CONTEXT"


CRITICAL_ABOVE: float = 70.0
LINGUISTIC_ABOVE: float = 40.0

DEFAULT_CATALOG: Mapping[ChallengeType, Sequence[str]] = {
    ChallengeType.CRITICAL_CONTEXT: (
        "Quick security check: What color is the wall in front of you?",
        "Look at your battery icon. What is the exact percentage?",
    ),
    ChallengeType.LINGUISTIC_TRAP: (
        "Please say the word 'Simultaneously' three times fast.",
        "Spell the word 'Security' backwards for me.",
    ),
    ChallengeType.PREFERENCE: (
        "Do you prefer using dark mode or light mode?",
        "Is it raining where you are right now?",
    ),
}


@dataclass(frozen=True)
class Challenge:
    type: ChallengeType
    script: str

    def to_dict(self) -> dict[str, str]:
        return {"active_challenge": self.script, "challenge_type": self.type.value}


def classify_challenge(score: float) -> ChallengeType:
    if score > CRITICAL_ABOVE:
        return ChallengeType.CRITICAL_CONTEXT
    if score > LINGUISTIC_ABOVE:
        return ChallengeType.LINGUISTIC_TRAP
    return ChallengeType.PREFERENCE


def select_challenge(
    score: float,
    catalog: Optional[Mapping[ChallengeType, Sequence[str]]] = None,
    rng: Optional[random.Random] = None,
) -> Challenge:
    """Pick the tier for ``score`` and a uniformly random script within it."""
    tier = classify_challenge(score)
    scripts = (catalog or DEFAULT_CATALOG).get(tier) or ()
    if not scripts:
        return Challenge(type=tier, script="None required")
    chooser = rng or random
    return Challenge(type=tier, script=chooser.choice(list(scripts)))
