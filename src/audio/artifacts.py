"""
src/audio/artifacts.py
=======================
Artifact Detector — VoiceSentinel Audio Layer

Responsibility:
    - Classify a FeatureVector against fixed thresholds into artifact flags
    - Count the flags and map them to a 0–100 artifact score

Pure function of the FeatureVector: no state, no I/O.
"""

from dataclasses import dataclass
from typing import Any

from src.audio.features import FeatureVector


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

# Near-constant frame energy suggests synthetic cadence
ROBOTIC_RMS_STD_MAX: float = 0.01
CLIPPING_RMS_MAX: float = 0.9
# Degenerate mel-band spread in either direction
FAKE_MFCC_STD_MIN: float = 0.05
FAKE_MFCC_STD_MAX: float = 50.0
ECHO_CENTROID_ROLLOFF_GAP: float = 0.3
NOISE_ZCR_MIN: float = 0.6

POINTS_PER_ARTIFACT: int = 25


@dataclass(frozen=True)
class ArtifactSet:
    """Boolean artifact flags with derived count and score."""

    robotic_voice: bool
    clipping: bool
    fake_audio: bool
    echo: bool
    background_noise: bool

    @property
    def artifact_count(self) -> int:
        return sum(
            (self.robotic_voice, self.clipping, self.fake_audio, self.echo, self.background_noise)
        )

    @property
    def artifact_score(self) -> int:
        return min(100, self.artifact_count * POINTS_PER_ARTIFACT)

    def flags(self) -> dict[str, bool]:
        return {
            "robotic_voice": self.robotic_voice,
            "clipping": self.clipping,
            "fake_audio": self.fake_audio,
            "echo": self.echo,
            "background_noise": self.background_noise,
        }

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = self.flags()
        result["artifact_count"] = self.artifact_count
        result["artifact_score"] = self.artifact_score
        return result


def detect_artifacts(features: FeatureVector) -> ArtifactSet:
    """Flag artifacts in ``features``."""
    return ArtifactSet(
        robotic_voice=features.rms_std < ROBOTIC_RMS_STD_MAX,
        clipping=features.rms_max > CLIPPING_RMS_MAX,
        fake_audio=(
            features.mfcc_std < FAKE_MFCC_STD_MIN or features.mfcc_std > FAKE_MFCC_STD_MAX
        ),
        echo=(
            abs(features.spec_centroid_mean - features.spec_rolloff_mean)
            > ECHO_CENTROID_ROLLOFF_GAP
        ),
        background_noise=features.zcr_mean > NOISE_ZCR_MIN,
    )
