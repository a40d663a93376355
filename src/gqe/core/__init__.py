from .errors import EngineIntegrityError, build_forensic_artifact, integrity_error, persist_forensic_artifact
from .events import EventBus
from .ids import make_id, now_utc, stable_id
from .randomness import (
    PythonRandomSource,
    RecordingRandomSource,
    ReplayRandomSource,
    fixed_random,
    gameplay_random,
    seeded_random,
)

__all__ = [
    "EngineIntegrityError",
    "EventBus",
    "PythonRandomSource",
    "RecordingRandomSource",
    "ReplayRandomSource",
    "build_forensic_artifact",
    "fixed_random",
    "gameplay_random",
    "integrity_error",
    "make_id",
    "now_utc",
    "persist_forensic_artifact",
    "seeded_random",
    "stable_id",
]
