from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, UTC
from pathlib import Path
from uuid import uuid4

from gqe.contracts import ForensicArtifact


class EngineIntegrityError(RuntimeError):
    """Raised when a quest or dungeon run reaches a state its rules never allow."""

    def __init__(self, artifact: ForensicArtifact) -> None:
        super().__init__(f"{artifact.error_code}: {artifact.message}")
        self.artifact = artifact

    @property
    def code(self) -> str:
        return self.artifact.error_code


def build_forensic_artifact(
    engine_scope: str,
    error_code: str,
    message: str,
    state_snapshot: dict[str, object] | None = None,
    context: dict[str, object] | None = None,
    identifiers: dict[str, str] | None = None,
    causal_fragment: list[str] | None = None,
) -> ForensicArtifact:
    return ForensicArtifact(
        artifact_id=str(uuid4()),
        timestamp=datetime.now(UTC),
        engine_scope=engine_scope,
        error_code=error_code,
        message=message,
        state_snapshot=dict(state_snapshot or {}),
        context=dict(context or {}),
        identifiers=dict(identifiers or {}),
        causal_fragment=list(causal_fragment or []),
    )


def integrity_error(engine_scope: str, error_code: str, message: str, **details: object) -> EngineIntegrityError:
    """Shorthand for raising sites: keyword details map onto the artifact sections."""
    return EngineIntegrityError(build_forensic_artifact(engine_scope, error_code, message, **details))  # type: ignore[arg-type]


def persist_forensic_artifact(artifact: ForensicArtifact, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = artifact.timestamp.strftime("%Y%m%dT%H%M%S")
    path = output_dir / f"forensic_{artifact.engine_scope}_{stamp}_{artifact.artifact_id[:8]}.json"
    path.write_text(json.dumps(asdict(artifact), default=str, indent=2, sort_keys=True), encoding="utf-8")
    return path
