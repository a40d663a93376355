from __future__ import annotations

from collections import defaultdict
from typing import Callable, DefaultDict

from gqe.contracts import NarrativeEvent
from gqe.core.ids import make_id, now_utc

NarrativeHandler = Callable[[NarrativeEvent], None]


class EventBus:
    def __init__(self) -> None:
        self._narrative_handlers: list[NarrativeHandler] = []
        self._counter: DefaultDict[str, int] = defaultdict(int)

    def subscribe_narrative(self, handler: NarrativeHandler) -> None:
        self._narrative_handlers.append(handler)

    def publish_narrative(self, event: NarrativeEvent) -> None:
        self._counter[event.scope] += 1
        for handler in self._narrative_handlers:
            handler(event)

    def emit(
        self,
        scope: str,
        event_type: str,
        *,
        actors: list[str] | None = None,
        claims: list[str] | None = None,
        evidence_handles: list[str] | None = None,
        severity: str = "info",
    ) -> NarrativeEvent:
        event = NarrativeEvent(
            event_id=make_id("evt"),
            time=now_utc(),
            scope=scope,
            event_type=event_type,
            actors=list(actors or []),
            claims=list(claims or []),
            evidence_handles=list(evidence_handles or []),
            severity=severity,
        )
        self.publish_narrative(event)
        return event

    def emitted_count(self, scope: str | None = None) -> int:
        if scope is None:
            return sum(self._counter.values())
        return self._counter[scope]
