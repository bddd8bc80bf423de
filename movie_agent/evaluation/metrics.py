from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Sequence

from movie_agent.schemas.tasks import AgentEvent, TaskState, TaskStatusUpdateEvent

SUCCESS_STATES = frozenset({TaskState.COMPLETED, TaskState.INPUT_REQUIRED})


@dataclass
class TurnRecord:
    task_id: str
    state: TaskState
    latency_ms: int | None = None


def record_from_events(events: Sequence[AgentEvent], latency_ms: int | None = None) -> TurnRecord:
    final = next(
        (e for e in reversed(events) if isinstance(e, TaskStatusUpdateEvent) and e.final),
        None,
    )
    if final is None:
        raise ValueError("turn produced no final status event")
    return TurnRecord(task_id=final.task_id, state=final.status.state, latency_ms=latency_ms)


def success_rate(records: List[TurnRecord]) -> float:
    if not records:
        return 0.0
    successes = sum(1 for r in records if r.state in SUCCESS_STATES)
    return successes / len(records)


def state_distribution(records: List[TurnRecord]) -> Dict[str, int]:
    return dict(Counter(r.state.value for r in records))
