from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from movie_agent.schemas.tasks import TaskState

COMPLETED_MARKER = "COMPLETED"
AWAITING_INPUT_MARKER = "AWAITING_USER_INPUT"

MARKER_STATES: Dict[str, TaskState] = {
    COMPLETED_MARKER: TaskState.COMPLETED,
    AWAITING_INPUT_MARKER: TaskState.INPUT_REQUIRED,
}


@dataclass(frozen=True)
class TerminalDecision:
    state: TaskState
    body: str
    marker: str
    recognized: bool


def parse_terminal_state(
    text: str,
    fallback: TaskState = TaskState.COMPLETED,
) -> TerminalDecision:
    """Split a model reply into its body and the last-line status marker.

    The last line of the trimmed reply is the marker; everything before it is
    the body. Markers outside ``MARKER_STATES`` map to ``fallback``.
    """
    stripped = (text or "").strip()
    # only "\n" separates lines; other Unicode breaks stay inside the body
    lines = [line.rstrip("\r") for line in stripped.split("\n")] if stripped else []
    marker = lines[-1].strip().upper() if lines else ""
    body = "\n".join(lines[:-1]).strip()

    state = MARKER_STATES.get(marker)
    if state is None:
        return TerminalDecision(state=fallback, body=body, marker=marker, recognized=False)
    return TerminalDecision(state=state, body=body, marker=marker, recognized=True)
