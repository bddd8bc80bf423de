from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from langchain_core.tools import BaseTool

from movie_agent.agents.base import AgentExecutor, RequestContext
from movie_agent.agents.errors import ModelInvocationTimeout
from movie_agent.agents.terminal_state import parse_terminal_state
from movie_agent.memory.cancellation import CancellationRegistry, InMemoryCancellationRegistry
from movie_agent.memory.contexts import ContextStore, InMemoryContextStore
from movie_agent.schemas.messages import Message, Role, text_message
from movie_agent.schemas.model_io import ModelMessage, ModelReply, PromptArgs
from movie_agent.schemas.tasks import Task, TaskState, TaskStatus, TaskStatusUpdateEvent
from movie_agent.utils.llm_clients import LLMClient
from movie_agent.workflows.event_bus import ExecutionEventBus

logger = logging.getLogger(__name__)

WORKING_TEXT = "Processing your question, hang tight!"
NO_TEXT_TEXT = "No message found to process."
EMPTY_REPLY_TEXT = "Completed."


def resolve_identity(
    user_message: Message,
    existing_task: Optional[Task],
    new_id: Callable[[], str],
) -> Tuple[str, str]:
    """Return ``(task_id, context_id)`` for a turn.

    The task id comes from the resumed task; the context id prefers the
    message's, then the task's. Missing ids are drawn from ``new_id``.
    """
    task_id = existing_task.id if existing_task is not None else new_id()
    context_id = (
        user_message.context_id
        or (existing_task.context_id if existing_task is not None else None)
        or new_id()
    )
    return task_id, context_id


def to_model_messages(history: Iterable[Message]) -> List[ModelMessage]:
    """Project context history onto model roles, dropping text-less messages."""
    projected: List[ModelMessage] = []
    for message in history:
        segments = message.text_segments()
        if not segments:
            continue
        role = "assistant" if message.role == Role.AGENT else "user"
        projected.append(ModelMessage(role=role, content=segments))
    return projected


def extract_goal(user_message: Message, existing_task: Optional[Task]) -> Optional[str]:
    task_metadata = (existing_task.metadata if existing_task is not None else None) or {}
    message_metadata = user_message.metadata or {}
    return task_metadata.get("goal") or message_metadata.get("goal")


class MovieAgentExecutor(AgentExecutor):
    """Answers movie questions, one model call per turn.

    Every turn publishes, in order: a ``submitted`` task snapshot (new tasks
    only), a ``working`` update, then exactly one final update whose state is
    ``failed``, ``canceled``, or the state decoded from the model's last line.
    Model failures become a ``failed`` update; only errors raised by the
    event sink itself escape ``execute``.

    Cancellation is cooperative: ``cancel_task`` only flags the task, and the
    flag is checked once, after the model call returns.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        tools: Sequence[BaseTool] | None = None,
        context_store: ContextStore | None = None,
        cancellations: CancellationRegistry | None = None,
        model_timeout: float | None = None,
        serialize_contexts: bool = True,
        unrecognized_state: TaskState = TaskState.COMPLETED,
        id_factory: Callable[[], str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.llm_client = llm_client
        self.tools: List[BaseTool] = list(tools or [])
        self.context_store = context_store or InMemoryContextStore()
        self.cancellations = cancellations or InMemoryCancellationRegistry()
        self.model_timeout = model_timeout
        self.serialize_contexts = serialize_contexts
        self.unrecognized_state = unrecognized_state
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._context_locks: Dict[str, asyncio.Lock] = {}

    async def cancel_task(self, task_id: str, event_bus: ExecutionEventBus | None = None) -> None:
        # the running turn publishes the final state
        self.cancellations.mark_cancelled(task_id)

    async def execute(self, request_context: RequestContext, event_bus: ExecutionEventBus) -> None:
        user_message = request_context.user_message
        existing_task = request_context.task
        task_id, context_id = resolve_identity(user_message, existing_task, self._new_id)

        logger.info(
            "Processing message %s for task %s (context: %s)",
            user_message.message_id,
            task_id,
            context_id,
        )

        if existing_task is None:
            event_bus.publish(
                Task(
                    id=task_id,
                    context_id=context_id,
                    status=TaskStatus(state=TaskState.SUBMITTED, timestamp=self._now()),
                    history=[user_message],
                    metadata=user_message.metadata,
                )
            )

        event_bus.publish(
            self._status_update(
                task_id,
                context_id,
                TaskState.WORKING,
                self._agent_message(task_id, context_id, WORKING_TEXT),
                final=False,
            )
        )

        async with self._context_guard(context_id):
            await self._run_turn(task_id, context_id, user_message, existing_task, event_bus)

    async def _run_turn(
        self,
        task_id: str,
        context_id: str,
        user_message: Message,
        existing_task: Optional[Task],
        event_bus: ExecutionEventBus,
    ) -> None:
        self.context_store.append(context_id, user_message)
        messages = to_model_messages(self.context_store.get(context_id))

        if not messages:
            logger.warning("No valid text messages found in history for task %s", task_id)
            event_bus.publish(
                self._status_update(
                    task_id,
                    context_id,
                    TaskState.FAILED,
                    self._agent_message(task_id, context_id, NO_TEXT_TEXT),
                )
            )
            return

        goal = extract_goal(user_message, existing_task)

        try:
            reply = await self._invoke_model(goal, messages)
        except Exception as error:
            logger.exception("Error processing task %s", task_id)
            event_bus.publish(
                self._status_update(
                    task_id,
                    context_id,
                    TaskState.FAILED,
                    self._agent_message(task_id, context_id, f"Agent error: {error}"),
                )
            )
            return

        if self.cancellations.is_cancelled(task_id):
            logger.info("Request cancelled for task %s", task_id)
            event_bus.publish(self._status_update(task_id, context_id, TaskState.CANCELED))
            return

        logger.debug("Model response for task %s: %s", task_id, reply.text)
        decision = parse_terminal_state(reply.text, fallback=self.unrecognized_state)
        if not decision.recognized:
            logger.warning(
                "Unexpected final state line from model: %r. Defaulting to '%s'.",
                decision.marker,
                decision.state.value,
            )

        agent_message = self._agent_message(task_id, context_id, decision.body or EMPTY_REPLY_TEXT)
        self.context_store.append(context_id, agent_message)
        # sink failures belong to the transport and propagate
        event_bus.publish(self._status_update(task_id, context_id, decision.state, agent_message))
        logger.info("Task %s finished with state: %s", task_id, decision.state.value)

    async def _invoke_model(self, goal: Optional[str], messages: List[ModelMessage]) -> ModelReply:
        call = self.llm_client.generate(PromptArgs(now=self._now(), goal=goal), messages, self.tools)
        if self.model_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self.model_timeout)
        except asyncio.TimeoutError:
            raise ModelInvocationTimeout(self.model_timeout) from None

    @contextlib.asynccontextmanager
    async def _context_guard(self, context_id: str) -> AsyncIterator[None]:
        if not self.serialize_contexts:
            yield
            return
        lock = self._context_locks.setdefault(context_id, asyncio.Lock())
        async with lock:
            yield

    def _agent_message(self, task_id: str, context_id: str, text: str) -> Message:
        return text_message(
            Role.AGENT,
            text,
            task_id=task_id,
            context_id=context_id,
            message_id=self._new_id(),
        )

    def _status_update(
        self,
        task_id: str,
        context_id: str,
        state: TaskState,
        message: Message | None = None,
        final: bool = True,
    ) -> TaskStatusUpdateEvent:
        return TaskStatusUpdateEvent(
            task_id=task_id,
            context_id=context_id,
            status=TaskStatus(state=state, message=message, timestamp=self._now()),
            final=final,
        )

    def _now(self) -> str:
        return self._clock().isoformat()
