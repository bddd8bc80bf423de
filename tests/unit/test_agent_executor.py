import asyncio
from datetime import datetime, timezone
from itertools import count

import pytest

from movie_agent.agents.base import RequestContext
from movie_agent.agents.movie_agent import (
    MovieAgentExecutor,
    extract_goal,
    resolve_identity,
    to_model_messages,
)
from movie_agent.schemas.messages import DataPart, FileContent, FilePart, Role, text_message
from movie_agent.schemas.tasks import Task, TaskState, TaskStatus, TaskStatusUpdateEvent
from movie_agent.workflows.event_bus import ExecutionEventBus, InMemoryEventBus
from mock_utils import ScriptedLLMClient, user_message, wait_for_calls


def sequential_ids():
    counter = count(1)
    return lambda: f"id-{next(counter)}"


def existing_task(task_id="t-1", context_id="ctx-1", metadata=None):
    return Task(
        id=task_id,
        context_id=context_id,
        status=TaskStatus(state=TaskState.INPUT_REQUIRED),
        metadata=metadata,
    )


async def run_turn(executor, message, task=None):
    bus = InMemoryEventBus()
    await executor.execute(RequestContext(user_message=message, task=task), bus)
    return bus.events


def final_events(events):
    return [e for e in events if isinstance(e, TaskStatusUpdateEvent) and e.final]


def test_resolve_identity_prefers_existing_ids():
    task = existing_task(task_id="t-1", context_id="ctx-task")
    ids = sequential_ids()

    assert resolve_identity(user_message(context_id="ctx-msg"), task, ids) == ("t-1", "ctx-msg")
    assert resolve_identity(user_message(), task, ids) == ("t-1", "ctx-task")
    assert resolve_identity(user_message(), None, ids) == ("id-1", "id-2")


def test_to_model_messages_maps_roles_and_drops_non_text():
    history = [
        text_message(Role.USER, "Recommend a sci-fi movie", message_id="u1"),
        text_message(Role.AGENT, "Try Arrival.", message_id="a1"),
        user_message(message_id="u2", parts=[DataPart(data={"rating": 5})]),
    ]
    projected = to_model_messages(history)

    assert [(m.role, m.content) for m in projected] == [
        ("user", ["Recommend a sci-fi movie"]),
        ("assistant", ["Try Arrival."]),
    ]


def test_extract_goal_prefers_task_metadata():
    message = user_message(metadata={"goal": "from message"})
    assert extract_goal(message, existing_task(metadata={"goal": "from task"})) == "from task"
    assert extract_goal(message, existing_task()) == "from message"
    assert extract_goal(user_message(), None) is None


@pytest.mark.asyncio
async def test_new_task_publishes_submitted_working_then_final():
    llm = ScriptedLLMClient(["The movie is great.\nCOMPLETED"])
    executor = MovieAgentExecutor(llm)

    events = await run_turn(executor, user_message(context_id="ctx-1", metadata={"source": "cli"}))

    assert [e.kind for e in events] == ["task", "status-update", "status-update"]
    submitted = events[0]
    assert submitted.status.state == TaskState.SUBMITTED
    assert [m.message_id for m in submitted.history] == ["m1"]
    assert submitted.metadata == {"source": "cli"}
    assert submitted.context_id == "ctx-1"

    working = events[1]
    assert working.status.state == TaskState.WORKING
    assert working.final is False
    assert working.status.message.role == Role.AGENT
    assert working.status.message.text_segments() == ["Processing your question, hang tight!"]

    final = events[-1]
    assert final_events(events) == [final]
    assert final.status.state == TaskState.COMPLETED
    assert final.status.message.text_segments() == ["The movie is great."]
    assert final.task_id == submitted.id
    assert final.status.message.task_id == submitted.id


@pytest.mark.asyncio
async def test_resumed_task_skips_submitted_snapshot():
    executor = MovieAgentExecutor(ScriptedLLMClient())
    events = await run_turn(executor, user_message(), task=existing_task())

    assert all(isinstance(e, TaskStatusUpdateEvent) for e in events)
    assert [e.status.state for e in events] == [TaskState.WORKING, TaskState.COMPLETED]
    assert {(e.task_id, e.context_id) for e in events} == {("t-1", "ctx-1")}


@pytest.mark.asyncio
async def test_awaiting_user_input_maps_to_input_required():
    executor = MovieAgentExecutor(ScriptedLLMClient(["I need more info.\nAWAITING_USER_INPUT"]))
    events = await run_turn(executor, user_message())

    assert events[-1].status.state == TaskState.INPUT_REQUIRED
    assert events[-1].status.message.text_segments() == ["I need more info."]


@pytest.mark.asyncio
async def test_unrecognized_marker_completes(caplog):
    executor = MovieAgentExecutor(ScriptedLLMClient(["Some answer.\nMAYBE"]))
    events = await run_turn(executor, user_message())

    assert events[-1].status.state == TaskState.COMPLETED
    assert "Unexpected final state line" in caplog.text


@pytest.mark.asyncio
async def test_configured_fallback_state():
    executor = MovieAgentExecutor(
        ScriptedLLMClient(["Some answer.\nMAYBE"]),
        unrecognized_state=TaskState.UNKNOWN,
    )
    events = await run_turn(executor, user_message())
    assert events[-1].status.state == TaskState.UNKNOWN


@pytest.mark.asyncio
async def test_empty_body_replies_completed():
    executor = MovieAgentExecutor(ScriptedLLMClient(["COMPLETED"]))
    events = await run_turn(executor, user_message())
    assert events[-1].status.message.text_segments() == ["Completed."]


@pytest.mark.asyncio
async def test_non_text_history_fails_without_model_call():
    llm = ScriptedLLMClient()
    executor = MovieAgentExecutor(llm)
    message = user_message(parts=[FilePart(file=FileContent(uri="https://example.com/a.png"))])

    events = await run_turn(executor, message)

    assert llm.calls == []
    assert final_events(events) == [events[-1]]
    assert events[-1].status.state == TaskState.FAILED
    assert events[-1].status.message.text_segments() == ["No message found to process."]


@pytest.mark.asyncio
async def test_model_error_becomes_failed_event():
    executor = MovieAgentExecutor(ScriptedLLMClient(error=RuntimeError("quota exceeded")))
    events = await run_turn(executor, user_message())

    assert final_events(events) == [events[-1]]
    assert events[-1].status.state == TaskState.FAILED
    assert events[-1].status.message.text_segments() == ["Agent error: quota exceeded"]


class RejectingFinalSink(ExecutionEventBus):
    """Records every event and fails while delivering the final one."""

    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)
        if isinstance(event, TaskStatusUpdateEvent) and event.final:
            raise RuntimeError("sink unavailable")


@pytest.mark.asyncio
async def test_sink_failure_on_final_event_is_not_reported_as_failed():
    executor = MovieAgentExecutor(ScriptedLLMClient(["The movie is great.\nCOMPLETED"]))
    sink = RejectingFinalSink()

    with pytest.raises(RuntimeError, match="sink unavailable"):
        await executor.execute(RequestContext(user_message(context_id="ctx-1")), sink)

    assert [e.status.state for e in final_events(sink.events)] == [TaskState.COMPLETED]
    assert [m.role for m in executor.context_store.get("ctx-1")] == [Role.USER, Role.AGENT]


@pytest.mark.asyncio
async def test_model_timeout_becomes_failed_event():
    llm = ScriptedLLMClient(hold=True)
    executor = MovieAgentExecutor(llm, model_timeout=0.01)
    events = await run_turn(executor, user_message())

    assert events[-1].status.state == TaskState.FAILED
    assert "timed out after 0.01s" in events[-1].status.message.text_segments()[0]


@pytest.mark.asyncio
async def test_cancel_during_model_call_discards_answer():
    llm = ScriptedLLMClient(["The movie is great.\nCOMPLETED"], hold=True)
    executor = MovieAgentExecutor(llm)
    bus = InMemoryEventBus()

    turn = asyncio.create_task(
        executor.execute(RequestContext(user_message(context_id="ctx-1"), existing_task()), bus)
    )
    await wait_for_calls(llm, 1)
    await executor.cancel_task("t-1")
    llm.releases[0].set()
    await turn

    final = bus.events[-1]
    assert final_events(bus.events) == [final]
    assert final.status.state == TaskState.CANCELED
    assert final.status.message is None
    assert [m.role for m in executor.context_store.get("ctx-1")] == [Role.USER]


@pytest.mark.asyncio
async def test_cancel_marked_before_turn_still_calls_model():
    llm = ScriptedLLMClient()
    executor = MovieAgentExecutor(llm)
    await executor.cancel_task("t-1")

    events = await run_turn(executor, user_message(), task=existing_task())

    assert len(llm.calls) == 1
    assert events[-1].status.state == TaskState.CANCELED


@pytest.mark.asyncio
async def test_model_receives_goal_time_history_and_tools():
    llm = ScriptedLLMClient()
    tools = [object()]
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    executor = MovieAgentExecutor(llm, tools=tools, clock=lambda: now)

    await run_turn(executor, user_message(metadata={"goal": "plan a movie night"}))

    call = llm.calls[0]
    assert call.prompt_args.goal == "plan a movie night"
    assert call.prompt_args.now == "2024-05-01T12:00:00+00:00"
    assert call.tools == tools
    assert [(m.role, m.content) for m in call.messages] == [("user", ["Who directed The Matrix?"])]


@pytest.mark.asyncio
async def test_follow_up_turn_sees_previous_exchange():
    llm = ScriptedLLMClient(["Which Matrix movie?\nAWAITING_USER_INPUT", "The Wachowskis.\nCOMPLETED"])
    executor = MovieAgentExecutor(llm)

    first = await run_turn(executor, user_message(context_id="ctx-1"))
    task = existing_task(task_id=first[0].id, context_id="ctx-1")
    await run_turn(executor, user_message("The first one", message_id="m2", context_id="ctx-1"), task)

    assert [(m.role, m.content) for m in llm.calls[1].messages] == [
        ("user", ["Who directed The Matrix?"]),
        ("assistant", ["Which Matrix movie?"]),
        ("user", ["The first one"]),
    ]


@pytest.mark.asyncio
async def test_context_history_alternates_without_duplicates():
    executor = MovieAgentExecutor(ScriptedLLMClient(["Answer.\nCOMPLETED"]))

    for index in range(3):
        await run_turn(executor, user_message(f"question {index}", message_id=f"u{index}", context_id="ctx-1"))

    history = executor.context_store.get("ctx-1")
    ids = [m.message_id for m in history]
    assert len(ids) == len(set(ids)) == 6
    assert [m.role for m in history] == [Role.USER, Role.AGENT] * 3


@pytest.mark.asyncio
async def test_redelivered_message_is_not_duplicated():
    executor = MovieAgentExecutor(ScriptedLLMClient())
    message = user_message(context_id="ctx-1")

    await run_turn(executor, message)
    await run_turn(executor, message)

    user_ids = [m.message_id for m in executor.context_store.get("ctx-1") if m.role == Role.USER]
    assert user_ids == ["m1"]


@pytest.mark.asyncio
async def test_missing_context_id_is_generated():
    executor = MovieAgentExecutor(ScriptedLLMClient(), id_factory=sequential_ids())
    events = await run_turn(executor, user_message())

    assert events[0].id == "id-1"
    assert events[0].context_id == "id-2"
    assert len(executor.context_store.get("id-2")) == 2
