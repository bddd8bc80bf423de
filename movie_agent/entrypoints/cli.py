from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Optional

from movie_agent.agents.card import build_agent_card
from movie_agent.agents.errors import ConfigurationError, MovieAgentError
from movie_agent.agents.movie_agent import MovieAgentExecutor
from movie_agent.schemas.messages import Role, text_message
from movie_agent.schemas.tasks import AgentEvent, Task, TaskState, TaskStatusUpdateEvent
from movie_agent.telemetry.logging import setup_logging
from movie_agent.tools.tmdb import TMDBClient, build_tmdb_tools
from movie_agent.utils.llm_clients import build_llm_client
from movie_agent.utils.settings import AppConfig, load_config
from movie_agent.utils.setup import require_api_keys, setup
from movie_agent.workflows.orchestrator import Orchestrator


def build_orchestrator(config: AppConfig) -> Orchestrator:
    tools = []
    if config.llm.provider.lower() != "echo":
        tools = build_tmdb_tools(TMDBClient(os.environ["TMDB_API_KEY"], config.tmdb))
    executor = MovieAgentExecutor(
        build_llm_client(config),
        tools=tools,
        model_timeout=config.turn.model_timeout_s,
        serialize_contexts=config.turn.serialize_contexts,
        unrecognized_state=config.turn.unrecognized_marker_state,
    )
    return Orchestrator(executor)


def format_event(event: AgentEvent) -> str:
    if isinstance(event, Task):
        return f"[{event.status.state.value}] task {event.id} (context {event.context_id})"
    text = ""
    if event.status.message is not None:
        text = "\n".join(event.status.message.text_segments())
    return f"[{event.status.state.value}] {text}".rstrip()


async def ask(
    orchestrator: Orchestrator,
    question: str,
    context_id: Optional[str] = None,
    task_id: Optional[str] = None,
    goal: Optional[str] = None,
) -> Optional[TaskStatusUpdateEvent]:
    message = text_message(
        Role.USER,
        question,
        task_id=task_id,
        context_id=context_id,
        metadata={"goal": goal} if goal else None,
    )
    final = None
    async for event in orchestrator.stream(message):
        print(format_event(event))
        if isinstance(event, TaskStatusUpdateEvent) and event.final:
            final = event
    return final


async def chat(orchestrator: Orchestrator, args: argparse.Namespace) -> None:
    context_id, task_id = args.context_id, args.task_id
    question = args.question
    while True:
        if not question:
            question = (await asyncio.to_thread(input, "> ")).strip()
            if question.lower() in {"", "exit", "quit"}:
                return

        final = await ask(orchestrator, question, context_id, task_id, args.goal)
        if final is not None:
            context_id = final.context_id
            # follow-ups only resume a task that is waiting on the user
            task_id = final.task_id if final.status.state == TaskState.INPUT_REQUIRED else None

        if not args.interactive:
            return
        question = None


def main() -> None:
    parser = argparse.ArgumentParser(description="Ask the movie agent a question.")
    parser.add_argument("question", nargs="?", help="Question for the agent.")
    parser.add_argument("--env", default="base", help="Config environment (base, dev, ...).")
    parser.add_argument("--context-id", help="Continue an existing conversation context.")
    parser.add_argument("--task-id", help="Resume a task waiting for input.")
    parser.add_argument("--goal", help="Goal passed to the agent as guidance.")
    parser.add_argument("--interactive", action="store_true", help="Keep chatting after the first answer.")
    parser.add_argument("--card", action="store_true", help="Print the agent card and exit.")
    args = parser.parse_args()

    config = load_config(args.env)
    setup_logging(config.logging.level)

    if args.card:
        print(json.dumps(build_agent_card(config.card).to_wire(), indent=2))
        return
    if not args.question and not args.interactive:
        parser.error("a question is required unless --interactive is given")

    setup()
    try:
        require_api_keys(config.llm.provider)
        orchestrator = build_orchestrator(config)
        asyncio.run(chat(orchestrator, args))
    except ConfigurationError as error:
        print(error, file=sys.stderr)
        sys.exit(1)
    except MovieAgentError as error:
        print(f"error: {error}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
