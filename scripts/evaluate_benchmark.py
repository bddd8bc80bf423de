from __future__ import annotations

import argparse
import asyncio
import time
from pathlib import Path
from typing import List

import yaml

from movie_agent.entrypoints.cli import build_orchestrator
from movie_agent.evaluation.metrics import TurnRecord, record_from_events, state_distribution, success_rate
from movie_agent.schemas.messages import Role, text_message
from movie_agent.telemetry.logging import setup_logging
from movie_agent.utils.settings import load_config
from movie_agent.utils.setup import require_api_keys, setup


async def run_questions(orchestrator, questions: List[str]) -> List[TurnRecord]:
    records: List[TurnRecord] = []
    for question in questions:
        started = time.perf_counter()
        events = await orchestrator.send(text_message(Role.USER, question))
        latency_ms = int((time.perf_counter() - started) * 1000)
        records.append(record_from_events(events, latency_ms=latency_ms))
    return records


def main():
    parser = argparse.ArgumentParser(description="Run a list of questions and report terminal states.")
    parser.add_argument("questions", help="YAML file containing a list of questions.")
    parser.add_argument("--env", default="base")
    args = parser.parse_args()

    config = load_config(args.env)
    setup_logging(config.logging.level)
    setup()
    require_api_keys(config.llm.provider)

    questions = yaml.safe_load(Path(args.questions).read_text(encoding="utf-8")) or []
    records = asyncio.run(run_questions(build_orchestrator(config), questions))

    print(f"Success rate: {success_rate(records):.2%}")
    for state, count in sorted(state_distribution(records).items()):
        print(f"  {state}: {count}")


if __name__ == "__main__":
    main()
