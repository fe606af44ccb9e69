"""Lira survival run: one or more agents trying to stay fed, warm and rested.

By default the example uses the rule-based decision service (no LLM calls):

    python examples/lira/run.py --ticks 600

To let a model decide (requires provider, model, API key), pass `--llm`:

    python examples/lira/run.py --llm --scenario cold_night --ticks 1200

Environment variables expected when `--llm` is used:
- `LLM_PROVIDER` (e.g., `openai`, or `ollama` for a local model)
- `LLM_MODEL` (e.g., `gpt-4o-mini`, `llama3.1`)
- Provider-specific API key (e.g., `OPENAI_API_KEY`); none for `ollama`
"""

from __future__ import annotations

import argparse
import asyncio
import json

from campfire import (
    Config,
    HeuristicDecisionService,
    LLMDecisionService,
    Simulation,
    load_scenario,
)
from campfire.logging_utils import Color, colored


def make_status_printer(every: int):
    """Tick listener printing a one-line status per agent every N ticks."""

    def _print_status(tick: int, simulation: Simulation) -> None:
        if tick % every:
            return
        snapshot = simulation.snapshot()
        seconds = snapshot.time_ms / 1000.0
        for agent in snapshot.agents:
            v = agent.vitals
            line = (
                f"t={seconds:6.1f}s {agent.name:<6} {agent.action_state:<10} "
                f"food={v.food:5.1f} energy={v.energy:5.1f} warmth={v.warmth:5.1f} health={v.health:5.1f} "
                f"inv={agent.inventory}"
            )
            if agent.bubble is not None:
                line += f"  {agent.bubble.emoji} {agent.bubble.text}"
            color = Color.RED if agent.is_dead else Color.CYAN
            print(colored(line, color))

    return _print_status


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Campfire survival simulation")
    parser.add_argument("--llm", action="store_true", help="Ask an LLM for decisions")
    parser.add_argument("--scenario", default="lone_survivor", help="Scenario name or JSON path")
    parser.add_argument("--ticks", type=int, default=Config.DEFAULT_TICK_COUNT, help="Number of ticks")
    parser.add_argument("--dt", type=float, default=Config.TICK_DURATION_MS, help="Tick length in ms")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--status-every", type=int, default=50, help="Print status every N ticks")
    parser.add_argument("--strict", action="store_true", help="Stop on the first failed decision")
    return parser.parse_args()


async def main(args: argparse.Namespace) -> None:
    if args.llm:
        Config.validate()
        print(Config.display())
        service = LLMDecisionService(Config.LLM_PROVIDER, Config.LLM_MODEL)
    else:
        service = HeuristicDecisionService()

    scenario = load_scenario(args.scenario, seed=args.seed)
    print(colored(f"Scenario: {scenario.name}", Color.GREEN, bold=True))
    if scenario.description:
        print(scenario.description)

    simulation = scenario.build_simulation(
        service,
        raise_on_decision_error=args.strict,
        tick_listeners=[make_status_printer(args.status_every)],
    )
    summary = await simulation.run(args.ticks, args.dt)
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    asyncio.run(main(parse_args()))
