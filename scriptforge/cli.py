#!/usr/bin/env python3
"""
Command line entry point.

    scriptforge agents                      list the seven agents
    scriptforge run --brief "..."           run a full workflow and persist it
    scriptforge inspect <workflow_id>       print persisted node snapshots
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from scriptforge.agents.context import AgentContext
from scriptforge.agents.definitions import AGENT_DEFINITIONS
from scriptforge.agents.formatting import summarize_context
from scriptforge.config import settings
from scriptforge.constants import STANDARD_AGENT_ORDER
from scriptforge.db.session import SessionLocal, init_db, sync_engine
from scriptforge.errors import ScriptForgeError
from scriptforge.execution.executor import build_default_executor
from scriptforge.services.generation import LangChainGenerationBackend
from scriptforge.services.version_store import SqlVersionStore
from scriptforge.workflow.builder import build_workflow
from scriptforge.workflow.controller import NodeExecutionController
from scriptforge.workflow.coordinator import WorkflowRunCoordinator
from scriptforge.workflow.graph import AgentNode
from scriptforge.workflow.recorder import WorkflowRecorder

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _recorder() -> WorkflowRecorder:
    init_db(sync_engine)
    return WorkflowRecorder(SqlVersionStore(SessionLocal))


def print_status(workflow_id: str, node: AgentNode) -> None:
    print(f"  [{node.status.value:>7}] {node.id} {node.label or node.agent_type}")


def cmd_agents(args: argparse.Namespace) -> int:
    for agent_type in STANDARD_AGENT_ORDER:
        definition = AGENT_DEFINITIONS[agent_type]
        print(f"{definition.id:<22} {definition.name} ({definition.category})")
        print(f"{'':<22} {definition.description}")
    return 0


async def _run(brief: str, manuscript: Optional[str], agent_types: Optional[list[str]], provider: Optional[str]) -> int:
    executor = build_default_executor(LangChainGenerationBackend(provider=provider))
    health = await executor.check_health()
    if not health.healthy:
        print(f"Warning: generation backend health check failed: {health.error}")

    controller = NodeExecutionController(
        executor,
        recorder=_recorder(),
        status_callbacks=[print_status],
    )
    coordinator = WorkflowRunCoordinator(controller)

    graph = build_workflow(brief, manuscript=manuscript, agent_types=agent_types)
    print(f"Workflow {graph.id}: {len(graph.nodes)} agents")
    report = await coordinator.run_workflow(graph, AgentContext(
        story_brief=brief,
        manuscript=manuscript,
        workflow_id=graph.id,
    ))

    print()
    print(report.summary())
    for error in report.progress.errors:
        print(f"  ✗ {error.agent_type}: {error.message}")
    for highlight in summarize_context(report.context)["highlights"]:
        print(f"  • {highlight}")
    return 0 if not report.progress.errors else 2


def cmd_run(args: argparse.Namespace) -> int:
    manuscript = Path(args.manuscript).read_text(encoding="utf-8") if args.manuscript else None
    agent_types = args.agents.split(",") if args.agents else None
    return asyncio.run(_run(args.brief, manuscript, agent_types, args.provider))


def _node_index(node: AgentNode) -> int:
    suffix = node.id.rsplit("-", 1)[-1]
    return int(suffix) if suffix.isdigit() else 0


def cmd_inspect(args: argparse.Namespace) -> int:
    recorder = _recorder()
    snapshots = recorder.node_snapshots(args.workflow_id)
    if not snapshots:
        print(f"Workflow {args.workflow_id} not found")
        return 1

    record = recorder.latest_workflow_record(args.workflow_id)
    if record:
        progress = record["progress"]
        print(f"\n=== Workflow {args.workflow_id} ===")
        print(f"Status: {record['status']}")
        print(f"Completed: {len(progress['completed_node_ids'])}/{progress['total_nodes']}")
        print(f"Errors: {len(progress['errors'])}")

    for node in sorted(snapshots.values(), key=_node_index):
        print(f"\n=== {node.id} ({node.agent_type}) ===")
        print(f"Status: {node.status.value}")
        if node.error:
            print(f"Error: {node.error}")
        if node.output:
            print(node.output)
        if args.json and node.result is not None:
            print(json.dumps(node.result, indent=2, default=str))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scriptforge", description="Multi-agent story analysis workflows")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level (default from settings)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    agents = subparsers.add_parser("agents", help="List available agents")
    agents.set_defaults(func=cmd_agents)

    run = subparsers.add_parser("run", help="Run a full workflow for a story brief")
    run.add_argument("--brief", required=True, help="Story brief")
    run.add_argument("--manuscript", type=str, help="Path to a manuscript text file")
    run.add_argument("--agents", type=str, help="Comma-separated agent types (default: all)")
    run.add_argument("--provider", type=str, help="LLM provider override (openai, anthropic, ollama)")
    run.set_defaults(func=cmd_run)

    inspect = subparsers.add_parser("inspect", help="Show persisted node snapshots of a workflow")
    inspect.add_argument("workflow_id", type=str)
    inspect.add_argument("--json", action="store_true", help="Also print raw results")
    inspect.set_defaults(func=cmd_inspect)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        return args.func(args)
    except ScriptForgeError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
