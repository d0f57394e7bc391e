"""
Workflow run coordinator.

A full run compiles the workflow's execution order into a linear LangGraph
``StateGraph`` with one step per node:

    step_0 ──► step_1 ──► ... ──► step_n ──► END

Steps run strictly one after another because every prompt is built from the
results before it. A failed node does not stop the chain; its step records
the error and hands a fallback-shaped context to the next step.
"""

import asyncio
import logging
import time
from typing import Any, Iterable, Optional

from langgraph.graph import StateGraph, END
from pydantic import BaseModel, ConfigDict

from scriptforge.agents.context import AgentContext
from scriptforge.config import Settings, settings as default_settings
from scriptforge.constants import FULL_RUN_OWNER
from scriptforge.errors import CoordinatorFault
from scriptforge.workflow.builder import build_workflow
from scriptforge.workflow.controller import NodeExecutionController, NodeOutcome
from scriptforge.workflow.graph import AgentNode, NodeStatus, WorkflowGraph, WorkflowProgress, WorkflowStatus
from scriptforge.workflow.state import RunState


class WorkflowRunReport(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    workflow_id: str
    status: WorkflowStatus
    progress: WorkflowProgress
    outcomes: list[NodeOutcome]
    context: AgentContext
    elapsed_ms: int

    def summary(self) -> str:
        return f"Workflow {self.workflow_id}: {self.status.value}, {self.progress.summary()}"


class FullWorkflowResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    workflow_id: str
    results: dict[str, Any]
    context: AgentContext
    success: bool
    errors: list[str]


class WorkflowRunCoordinator:
    def __init__(
        self,
        controller: NodeExecutionController,
        settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.controller = controller
        self.settings = settings or default_settings
        self.logger = logger or logging.getLogger(__name__)

    # ── Graph compilation ──

    def _make_step(self, graph: WorkflowGraph, node_id: str, outcomes: list[NodeOutcome]):
        async def step(state: RunState) -> dict:
            outcome = await self.controller.run_node(graph, node_id, state["context"])
            outcomes.append(outcome)
            progress = graph.refresh_progress()
            self.logger.info(f"Workflow {graph.id}: {progress.summary()}")

            update: dict[str, Any] = {"context": outcome.context}
            if outcome.status == NodeStatus.SUCCESS:
                update["completed_node_ids"] = [node_id]
            else:
                update["errors"] = [{
                    "node_id": node_id,
                    "agent_type": outcome.agent_type,
                    "message": outcome.error,
                }]
            return update

        return step

    def compile_run_graph(self, graph: WorkflowGraph, order: list[AgentNode], outcomes: list[NodeOutcome]):
        """Build and compile the linear run graph for ``order``."""
        workflow = StateGraph(RunState)
        names = [f"step_{index}" for index in range(len(order))]

        for name, node in zip(names, order):
            workflow.add_node(name, self._make_step(graph, node.id, outcomes))

        workflow.set_entry_point(names[0])
        for current, following in zip(names, names[1:]):
            workflow.add_edge(current, following)
        workflow.add_edge(names[-1], END)

        return workflow.compile()

    # ── Runs ──

    def _execution_order(self, graph: WorkflowGraph) -> list[AgentNode]:
        try:
            return graph.scheduled_order(by_edges=self.settings.schedule_by_edges)
        except ValueError as e:
            raise CoordinatorFault(str(e)) from e

    async def run_workflow(self, graph: WorkflowGraph, context: Optional[AgentContext] = None) -> WorkflowRunReport:
        """
        Execute every node of ``graph`` once, in order, continuing past failures.

        Raises:
            CoordinatorFault: the workflow has no id, or its order cannot be derived
            WorkflowBusyError: another execution is active for this workflow
        """
        if not graph.id:
            raise CoordinatorFault("Workflow has no id")

        context = context or AgentContext(
            story_brief=graph.story_brief,
            manuscript=graph.manuscript,
            workflow_id=graph.id,
        )
        started = time.monotonic()
        outcomes: list[NodeOutcome] = []

        with self.controller.guard.claim(graph.id, FULL_RUN_OWNER):
            order = self._execution_order(graph)
            self.logger.info(f"Workflow {graph.id}: starting run of {len(order)} nodes")
            graph.status = WorkflowStatus.RUNNING
            self.controller.queue(graph, [node.id for node in graph.nodes])

            finished = False
            try:
                if order:
                    run_graph = self.compile_run_graph(graph, order, outcomes)
                    final_state = await run_graph.ainvoke(
                        {
                            "workflow_id": graph.id,
                            "context": context,
                            "completed_node_ids": [],
                            "errors": [],
                        },
                        config={"recursion_limit": max(25, len(order) + 5)},
                    )
                    context = final_state["context"]
                finished = True
            finally:
                graph.status = graph.final_status() if finished else WorkflowStatus.ERROR
                await self.persist_workflow(graph)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        report = WorkflowRunReport(
            workflow_id=graph.id,
            status=graph.status,
            progress=graph.progress,
            outcomes=outcomes,
            context=context,
            elapsed_ms=elapsed_ms,
        )
        self.logger.info(f"{report.summary()} in {elapsed_ms}ms")
        return report

    async def persist_workflow(self, graph: WorkflowGraph) -> None:
        """Write the workflow record off the event loop; a failed write is logged, not raised."""
        recorder = self.controller.recorder
        if recorder is None:
            return
        try:
            await asyncio.to_thread(recorder.record_workflow, graph)
        except Exception as e:
            self.logger.error(f"Workflow {graph.id}: failed to persist workflow record: {e}")

    def context_for(self, graph: WorkflowGraph, node_id: str) -> AgentContext:
        """Context rebuilt from the stored results of every other successful node."""
        previous: dict[str, Any] = {}
        for node in graph.get_execution_order():
            if node.id != node_id and node.status == NodeStatus.SUCCESS and node.result is not None:
                previous[node.agent_type] = node.result
        return AgentContext(
            story_brief=graph.story_brief,
            manuscript=graph.manuscript,
            workflow_id=graph.id,
            previous_results=previous,
        )

    async def rerun_node(
        self,
        graph: WorkflowGraph,
        node_id: str,
        custom_prompt: Optional[str] = None,
    ) -> NodeOutcome:
        """
        Execute exactly one node; every other node is left untouched.

        The workflow status and record are refreshed afterwards so the
        persisted record agrees with the node snapshots.

        Raises:
            CoordinatorFault: the workflow has no id
            WorkflowBusyError: another execution is active for this workflow
        """
        if not graph.id:
            raise CoordinatorFault("Workflow has no id")
        graph.get_node(node_id)
        with self.controller.guard.claim(graph.id, node_id):
            context = self.context_for(graph, node_id)
            outcome = await self.controller.run_node(graph, node_id, context, custom_prompt=custom_prompt)
            graph.status = graph.final_status()
            await self.persist_workflow(graph)
        return outcome

    async def execute_full_workflow(
        self,
        story_brief: str,
        manuscript: Optional[str] = None,
        selected_agent_types: Optional[Iterable[str]] = None,
    ) -> FullWorkflowResult:
        """
        Build a workflow for the selected agents (all seven by default) and run it.

        ``results`` maps agent type to result, or to ``{"error": message}`` for
        failed agents; ``errors`` holds ``"agent-type: message"`` strings.
        """
        graph = build_workflow(
            story_brief,
            manuscript=manuscript,
            agent_types=selected_agent_types,
            preserve_order=selected_agent_types is not None,
        )
        report = await self.run_workflow(graph)

        results: dict[str, Any] = {}
        errors: list[str] = []
        for outcome in report.outcomes:
            if outcome.status == NodeStatus.SUCCESS:
                results[outcome.agent_type] = outcome.result
            else:
                results[outcome.agent_type] = {"error": outcome.error}
                errors.append(f"{outcome.agent_type}: {outcome.error}")

        return FullWorkflowResult(
            workflow_id=graph.id,
            results=results,
            context=report.context,
            success=not errors,
            errors=errors,
        )
