"""
Node execution controller: drives one node through its state machine.

    pending ──► running ──► success   result + output summary, context carried forward
                        └─► error     message, context extended with the fallback shape

Node failures never escape ``execute_node``; they become ``status = error``.
Every transition fires the status callbacks, and each finished node is
persisted exactly once. A cancelled node ends in ``error`` so it can be re-run.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from scriptforge.agents.context import AgentContext
from scriptforge.agents.formatting import format_agent_output
from scriptforge.agents.tasks import AgentResult, get_agent_task, is_known_agent_type, parse_agent_result
from scriptforge.constants import INPUT_BRIEF_PREVIEW_CHARS, NODE_CANCELLED_MESSAGE
from scriptforge.errors import WorkflowBusyError
from scriptforge.execution.executor import AgentExecutor
from scriptforge.workflow.graph import AgentNode, NodeStatus, WorkflowGraph
from scriptforge.workflow.recorder import WorkflowRecorder

StatusCallback = Callable[[str, AgentNode], None]


class ExecutionGuard:
    """
    At most one active execution per workflow id.

    The owner is the node id of an interactive single-node run, or
    ``FULL_RUN_OWNER`` while a full run holds the workflow.
    """

    def __init__(self):
        self._active: dict[str, str] = {}

    def owner(self, workflow_id: str) -> Optional[str]:
        return self._active.get(workflow_id)

    def is_busy(self, workflow_id: str) -> bool:
        return workflow_id in self._active

    @contextmanager
    def claim(self, workflow_id: str, owner: str):
        active = self._active.get(workflow_id)
        if active is not None:
            raise WorkflowBusyError(workflow_id, active)
        self._active[workflow_id] = owner
        try:
            yield
        finally:
            self._active.pop(workflow_id, None)


class NodeOutcome(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    node_id: str
    agent_type: str
    status: NodeStatus
    result: Any = None
    error: Optional[str] = None
    context: AgentContext
    strategy: Optional[str] = None

    @property
    def parsed_result(self) -> Optional[AgentResult]:
        if self.status != NodeStatus.SUCCESS:
            return None
        return parse_agent_result(self.agent_type, self.result)


def build_input_snapshot(context: AgentContext) -> dict:
    brief = context.story_brief
    if len(brief) > INPUT_BRIEF_PREVIEW_CHARS:
        brief = brief[:INPUT_BRIEF_PREVIEW_CHARS] + "..."
    return {
        "story_brief": brief,
        "has_manuscript": bool(context.manuscript),
        "previous_agents": list(context.previous_results.keys()),
        "custom_prompt": bool(context.custom_prompt),
    }


class NodeExecutionController:
    def __init__(
        self,
        executor: AgentExecutor,
        recorder: Optional[WorkflowRecorder] = None,
        status_callbacks: Sequence[StatusCallback] = (),
        logger: Optional[logging.Logger] = None,
        guard: Optional[ExecutionGuard] = None,
    ):
        self.executor = executor
        self.recorder = recorder
        self.status_callbacks = list(status_callbacks)
        self.logger = logger or logging.getLogger(__name__)
        self.guard = guard or ExecutionGuard()

    def add_status_callback(self, callback: StatusCallback) -> None:
        self.status_callbacks.append(callback)

    def _transition(self, graph: WorkflowGraph, node_id: str, status: NodeStatus, **fields) -> AgentNode:
        node = graph.update_node_status(node_id, status, **fields)
        for callback in self.status_callbacks:
            try:
                callback(graph.id, node)
            except Exception as e:
                self.logger.warning(f"Workflow {graph.id}: status callback failed for node {node_id}: {e}")
        return node

    def queue(self, graph: WorkflowGraph, node_ids: Iterable[str]) -> None:
        """Mark nodes as queued (pending)."""
        for node_id in node_ids:
            if graph.get_node(node_id).status != NodeStatus.PENDING:
                self._transition(graph, node_id, NodeStatus.PENDING)

    async def execute_node(
        self,
        graph: WorkflowGraph,
        node_id: str,
        context: AgentContext,
        custom_prompt: Optional[str] = None,
    ) -> NodeOutcome:
        """
        Interactive single-node execution.

        Raises:
            WorkflowBusyError: another execution is active for this workflow;
                               nothing is changed
            KeyError: unknown node id
        """
        graph.get_node(node_id)
        with self.guard.claim(graph.id, node_id):
            return await self.run_node(graph, node_id, context, custom_prompt=custom_prompt)

    async def persist_node(self, graph: WorkflowGraph, node_id: str) -> None:
        """Write the node's snapshot off the event loop; a failed write is logged, not raised."""
        if self.recorder is None:
            return
        try:
            await asyncio.to_thread(self.recorder.record_node, graph.id, graph.get_node(node_id))
        except Exception as e:
            self.logger.error(f"Workflow {graph.id}: failed to persist node {node_id}: {e}")

    async def run_node(
        self,
        graph: WorkflowGraph,
        node_id: str,
        context: AgentContext,
        custom_prompt: Optional[str] = None,
    ) -> NodeOutcome:
        """Execute one node. The caller must hold the workflow's guard."""
        node = graph.get_node(node_id)
        agent_type = node.agent_type
        if node.status != NodeStatus.PENDING:
            self._transition(graph, node_id, NodeStatus.PENDING)

        if custom_prompt is not None:
            node.custom_prompt = custom_prompt or None
        if node.custom_prompt:
            context = context.with_custom_prompt(node.custom_prompt)
        node.input_snapshot = build_input_snapshot(context)
        self._transition(graph, node_id, NodeStatus.RUNNING)
        self.logger.info(f"Node {node_id} ({agent_type}): running")

        try:
            execution = await self.executor.run(agent_type, context)
        except asyncio.CancelledError:
            self._transition(graph, node_id, NodeStatus.ERROR, error=NODE_CANCELLED_MESSAGE)
            self.logger.warning(f"Node {node_id} ({agent_type}): cancelled")
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            if is_known_agent_type(agent_type):
                carried = context.with_result(agent_type, get_agent_task(agent_type).fallback_result())
            else:
                carried = context.with_custom_prompt(None)
            self._transition(graph, node_id, NodeStatus.ERROR, error=message)
            self.logger.error(f"Node {node_id} ({agent_type}): error: {message}")
            outcome = NodeOutcome(
                node_id=node_id,
                agent_type=agent_type,
                status=NodeStatus.ERROR,
                error=message,
                context=carried,
            )
        else:
            self._transition(
                graph,
                node_id,
                NodeStatus.SUCCESS,
                result=execution.result,
                output=format_agent_output(agent_type, execution.result),
            )
            self.logger.info(
                f"Node {node_id} ({agent_type}): success via {execution.strategy} "
                f"in {execution.elapsed_ms}ms",
                extra={"strategy": execution.strategy, "elapsed_ms": execution.elapsed_ms},
            )
            outcome = NodeOutcome(
                node_id=node_id,
                agent_type=agent_type,
                status=NodeStatus.SUCCESS,
                result=execution.result,
                context=execution.updated_context,
                strategy=execution.strategy,
            )

        await self.persist_node(graph, node_id)
        return outcome
