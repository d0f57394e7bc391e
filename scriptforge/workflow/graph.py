"""
Workflow graph model: agent nodes, labelled data-flow edges and run progress.

Nodes execute in construction order. Edges describe which results feed which
agents and are kept for display and persistence; ``topological_order`` derives
an edge-based order for callers that opt into it.

Node status state machine:

    idle ──► pending ──► running ──► success
                ▲                 └─► error
                └────── success / error (re-run)
"""

import enum
from collections import deque
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from scriptforge.errors import InvalidTransitionError


class NodeStatus(str, enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class WorkflowStatus(str, enum.Enum):
    DRAFT = "draft"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    ERROR = "error"


ALLOWED_TRANSITIONS: dict[NodeStatus, frozenset] = {
    NodeStatus.IDLE: frozenset({NodeStatus.PENDING}),
    NodeStatus.PENDING: frozenset({NodeStatus.RUNNING}),
    NodeStatus.RUNNING: frozenset({NodeStatus.SUCCESS, NodeStatus.ERROR}),
    NodeStatus.SUCCESS: frozenset({NodeStatus.PENDING}),
    NodeStatus.ERROR: frozenset({NodeStatus.PENDING}),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Edge(BaseModel):
    id: str
    source: str
    target: str
    label: str = ""


class AgentNode(BaseModel):
    """One agent instance inside a workflow."""
    id: str
    agent_type: str
    label: str = ""
    status: NodeStatus = NodeStatus.IDLE
    result: Any = None
    output: Optional[str] = None            # markdown summary of the result
    error: Optional[str] = None
    custom_prompt: Optional[str] = None
    input_snapshot: Optional[dict] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class NodeError(BaseModel):
    node_id: str
    agent_type: str
    message: str


class WorkflowProgress(BaseModel):
    completed_node_ids: list[str] = []
    total_nodes: int = 0
    errors: list[NodeError] = []

    @classmethod
    def from_nodes(cls, nodes: list[AgentNode]) -> "WorkflowProgress":
        return cls(
            completed_node_ids=[n.id for n in nodes if n.status == NodeStatus.SUCCESS],
            total_nodes=len(nodes),
            errors=[
                NodeError(node_id=n.id, agent_type=n.agent_type, message=n.error or "")
                for n in nodes
                if n.status == NodeStatus.ERROR
            ],
        )

    def summary(self) -> str:
        return f"{len(self.completed_node_ids)}/{self.total_nodes} agents executed"


class WorkflowGraph(BaseModel):
    id: Optional[str] = None
    name: str = ""
    story_brief: str = ""
    manuscript: Optional[str] = None
    status: WorkflowStatus = WorkflowStatus.DRAFT
    nodes: list[AgentNode] = []
    edges: list[Edge] = []
    progress: WorkflowProgress = Field(default_factory=WorkflowProgress)

    @model_validator(mode="after")
    def validate_structure(self):
        seen: set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                raise ValueError(f"Duplicate node id: {node.id}")
            seen.add(node.id)
        for edge in self.edges:
            if edge.source not in seen or edge.target not in seen:
                raise ValueError(
                    f"Edge {edge.id} references unknown node ({edge.source} -> {edge.target})"
                )
        return self

    # ── Structure ──

    def add_node(self, node: AgentNode) -> AgentNode:
        if any(n.id == node.id for n in self.nodes):
            raise ValueError(f"Duplicate node id: {node.id}")
        self.nodes.append(node)
        self.progress.total_nodes = len(self.nodes)
        return node

    def add_edge(self, edge: Edge) -> Edge:
        ids = {n.id for n in self.nodes}
        if edge.source not in ids or edge.target not in ids:
            raise ValueError(
                f"Edge {edge.id} references unknown node ({edge.source} -> {edge.target})"
            )
        self.edges.append(edge)
        return edge

    def get_node(self, node_id: str) -> AgentNode:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise KeyError(f"Node {node_id} not found in workflow {self.id}")

    # ── Scheduling ──

    def get_execution_order(self) -> list[AgentNode]:
        """Nodes in construction order."""
        return list(self.nodes)

    def topological_order(self) -> list[AgentNode]:
        """
        Kahn's algorithm over the edges. Ties keep construction order.

        Raises:
            ValueError: if the edges contain a cycle
        """
        position = {node.id: i for i, node in enumerate(self.nodes)}
        in_degree = {node.id: 0 for node in self.nodes}
        successors: dict[str, list[str]] = {node.id: [] for node in self.nodes}
        for edge in self.edges:
            successors[edge.source].append(edge.target)
            in_degree[edge.target] += 1

        ready = deque(node.id for node in self.nodes if in_degree[node.id] == 0)
        ordered: list[str] = []
        while ready:
            node_id = ready.popleft()
            ordered.append(node_id)
            released = []
            for target in successors[node_id]:
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    released.append(target)
            ready.extend(sorted(released, key=position.__getitem__))

        if len(ordered) != len(self.nodes):
            raise ValueError(f"Workflow {self.id} has a cycle in its edges")
        return [self.get_node(node_id) for node_id in ordered]

    def scheduled_order(self, by_edges: bool = False) -> list[AgentNode]:
        return self.topological_order() if by_edges else self.get_execution_order()

    # ── State ──

    def update_node_status(
        self,
        node_id: str,
        status: NodeStatus,
        result: Any = None,
        error: Optional[str] = None,
        output: Optional[str] = None,
    ) -> AgentNode:
        """
        The only way node state changes during a run.

        Raises:
            KeyError: unknown node
            InvalidTransitionError: transition not allowed by the state machine
        """
        node = self.get_node(node_id)
        status = NodeStatus(status)
        if status not in ALLOWED_TRANSITIONS[node.status]:
            raise InvalidTransitionError(node_id, node.status.value, status.value)

        if status == NodeStatus.PENDING:
            node.result = None
            node.output = None
            node.error = None
            node.started_at = None
            node.completed_at = None
        elif status == NodeStatus.RUNNING:
            node.started_at = _utcnow()
        elif status == NodeStatus.SUCCESS:
            node.result = result
            node.output = output
            node.error = None
            node.completed_at = _utcnow()
        elif status == NodeStatus.ERROR:
            node.result = result
            node.output = None
            node.error = error or "Unknown error"
            node.completed_at = _utcnow()

        node.status = status
        return node

    def refresh_progress(self) -> WorkflowProgress:
        self.progress = WorkflowProgress.from_nodes(self.nodes)
        return self.progress

    def final_status(self) -> WorkflowStatus:
        progress = self.refresh_progress()
        if not progress.errors:
            return WorkflowStatus.COMPLETED
        if progress.completed_node_ids:
            return WorkflowStatus.PARTIAL
        return WorkflowStatus.ERROR

    def to_record(self) -> dict:
        """Persisted logical shape of the workflow."""
        return {
            "id": self.id,
            "status": self.status.value,
            "nodes": [
                {
                    "id": n.id,
                    "agent_type": n.agent_type,
                    "status": n.status.value,
                    "result": n.result,
                    "error": n.error,
                    "custom_prompt": n.custom_prompt,
                }
                for n in self.nodes
            ],
            "edges": [e.model_dump() for e in self.edges],
            "progress": {
                "completed_node_ids": list(self.progress.completed_node_ids),
                "total_nodes": self.progress.total_nodes,
                "errors": [e.model_dump() for e in self.progress.errors],
            },
        }
