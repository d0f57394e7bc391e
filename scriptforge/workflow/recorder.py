"""
Writes node and workflow snapshots to a version store, and reads them back.

Each finished node is written once (tags ``["node", <node id>]``); each
finished run is written once as a workflow record (tag ``["workflow"]``).
Restoring rebuilds node state from the newest snapshot of each node without
re-running any agent.
"""

import json
import logging
from typing import Optional

from scriptforge.constants import VERSION_KIND_NODE, VERSION_KIND_WORKFLOW
from scriptforge.services.version_store import VersionRecord, VersionStore
from scriptforge.workflow.graph import AgentNode, WorkflowGraph

# Large enough to cover every node snapshot of a long-lived workflow
RESTORE_SCAN_LIMIT = 1000


class WorkflowRecorder:
    def __init__(self, store: VersionStore, logger: Optional[logging.Logger] = None):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    def record_node(self, workflow_id: str, node: AgentNode) -> VersionRecord:
        content = json.dumps(node.model_dump(mode="json"), default=str)
        record = self.store.create_version(
            workflow_id,
            content,
            message=f"Node {node.id} ({node.agent_type}): {node.status.value}",
            stats={
                "kind": VERSION_KIND_NODE,
                "node_id": node.id,
                "agent_type": node.agent_type,
                "status": node.status.value,
            },
            tags=[VERSION_KIND_NODE, node.id],
        )
        self.logger.debug(f"Workflow {workflow_id}: persisted node {node.id} as version {record.id}")
        return record

    def record_workflow(self, graph: WorkflowGraph) -> VersionRecord:
        progress = graph.progress
        record = self.store.create_version(
            graph.id,
            json.dumps(graph.to_record(), default=str),
            message=f"Workflow {graph.id}: {graph.status.value} ({progress.summary()})",
            stats={
                "kind": VERSION_KIND_WORKFLOW,
                "status": graph.status.value,
                "completed": len(progress.completed_node_ids),
                "total": progress.total_nodes,
                "errors": len(progress.errors),
            },
            tags=[VERSION_KIND_WORKFLOW],
        )
        self.logger.info(f"Workflow {graph.id}: persisted workflow record as version {record.id}")
        return record

    def node_snapshots(self, workflow_id: str) -> dict[str, AgentNode]:
        """Newest snapshot of every node persisted for ``workflow_id``."""
        latest: dict[str, AgentNode] = {}
        for version in self.store.list_versions(workflow_id, limit=RESTORE_SCAN_LIMIT):
            if VERSION_KIND_NODE not in version.tags:
                continue
            node = AgentNode.model_validate(json.loads(version.content))
            # Versions come newest first
            latest.setdefault(node.id, node)
        return latest

    def latest_workflow_record(self, workflow_id: str) -> Optional[dict]:
        for version in self.store.list_versions(workflow_id, limit=RESTORE_SCAN_LIMIT):
            if VERSION_KIND_WORKFLOW in version.tags:
                return json.loads(version.content)
        return None

    def restore_nodes(self, graph: WorkflowGraph) -> list[str]:
        """
        Copy persisted node state onto ``graph``'s nodes.

        Returns:
            Ids of the nodes that were restored
        """
        snapshots = self.node_snapshots(graph.id)
        restored: list[str] = []
        for node in graph.nodes:
            snapshot = snapshots.get(node.id)
            if snapshot is None or snapshot.agent_type != node.agent_type:
                continue
            for field in (
                "status", "result", "output", "error", "custom_prompt",
                "input_snapshot", "started_at", "completed_at",
            ):
                setattr(node, field, getattr(snapshot, field))
            restored.append(node.id)

        graph.refresh_progress()
        self.logger.info(f"Workflow {graph.id}: restored {len(restored)}/{len(graph.nodes)} nodes")
        return restored
