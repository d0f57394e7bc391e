"""
Tests for full workflow runs, single-node re-runs and the full-workflow entry point.
"""

import asyncio
import json

import pytest

from conftest import BlockingBackend, FailingStore, FakeBackend, fail_with, sample_result, schema_agent_type
from scriptforge.agents.tasks import get_agent_task
from scriptforge.config import Settings
from scriptforge.constants import (
    CINEMATIC_TEASER,
    KNOWLEDGE_GRAPH,
    STANDARD_AGENT_ORDER,
    NODE_CANCELLED_MESSAGE,
    STORY_INTELLIGENCE,
    TEMPORAL_REASONING,
    VERSION_KIND_WORKFLOW,
)
from scriptforge.errors import CoordinatorFault, WorkflowBusyError
from scriptforge.workflow.builder import build_workflow
from scriptforge.workflow.controller import NodeExecutionController
from scriptforge.workflow.coordinator import WorkflowRunCoordinator
from scriptforge.workflow.graph import Edge, NodeStatus, WorkflowGraph, WorkflowStatus
from scriptforge.workflow.recorder import WorkflowRecorder


def failing_for(agent_type: str):
    """Structured handler that fails only for ``agent_type``."""
    def handler(prompt, schema, options):
        if schema_agent_type(schema) == agent_type:
            raise RuntimeError(f"{agent_type} exploded")
        return sample_result(schema_agent_type(schema))
    return handler


@pytest.fixture
def make_coordinator(make_executor, memory_store):
    def _make(backend, fallback_enabled=False, settings=None, store=None):
        controller = NodeExecutionController(
            make_executor(backend, fallback_enabled=fallback_enabled),
            recorder=WorkflowRecorder(store or memory_store),
        )
        return WorkflowRunCoordinator(controller, settings=settings)
    return _make


@pytest.fixture
def three_agent_graph():
    return build_workflow(
        "A heist thriller",
        agent_types=[STORY_INTELLIGENCE, KNOWLEDGE_GRAPH, TEMPORAL_REASONING],
        workflow_id="wf-run",
    )


class TestRunWorkflow:

    @pytest.mark.asyncio
    async def test_all_nodes_succeed(self, make_coordinator, three_agent_graph, memory_store):
        report = await make_coordinator(FakeBackend()).run_workflow(three_agent_graph)

        assert report.status == WorkflowStatus.COMPLETED
        assert report.progress.completed_node_ids == ["node-0", "node-1", "node-2"]
        assert [o.node_id for o in report.outcomes] == ["node-0", "node-1", "node-2"]
        assert set(report.context.previous_results) == {STORY_INTELLIGENCE, KNOWLEDGE_GRAPH, TEMPORAL_REASONING}
        assert three_agent_graph.status == WorkflowStatus.COMPLETED

        versions = memory_store.list_versions("wf-run")
        assert len(versions) == 4
        assert VERSION_KIND_WORKFLOW in versions[0].tags
        record = json.loads(versions[0].content)
        assert record["progress"]["total_nodes"] == 3

    @pytest.mark.asyncio
    async def test_continue_on_error(self, make_coordinator, three_agent_graph):
        backend = FakeBackend(structured=failing_for(KNOWLEDGE_GRAPH))
        report = await make_coordinator(backend).run_workflow(three_agent_graph)

        assert report.status == WorkflowStatus.PARTIAL
        assert report.progress.completed_node_ids == ["node-0", "node-2"]
        assert [e.node_id for e in report.progress.errors] == ["node-1"]
        assert report.progress.errors[0].message == "knowledge-graph exploded"

        # node 3 still ran, and saw the fallback-shaped knowledge graph
        temporal_prompt = backend.calls_of("structured")[-1]["prompt"]
        assert '"characters": []' in temporal_prompt
        assert report.context.result_for(KNOWLEDGE_GRAPH) == get_agent_task(KNOWLEDGE_GRAPH).fallback_result()

    @pytest.mark.asyncio
    async def test_nothing_completed_is_error(self, make_coordinator, three_agent_graph):
        backend = FakeBackend(structured=fail_with(RuntimeError("down")))
        report = await make_coordinator(backend).run_workflow(three_agent_graph)
        assert report.status == WorkflowStatus.ERROR
        assert report.progress.summary() == "0/3 agents executed"

    @pytest.mark.asyncio
    async def test_missing_id_is_coordinator_fault(self, make_coordinator):
        graph = build_workflow("x", agent_types=[STORY_INTELLIGENCE])
        graph.id = None
        with pytest.raises(CoordinatorFault):
            await make_coordinator(FakeBackend()).run_workflow(graph)

    @pytest.mark.asyncio
    async def test_empty_workflow(self, make_coordinator):
        report = await make_coordinator(FakeBackend()).run_workflow(WorkflowGraph(id="wf-empty"))
        assert report.status == WorkflowStatus.COMPLETED
        assert report.outcomes == []

    @pytest.mark.asyncio
    async def test_rerun_of_finished_workflow(self, make_coordinator, three_agent_graph):
        coordinator = make_coordinator(FakeBackend())
        await coordinator.run_workflow(three_agent_graph)
        report = await coordinator.run_workflow(three_agent_graph)
        assert report.status == WorkflowStatus.COMPLETED
        assert len(report.outcomes) == 3

    @pytest.mark.asyncio
    async def test_schedule_by_edges(self, make_coordinator):
        graph = build_workflow(
            "x",
            agent_types=[KNOWLEDGE_GRAPH, STORY_INTELLIGENCE],
            workflow_id="wf-edges",
            preserve_order=True,
        )
        # the standard story-intelligence -> knowledge-graph edge points backwards here
        coordinator = make_coordinator(FakeBackend(), settings=Settings(schedule_by_edges=True))
        report = await coordinator.run_workflow(graph)

        assert [o.agent_type for o in report.outcomes] == [STORY_INTELLIGENCE, KNOWLEDGE_GRAPH]

    @pytest.mark.asyncio
    async def test_cycle_with_edge_scheduling_is_fault(self, make_coordinator, three_agent_graph):
        three_agent_graph.add_edge(Edge(id="edge-back", source="node-2", target="node-0"))
        coordinator = make_coordinator(FakeBackend(), settings=Settings(schedule_by_edges=True))
        with pytest.raises(CoordinatorFault):
            await coordinator.run_workflow(three_agent_graph)
        assert all(n.status == NodeStatus.IDLE for n in three_agent_graph.nodes)

    @pytest.mark.asyncio
    async def test_full_run_rejected_while_node_running(self, make_coordinator, three_agent_graph):
        coordinator = make_coordinator(FakeBackend())
        with coordinator.controller.guard.claim("wf-run", "node-0"):
            with pytest.raises(WorkflowBusyError):
                await coordinator.run_workflow(three_agent_graph)
        assert all(n.status == NodeStatus.IDLE for n in three_agent_graph.nodes)


    @pytest.mark.asyncio
    async def test_store_failure_does_not_stop_run(self, make_coordinator, three_agent_graph):
        store = FailingStore(fail_times=1)
        report = await make_coordinator(FakeBackend(), store=store).run_workflow(three_agent_graph)

        assert report.status == WorkflowStatus.COMPLETED
        assert [n.status for n in three_agent_graph.nodes] == [NodeStatus.SUCCESS] * 3
        versions = store.list_versions("wf-run")
        assert len(versions) == 3
        assert VERSION_KIND_WORKFLOW in versions[0].tags

    @pytest.mark.asyncio
    async def test_workflow_record_failure_is_not_fatal(self, make_coordinator, three_agent_graph):
        store = FailingStore(fail_times=4)
        report = await make_coordinator(FakeBackend(), store=store).run_workflow(three_agent_graph)
        assert report.status == WorkflowStatus.COMPLETED
        assert three_agent_graph.status == WorkflowStatus.COMPLETED


class TestRerunNode:

    @pytest.mark.asyncio
    async def test_only_target_node_changes(self, make_coordinator, three_agent_graph, memory_store):
        backend = FakeBackend(structured=failing_for(KNOWLEDGE_GRAPH))
        coordinator = make_coordinator(backend)
        await coordinator.run_workflow(three_agent_graph)
        before = {n.id: n.model_copy(deep=True) for n in three_agent_graph.nodes}
        versions_before = len(memory_store.list_versions("wf-run"))

        backend.structured = lambda prompt, schema, options: sample_result(schema_agent_type(schema))
        outcome = await coordinator.rerun_node(three_agent_graph, "node-1", custom_prompt="List every crew member.")

        assert outcome.status == NodeStatus.SUCCESS
        prompt = backend.calls_of("structured")[-1]["prompt"]
        assert prompt.startswith("List every crew member.")
        assert '"genre": "heist thriller"' in prompt
        for node_id in ("node-0", "node-2"):
            assert three_agent_graph.get_node(node_id) == before[node_id]
        assert three_agent_graph.progress.completed_node_ids == ["node-0", "node-1", "node-2"]
        # one node snapshot plus the refreshed workflow record
        assert len(memory_store.list_versions("wf-run")) == versions_before + 2

    @pytest.mark.asyncio
    async def test_rerun_rejected_during_full_run(self, make_coordinator, three_agent_graph):
        coordinator = make_coordinator(FakeBackend())
        with coordinator.controller.guard.claim("wf-run", "*"):
            with pytest.raises(WorkflowBusyError):
                await coordinator.rerun_node(three_agent_graph, "node-0")


    @pytest.mark.asyncio
    async def test_rerun_refreshes_persisted_record(self, make_coordinator, three_agent_graph, memory_store):
        backend = FakeBackend(structured=failing_for(KNOWLEDGE_GRAPH))
        coordinator = make_coordinator(backend)
        await coordinator.run_workflow(three_agent_graph)
        recorder = coordinator.controller.recorder
        assert recorder.latest_workflow_record("wf-run")["status"] == WorkflowStatus.PARTIAL.value

        backend.structured = lambda prompt, schema, options: sample_result(schema_agent_type(schema))
        await coordinator.rerun_node(three_agent_graph, "node-1")

        record = recorder.latest_workflow_record("wf-run")
        assert three_agent_graph.status == WorkflowStatus.COMPLETED
        assert record["status"] == WorkflowStatus.COMPLETED.value
        assert record["progress"]["completed_node_ids"] == ["node-0", "node-1", "node-2"]
        assert record["progress"]["errors"] == []
        assert [n["status"] for n in record["nodes"]] == ["success"] * 3

    @pytest.mark.asyncio
    async def test_cancelled_rerun_leaves_workflow_runnable(self, make_coordinator, three_agent_graph):
        backend = BlockingBackend()
        coordinator = make_coordinator(backend)

        task = asyncio.create_task(coordinator.rerun_node(three_agent_graph, "node-0"))
        await backend.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        node = three_agent_graph.get_node("node-0")
        assert node.status == NodeStatus.ERROR
        assert node.error == NODE_CANCELLED_MESSAGE
        assert coordinator.controller.guard.is_busy("wf-run") is False

        backend.release.set()
        report = await coordinator.run_workflow(three_agent_graph)
        assert report.status == WorkflowStatus.COMPLETED


class TestExecuteFullWorkflow:

    @pytest.mark.asyncio
    async def test_all_agents_by_default(self, make_coordinator):
        result = await make_coordinator(FakeBackend()).execute_full_workflow("A heist thriller")

        assert result.success is True
        assert result.errors == []
        assert list(result.results) == list(STANDARD_AGENT_ORDER)
        assert result.results[CINEMATIC_TEASER]["tagline"] == "Trust no one. Steal everything."

    @pytest.mark.asyncio
    async def test_heist_brief_threads_story_context_into_knowledge_graph(self, make_coordinator):
        backend = FakeBackend()
        result = await make_coordinator(backend).execute_full_workflow(
            "A heist thriller",
            selected_agent_types=[STORY_INTELLIGENCE, KNOWLEDGE_GRAPH],
        )

        assert result.success is True
        structured = backend.calls_of("structured")
        assert [c["schema"] for c in structured] == [
            get_agent_task(STORY_INTELLIGENCE).schema,
            get_agent_task(KNOWLEDGE_GRAPH).schema,
        ]
        kg_prompt = structured[1]["prompt"]
        assert "A heist thriller" in kg_prompt
        assert '"genre": "heist thriller"' in kg_prompt
        assert '"main_conflict": "A crew must rob a casino' in kg_prompt
        assert result.results[KNOWLEDGE_GRAPH]["characters"][0]["name"] == "Danny"

    @pytest.mark.asyncio
    async def test_failed_agent_reported(self, make_coordinator):
        backend = FakeBackend(structured=failing_for(KNOWLEDGE_GRAPH))
        result = await make_coordinator(backend).execute_full_workflow(
            "A heist thriller",
            selected_agent_types=[STORY_INTELLIGENCE, KNOWLEDGE_GRAPH, TEMPORAL_REASONING],
        )

        assert result.success is False
        assert result.errors == ["knowledge-graph: knowledge-graph exploded"]
        assert result.results[KNOWLEDGE_GRAPH] == {"error": "knowledge-graph exploded"}
        assert TEMPORAL_REASONING in result.results
        assert "error" not in result.results[TEMPORAL_REASONING]

    @pytest.mark.asyncio
    async def test_unknown_agent_type_does_not_stop_run(self, make_coordinator):
        result = await make_coordinator(FakeBackend()).execute_full_workflow(
            "A heist thriller",
            selected_agent_types=[STORY_INTELLIGENCE, "plot-twister", CINEMATIC_TEASER],
        )
        assert result.errors == ["plot-twister: Unknown agent type: plot-twister"]
        assert CINEMATIC_TEASER in result.results

    @pytest.mark.asyncio
    async def test_concurrent_runs_of_distinct_workflows(self, make_coordinator):
        coordinator = make_coordinator(FakeBackend())
        first, second = await asyncio.gather(
            coordinator.execute_full_workflow("One", selected_agent_types=[STORY_INTELLIGENCE]),
            coordinator.execute_full_workflow("Two", selected_agent_types=[STORY_INTELLIGENCE]),
        )
        assert first.success and second.success
        assert first.workflow_id != second.workflow_id
