"""
Tests for the node execution controller and the execution guard.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

import threading

from conftest import BlockingBackend, FailingStore, FakeBackend, fail_with
from scriptforge.agents.context import AgentContext
from scriptforge.agents.tasks import StoryContextOutput, get_agent_task
from scriptforge.constants import FULL_RUN_OWNER, KNOWLEDGE_GRAPH, NODE_CANCELLED_MESSAGE, STORY_INTELLIGENCE
from scriptforge.errors import WorkflowBusyError
from scriptforge.workflow.builder import build_workflow
from scriptforge.workflow.controller import ExecutionGuard, NodeExecutionController, build_input_snapshot
from scriptforge.workflow.graph import AgentNode, NodeStatus, WorkflowGraph
from scriptforge.workflow.recorder import WorkflowRecorder


@pytest.fixture
def graph():
    return build_workflow(
        "A heist thriller",
        agent_types=[STORY_INTELLIGENCE, KNOWLEDGE_GRAPH],
        workflow_id="wf-ctl",
    )


@pytest.fixture
def context():
    return AgentContext(story_brief="A heist thriller", workflow_id="wf-ctl")


@pytest.fixture
def transitions():
    return []


@pytest.fixture
def make_controller(make_executor, memory_store, transitions):
    def _make(backend, fallback_enabled=True):
        return NodeExecutionController(
            make_executor(backend, fallback_enabled=fallback_enabled),
            recorder=WorkflowRecorder(memory_store),
            status_callbacks=[lambda workflow_id, node: transitions.append((node.id, node.status))],
        )
    return _make


class TestExecuteNode:

    @pytest.mark.asyncio
    async def test_success_path(self, make_controller, graph, context, transitions, memory_store):
        outcome = await make_controller(FakeBackend()).execute_node(graph, "node-0", context)

        node = graph.get_node("node-0")
        assert outcome.status == NodeStatus.SUCCESS
        assert node.status == NodeStatus.SUCCESS
        assert node.result["genre"] == "heist thriller"
        assert "**Genre:** heist thriller" in node.output
        assert node.input_snapshot == {
            "story_brief": "A heist thriller",
            "has_manuscript": False,
            "previous_agents": [],
            "custom_prompt": False,
        }
        assert outcome.context.result_for(STORY_INTELLIGENCE) == node.result
        assert transitions == [
            ("node-0", NodeStatus.PENDING),
            ("node-0", NodeStatus.RUNNING),
            ("node-0", NodeStatus.SUCCESS),
        ]
        assert len(memory_store.list_versions("wf-ctl")) == 1

    @pytest.mark.asyncio
    async def test_failure_becomes_error_status(self, make_controller, graph, context, memory_store):
        backend = FakeBackend(structured=fail_with(RuntimeError("backend down")))
        controller = make_controller(backend, fallback_enabled=False)

        outcome = await controller.execute_node(graph, "node-1", context)

        node = graph.get_node("node-1")
        assert outcome.status == NodeStatus.ERROR
        assert node.status == NodeStatus.ERROR
        assert node.error == "backend down"
        assert node.result is None
        assert outcome.context.result_for(KNOWLEDGE_GRAPH) == get_agent_task(KNOWLEDGE_GRAPH).fallback_result()
        assert len(memory_store.list_versions("wf-ctl")) == 1

    @pytest.mark.asyncio
    async def test_unknown_agent_type_is_a_node_error(self, make_controller, context):
        graph = WorkflowGraph(id="wf-ctl", nodes=[AgentNode(id="node-0", agent_type="plot-twister")])
        backend = FakeBackend()

        outcome = await make_controller(backend).execute_node(graph, "node-0", context)

        assert outcome.status == NodeStatus.ERROR
        assert outcome.error == "Unknown agent type: plot-twister"
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, make_controller, graph, context, transitions, memory_store):
        controller = make_controller(FakeBackend())
        await controller.execute_node(graph, "node-0", context)
        transitions.clear()

        await controller.execute_node(graph, "node-0", context)

        assert transitions == [
            ("node-0", NodeStatus.PENDING),
            ("node-0", NodeStatus.RUNNING),
            ("node-0", NodeStatus.SUCCESS),
        ]
        # One persisted snapshot per invocation
        assert len(memory_store.list_versions("wf-ctl")) == 2

    @pytest.mark.asyncio
    async def test_custom_prompt_applies_to_node(self, make_controller, graph, context):
        backend = FakeBackend()
        await make_controller(backend).execute_node(graph, "node-0", context, custom_prompt="Focus on the vault.")

        assert backend.calls_of("structured")[0]["prompt"].startswith("Focus on the vault.")
        assert graph.get_node("node-0").custom_prompt == "Focus on the vault."
        assert graph.get_node("node-0").input_snapshot["custom_prompt"] is True

    @pytest.mark.asyncio
    async def test_failing_status_callback_is_logged(self, make_executor, graph, context):
        logger = MagicMock()
        callback = MagicMock(side_effect=RuntimeError("listener gone"))
        controller = NodeExecutionController(
            make_executor(FakeBackend()), status_callbacks=[callback], logger=logger,
        )

        outcome = await controller.execute_node(graph, "node-0", context)

        assert outcome.status == NodeStatus.SUCCESS
        assert callback.call_count == 3
        assert logger.warning.call_count == 3


    @pytest.mark.asyncio
    async def test_parsed_result_narrows_to_schema(self, make_controller, graph, context):
        outcome = await make_controller(FakeBackend()).execute_node(graph, "node-0", context)
        assert isinstance(outcome.parsed_result, StoryContextOutput)
        assert outcome.parsed_result.genre == "heist thriller"

    @pytest.mark.asyncio
    async def test_parsed_result_is_none_for_errors(self, make_controller, graph, context):
        backend = FakeBackend(structured=fail_with(RuntimeError("backend down")))
        outcome = await make_controller(backend, fallback_enabled=False).execute_node(graph, "node-0", context)
        assert outcome.parsed_result is None


class TestPersistence:

    @pytest.mark.asyncio
    async def test_store_failure_does_not_fail_the_node(self, make_executor, graph, context):
        store = FailingStore(fail_times=1)
        logger = MagicMock()
        controller = NodeExecutionController(
            make_executor(FakeBackend()), recorder=WorkflowRecorder(store), logger=logger,
        )

        outcome = await controller.execute_node(graph, "node-0", context)

        assert outcome.status == NodeStatus.SUCCESS
        assert graph.get_node("node-0").status == NodeStatus.SUCCESS
        assert "db write failed" in logger.error.call_args.args[0]
        assert controller.guard.is_busy("wf-ctl") is False

        await controller.execute_node(graph, "node-0", context)
        assert len(store.list_versions("wf-ctl")) == 1

    @pytest.mark.asyncio
    async def test_snapshots_are_written_off_the_event_loop(self, make_executor, graph, context):
        store = FailingStore(fail_times=0)
        controller = NodeExecutionController(make_executor(FakeBackend()), recorder=WorkflowRecorder(store))

        await controller.execute_node(graph, "node-0", context)

        assert len(store.write_threads) == 1
        assert store.write_threads[0] != threading.get_ident()


class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancelled_node_ends_in_error_and_can_rerun(self, make_controller, graph, context, memory_store):
        backend = BlockingBackend()
        controller = make_controller(backend)

        task = asyncio.create_task(controller.execute_node(graph, "node-0", context))
        await backend.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        node = graph.get_node("node-0")
        assert node.status == NodeStatus.ERROR
        assert node.error == NODE_CANCELLED_MESSAGE
        assert controller.guard.is_busy("wf-ctl") is False
        assert memory_store.list_versions("wf-ctl") == []

        backend.release.set()
        outcome = await controller.execute_node(graph, "node-0", context)
        assert outcome.status == NodeStatus.SUCCESS

class TestMutualExclusion:

    @pytest.mark.asyncio
    async def test_second_request_rejected_while_running(self, make_controller, graph, context):
        backend = BlockingBackend()
        controller = make_controller(backend)

        first = asyncio.create_task(controller.execute_node(graph, "node-0", context))
        await backend.started.wait()

        with pytest.raises(WorkflowBusyError) as exc:
            await controller.execute_node(graph, "node-1", context)
        assert exc.value.active_owner == "node-0"
        assert graph.get_node("node-0").status == NodeStatus.RUNNING
        assert graph.get_node("node-1").status == NodeStatus.IDLE

        backend.release.set()
        outcome = await first
        assert outcome.status == NodeStatus.SUCCESS
        assert controller.guard.is_busy("wf-ctl") is False

    def test_guard_releases_after_error(self):
        guard = ExecutionGuard()
        with pytest.raises(RuntimeError):
            with guard.claim("wf-1", FULL_RUN_OWNER):
                raise RuntimeError("boom")
        assert guard.owner("wf-1") is None

    def test_guard_is_per_workflow(self):
        guard = ExecutionGuard()
        with guard.claim("wf-1", "node-0"):
            with guard.claim("wf-2", "node-0"):
                assert guard.owner("wf-1") == "node-0"
                assert guard.owner("wf-2") == "node-0"


class TestQueue:

    def test_queue_marks_nodes_pending(self, make_controller, graph, transitions):
        make_controller(FakeBackend()).queue(graph, [n.id for n in graph.nodes])
        assert all(n.status == NodeStatus.PENDING for n in graph.nodes)
        assert transitions == [("node-0", NodeStatus.PENDING), ("node-1", NodeStatus.PENDING)]


def test_input_snapshot_truncates_long_brief():
    context = AgentContext(story_brief="x" * 600, manuscript="text").with_result(STORY_INTELLIGENCE, {})
    snapshot = build_input_snapshot(context)
    assert snapshot["story_brief"] == "x" * 500 + "..."
    assert snapshot["has_manuscript"] is True
    assert snapshot["previous_agents"] == [STORY_INTELLIGENCE]
