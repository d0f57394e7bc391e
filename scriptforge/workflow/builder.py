"""
Builds a workflow graph for a set of agents: one node per agent in the
standard flow order, plus the semantic data-flow edges between them.
"""

import uuid
from typing import Iterable, Optional

from scriptforge.agents.definitions import AGENT_DEFINITIONS
from scriptforge.constants import (
    CINEMATIC_TEASER,
    CONTINUITY_VALIDATOR,
    CREATIVE_COAUTHOR,
    EDGE_ID_PREFIX,
    INTELLIGENT_RECALL,
    KNOWLEDGE_GRAPH,
    NODE_ID_PREFIX,
    STANDARD_AGENT_ORDER,
    STORY_INTELLIGENCE,
    TEMPORAL_REASONING,
    WORKFLOW_ID_PREFIX,
)
from scriptforge.workflow.graph import AgentNode, Edge, WorkflowGraph

# (source agent, target agent, what flows between them)
STANDARD_CONNECTIONS = (
    (STORY_INTELLIGENCE, KNOWLEDGE_GRAPH, "story context & style profile"),
    (KNOWLEDGE_GRAPH, TEMPORAL_REASONING, "events & characters"),
    (TEMPORAL_REASONING, CONTINUITY_VALIDATOR, "timeline & causal chains"),
    (KNOWLEDGE_GRAPH, CONTINUITY_VALIDATOR, "entity facts to validate"),
    (CONTINUITY_VALIDATOR, CREATIVE_COAUTHOR, "continuity report & issues"),
    (KNOWLEDGE_GRAPH, INTELLIGENT_RECALL, "knowledge graph for Q&A"),
    (STORY_INTELLIGENCE, CINEMATIC_TEASER, "genre, tone & conflict"),
    (KNOWLEDGE_GRAPH, CINEMATIC_TEASER, "characters, locations & key events"),
)


def new_workflow_id() -> str:
    return f"{WORKFLOW_ID_PREFIX}-{uuid.uuid4().hex[:12]}"


def order_agent_types(agent_types: Iterable[str]) -> list[str]:
    """
    Standard agents first, in standard flow order; anything else keeps the
    order it was given in and goes last (it will fail at execution time).
    """
    requested = list(dict.fromkeys(agent_types))
    standard = [a for a in STANDARD_AGENT_ORDER if a in requested]
    others = [a for a in requested if a not in STANDARD_AGENT_ORDER]
    return standard + others


def build_workflow(
    story_brief: str,
    manuscript: Optional[str] = None,
    agent_types: Optional[Iterable[str]] = None,
    workflow_id: Optional[str] = None,
    name: Optional[str] = None,
    preserve_order: bool = False,
) -> WorkflowGraph:
    """
    Create a workflow for ``agent_types`` (all seven by default).

    Nodes are ``node-0 .. node-n``. With ``preserve_order`` the agent types
    keep the caller's order instead of the standard flow order.
    """
    selected = list(agent_types) if agent_types is not None else list(STANDARD_AGENT_ORDER)
    ordered = selected if preserve_order else order_agent_types(selected)

    graph = WorkflowGraph(
        id=workflow_id or new_workflow_id(),
        name=name or "Story analysis workflow",
        story_brief=story_brief,
        manuscript=manuscript,
    )

    node_for_agent: dict[str, str] = {}
    for index, agent_type in enumerate(ordered):
        definition = AGENT_DEFINITIONS.get(agent_type)
        node = graph.add_node(AgentNode(
            id=f"{NODE_ID_PREFIX}-{index}",
            agent_type=agent_type,
            label=definition.name if definition else agent_type,
        ))
        node_for_agent.setdefault(agent_type, node.id)

    for source, target, semantic in STANDARD_CONNECTIONS:
        if source in node_for_agent and target in node_for_agent:
            graph.add_edge(Edge(
                id=f"{EDGE_ID_PREFIX}-{len(graph.edges)}",
                source=node_for_agent[source],
                target=node_for_agent[target],
                label=semantic,
            ))

    graph.refresh_progress()
    return graph
