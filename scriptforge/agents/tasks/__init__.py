"""
Agent task library: one task per agent type, re-exported as a registry.

Usage:
    from scriptforge.agents.tasks import get_agent_task, parse_agent_result
"""

from typing import Any, Union

from scriptforge.agents.tasks.base import AgentTask, UnstructuredResult
from scriptforge.agents.tasks import (
    story_intelligence,
    knowledge_graph,
    temporal_reasoning,
    continuity_validator,
    creative_coauthor,
    intelligent_recall,
    cinematic_teaser,
)
from scriptforge.agents.tasks.story_intelligence import StoryContextOutput
from scriptforge.agents.tasks.knowledge_graph import KnowledgeGraphOutput
from scriptforge.agents.tasks.temporal_reasoning import TimelineOutput
from scriptforge.agents.tasks.continuity_validator import ContinuityReportOutput
from scriptforge.agents.tasks.creative_coauthor import CreativeSuggestionsOutput
from scriptforge.agents.tasks.intelligent_recall import RecallOutput
from scriptforge.agents.tasks.cinematic_teaser import TeaserOutput
from scriptforge.errors import UnknownAgentTypeError

AgentResult = Union[
    StoryContextOutput,
    KnowledgeGraphOutput,
    TimelineOutput,
    ContinuityReportOutput,
    CreativeSuggestionsOutput,
    RecallOutput,
    TeaserOutput,
    UnstructuredResult,
]

AGENT_TASKS: dict[str, AgentTask] = {
    module.TASK.agent_type: module.TASK
    for module in (
        story_intelligence,
        knowledge_graph,
        temporal_reasoning,
        continuity_validator,
        creative_coauthor,
        intelligent_recall,
        cinematic_teaser,
    )
}


def is_known_agent_type(agent_type: str) -> bool:
    return agent_type in AGENT_TASKS


def get_agent_task(agent_type: str) -> AgentTask:
    """Look up the task for an agent type; unknown types fail immediately."""
    try:
        return AGENT_TASKS[agent_type]
    except KeyError:
        raise UnknownAgentTypeError(agent_type) from None


def parse_agent_result(agent_type: str, data: Any) -> AgentResult:
    """
    Narrow a raw result dict to its agent's schema.

    Returns the schema instance, or ``UnstructuredResult`` when the data
    (e.g. a loosely coerced legacy result) does not validate.
    """
    return get_agent_task(agent_type).parse(data)


__all__ = [
    "AGENT_TASKS",
    "AgentResult",
    "AgentTask",
    "UnstructuredResult",
    "StoryContextOutput",
    "KnowledgeGraphOutput",
    "TimelineOutput",
    "ContinuityReportOutput",
    "CreativeSuggestionsOutput",
    "RecallOutput",
    "TeaserOutput",
    "get_agent_task",
    "is_known_agent_type",
    "parse_agent_result",
]
