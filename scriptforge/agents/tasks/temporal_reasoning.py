"""
Temporal & Causal Reasoning Agent: the timeline police.
"""

from typing import Literal

from pydantic import BaseModel

from scriptforge.agents.context import AgentContext
from scriptforge.agents.tasks.base import AgentTask, render_json, story_section
from scriptforge.constants import KNOWLEDGE_GRAPH, STORY_INTELLIGENCE, TEMPORAL_REASONING


class ChronologicalEvent(BaseModel):
    id: str
    name: str
    description: str
    chapter: int
    timestamp: str
    participants: list[str] = []
    location: str = ""


class NarrativeShift(BaseModel):
    event_id: str
    narrative_position: int
    description: str


class CausalChain(BaseModel):
    cause: str
    effects: list[str]
    validated: bool


class TemporalIssue(BaseModel):
    id: str
    type: Literal["paradox", "inconsistency", "gap", "overlap"]
    description: str
    severity: Literal["low", "medium", "high", "critical"]
    affected_events: list[str] = []
    suggestion: str = ""


class TimelineOutput(BaseModel):
    chronological_events: list[ChronologicalEvent]
    flashbacks: list[NarrativeShift]
    flash_forwards: list[NarrativeShift]
    causal_chains: list[CausalChain]
    temporal_issues: list[TemporalIssue]
    story_duration: str
    narrative_pace: str


TEMPORAL_REASONING_PROMPT = """You are the Temporal & Causal Reasoning Agent - the timeline police.

STORY CONTEXT:
{story_context}

KNOWLEDGE GRAPH (Events & Characters):
{knowledge_graph}

STORY:
{story}

YOUR TASK:
Analyze the temporal structure and causal relationships:
1. Build a chronological timeline of events (story time, not narrative order)
2. Identify flashbacks (events shown out of chronological order, referring to past)
3. Identify flash-forwards (events shown out of order, referring to future)
4. Map cause-effect relationships between events
5. Detect any temporal issues (paradoxes, inconsistencies, gaps)
6. Assess story duration and pacing"""


def build_prompt(context: AgentContext) -> str:
    return TEMPORAL_REASONING_PROMPT.format(
        story_context=render_json(context.result_for(STORY_INTELLIGENCE)),
        knowledge_graph=render_json(context.result_for(KNOWLEDGE_GRAPH)),
        story=story_section(context),
    )


FALLBACK = TimelineOutput(
    chronological_events=[],
    flashbacks=[],
    flash_forwards=[],
    causal_chains=[],
    temporal_issues=[],
    story_duration="unknown",
    narrative_pace="unknown",
)

TASK = AgentTask(
    agent_type=TEMPORAL_REASONING,
    schema=TimelineOutput,
    build_prompt=build_prompt,
    fallback=FALLBACK,
)
