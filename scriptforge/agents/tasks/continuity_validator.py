"""
Continuity & Intent Validator: finds contradictions and decides whether each
one is a mistake or a deliberate narrative choice.
"""

from typing import Literal

from pydantic import BaseModel, Field

from scriptforge.agents.context import AgentContext
from scriptforge.agents.tasks.base import AgentTask, render_json, story_section
from scriptforge.constants import (
    CONTINUITY_VALIDATOR,
    KNOWLEDGE_GRAPH,
    STORY_INTELLIGENCE,
    TEMPORAL_REASONING,
)


class Contradiction(BaseModel):
    id: str
    type: str
    description: str
    locations: list[str] = []
    is_intentional: bool


class ContinuityError(BaseModel):
    id: str
    type: str
    description: str
    severity: Literal["low", "medium", "high", "critical"]
    suggestion: str = ""


class ContinuityReportOutput(BaseModel):
    contradictions: list[Contradiction]
    intentional_choices: list[str]
    errors: list[ContinuityError]
    warnings: list[str]
    continuity_score: float = Field(ge=0, le=100, description="Overall continuity, 0-100")
    recommendations: list[str]


CONTINUITY_VALIDATOR_PROMPT = """You are the Continuity & Intent Validator - the meticulous editor.

STORY CONTEXT:
{story_context}

KNOWLEDGE GRAPH:
{knowledge_graph}

TIMELINE ANALYSIS:
{timeline}

STORY:
{story}

YOUR TASK:
Validate story continuity and detect issues:
1. Find contradictions (character traits, facts, locations, objects)
2. Distinguish intentional narrative choices from errors
3. Classify errors by severity
4. Check for plot holes
5. Validate character consistency
6. Provide recommendations"""


def build_prompt(context: AgentContext) -> str:
    return CONTINUITY_VALIDATOR_PROMPT.format(
        story_context=render_json(context.result_for(STORY_INTELLIGENCE)),
        knowledge_graph=render_json(context.result_for(KNOWLEDGE_GRAPH)),
        timeline=render_json(context.result_for(TEMPORAL_REASONING)),
        story=story_section(context),
    )


FALLBACK = ContinuityReportOutput(
    contradictions=[],
    intentional_choices=[],
    errors=[],
    warnings=["Analysis incomplete - please retry"],
    continuity_score=0,
    recommendations=["Retry analysis for accurate results"],
)

TASK = AgentTask(
    agent_type=CONTINUITY_VALIDATOR,
    schema=ContinuityReportOutput,
    build_prompt=build_prompt,
    fallback=FALLBACK,
)
