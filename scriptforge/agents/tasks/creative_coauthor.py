from typing import Optional

from pydantic import BaseModel

from scriptforge.agents.context import AgentContext
from scriptforge.agents.tasks.base import AgentTask, render_json, story_section
from scriptforge.constants import (
    CONTINUITY_VALIDATOR,
    CREATIVE_COAUTHOR,
    KNOWLEDGE_GRAPH,
    STORY_INTELLIGENCE,
)


class SceneSuggestion(BaseModel):
    title: str
    description: str
    placement: str
    characters: list[str] = []
    purpose: str
    emotional_beat: str


class PlotDevelopment(BaseModel):
    idea: str
    rationale: str
    impact: str
    related_threads: list[str] = []


class DialogueImprovement(BaseModel):
    original: Optional[str] = None
    improved: str
    character: str
    context: str
    reason: str


class CharacterArcGuidance(BaseModel):
    character: str
    current_stage: str
    next_steps: list[str]
    emotional_journey: str
    potential_conflicts: list[str] = []


class CreativeSuggestionsOutput(BaseModel):
    """Scene, plot, dialogue and arc suggestions from the co-author agent."""
    scene_suggestions: list[SceneSuggestion]
    plot_developments: list[PlotDevelopment]
    dialogue_improvements: list[DialogueImprovement]
    character_arc_guidance: list[CharacterArcGuidance]
    theme_reinforcements: list[str]
    alternative_scenarios: list[str]


CREATIVE_COAUTHOR_PROMPT = """You are the Creative Co-Author Agent - the inspiring muse.

STORY CONTEXT:
{story_context}

KNOWLEDGE GRAPH:
{knowledge_graph}

CONTINUITY REPORT:
{continuity_report}

STORY:
{story}

YOUR TASK:
Provide creative suggestions to enhance the story:
1. Suggest compelling new scenes (2-3 suggestions)
2. Propose plot developments (2-3 ideas)
3. Improve dialogue opportunities (2-3 examples)
4. Guide character arcs (for main characters)
5. Reinforce themes
6. Offer alternative scenarios

Be creative, specific, and actionable!"""


def build_prompt(context: AgentContext) -> str:
    return CREATIVE_COAUTHOR_PROMPT.format(
        story_context=render_json(context.result_for(STORY_INTELLIGENCE)),
        knowledge_graph=render_json(context.result_for(KNOWLEDGE_GRAPH)),
        continuity_report=render_json(context.result_for(CONTINUITY_VALIDATOR)),
        story=story_section(context),
    )


FALLBACK = CreativeSuggestionsOutput(
    scene_suggestions=[],
    plot_developments=[],
    dialogue_improvements=[],
    character_arc_guidance=[],
    theme_reinforcements=[],
    alternative_scenarios=[],
)

TASK = AgentTask(
    agent_type=CREATIVE_COAUTHOR,
    schema=CreativeSuggestionsOutput,
    build_prompt=build_prompt,
    fallback=FALLBACK,
)
