"""
Story Intelligence Core: the first agent in every workflow.

Reads the brief (and manuscript, when present) and produces the global story
context that every later agent builds on: genre, themes, tone, structure,
style, conflict and setting.
"""

from typing import Literal

from pydantic import BaseModel, Field

from scriptforge.agents.context import AgentContext
from scriptforge.agents.tasks.base import AgentTask, story_section
from scriptforge.constants import STORY_INTELLIGENCE


class Tone(BaseModel):
    formality: Literal["formal", "informal", "mixed"]
    sentiment: Literal["dark", "light", "neutral", "complex"]
    pacing: Literal["slow", "steady", "fast", "variable"]


class NarrativeStructure(BaseModel):
    type: Literal["three-act", "hero-journey", "nonlinear", "episodic", "frame-narrative"]
    current_act: int
    total_acts: int


class WritingStyle(BaseModel):
    perspective: Literal[
        "first-person", "third-person-limited", "third-person-omniscient", "second-person"
    ]
    tense: Literal["past", "present", "mixed"]
    voice: str = Field(description="Description of narrative voice")


class StoryContextOutput(BaseModel):
    """Global story context extracted from the brief/manuscript."""
    genre: str = Field(description="Specific genre (e.g., dark fantasy, cozy mystery)")
    themes: list[str] = Field(description="3-5 major themes")
    tone: Tone
    narrative_structure: NarrativeStructure
    writing_style: WritingStyle
    main_conflict: str
    setting: str
    time_period: str


STORY_INTELLIGENCE_PROMPT = """You are the Story Intelligence Core - the brain of the story analysis system.

STORY/MANUSCRIPT TO ANALYZE:
{story}

YOUR TASK:
Perform comprehensive story analysis to extract:
1. Genre identification (be specific: dark fantasy, cozy mystery, space opera, etc.)
2. Major themes (list 3-5 key themes)
3. Tone analysis (formality, sentiment, pacing)
4. Narrative structure (three-act, hero's journey, nonlinear, etc.)
5. Writing style (perspective, tense, voice characteristics)
6. Main conflict identification
7. Setting and time period

Analyze the story thoroughly and provide detailed analysis."""


def build_prompt(context: AgentContext) -> str:
    return STORY_INTELLIGENCE_PROMPT.format(story=story_section(context))


FALLBACK = StoryContextOutput(
    genre="unknown",
    themes=["analysis pending"],
    tone=Tone(formality="mixed", sentiment="neutral", pacing="steady"),
    narrative_structure=NarrativeStructure(type="three-act", current_act=1, total_acts=3),
    writing_style=WritingStyle(perspective="third-person-limited", tense="past", voice="neutral"),
    main_conflict="Unable to analyze - please retry",
    setting="unknown",
    time_period="unknown",
)

TASK = AgentTask(
    agent_type=STORY_INTELLIGENCE,
    schema=StoryContextOutput,
    build_prompt=build_prompt,
    fallback=FALLBACK,
)
