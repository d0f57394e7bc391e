"""
Cinematic Teaser Generator: story essence, trailer script and per-scene
visual prompts built from the actual characters and places of the story.
"""

from pydantic import BaseModel, Field

from scriptforge.agents.context import AgentContext
from scriptforge.agents.tasks.base import AgentTask, render_json
from scriptforge.constants import CINEMATIC_TEASER, KNOWLEDGE_GRAPH, STORY_INTELLIGENCE


class TeaserEssence(BaseModel):
    genre: str
    main_conflict: str
    mood: str
    hook: str
    key_moments: list[str] = []


class TeaserScript(BaseModel):
    duration: float = Field(description="Teaser length in seconds")
    narration: list[str] = []
    structure: list[str] = []
    music_suggestion: str = ""
    pacing: str = ""


class VisualPrompt(BaseModel):
    scene: str
    prompt: str = Field(description="50-100 word prompt for AI video generation")
    duration: float
    camera_angle: str
    mood: str
    characters: list[str] = []
    location: str = ""


class TeaserOutput(BaseModel):
    essence: TeaserEssence
    teaser_script: TeaserScript
    visual_prompts: list[VisualPrompt]
    hooks: list[str]
    tagline: str


CINEMATIC_TEASER_PROMPT = """You are the Cinematic Teaser Generator - create an epic, story-specific trailer.

STORY BRIEF:
{story_brief}

STORY CONTEXT:
{story_context}

KNOWLEDGE GRAPH:
{knowledge_graph}

Create a cinematic teaser/trailer that:
1. Uses ACTUAL character names, locations, and events from the story
2. Creates visual prompts specific to THIS story
3. Includes 4-6 visual scenes with detailed prompts for AI generation
4. Has a memorable tagline

Make the visual prompts detailed enough for AI video generation (50-100 words each)."""


def build_prompt(context: AgentContext) -> str:
    return CINEMATIC_TEASER_PROMPT.format(
        story_brief=context.story_brief,
        story_context=render_json(context.result_for(STORY_INTELLIGENCE)),
        knowledge_graph=render_json(context.result_for(KNOWLEDGE_GRAPH)),
    )


FALLBACK = TeaserOutput(
    essence=TeaserEssence(
        genre="Unknown",
        main_conflict="Unable to analyze",
        mood="Unknown",
        hook="Please retry analysis",
    ),
    teaser_script=TeaserScript(duration=60),
    visual_prompts=[],
    hooks=[],
    tagline="Analysis pending...",
)

TASK = AgentTask(
    agent_type=CINEMATIC_TEASER,
    schema=TeaserOutput,
    build_prompt=build_prompt,
    fallback=FALLBACK,
)
