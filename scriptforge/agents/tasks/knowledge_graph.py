"""
Story Knowledge Graph Agent: the memory of the system.

Extracts characters, locations, objects, events, relationships and plot
threads. Runs on the "pro" tier with a larger token budget because its
output is by far the biggest.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from scriptforge.agents.context import AgentContext
from scriptforge.agents.tasks.base import AgentTask, render_json, story_section
from scriptforge.constants import (
    KNOWLEDGE_GRAPH,
    KNOWLEDGE_GRAPH_MAX_TOKENS,
    MODEL_TIER_PRO,
    STORY_INTELLIGENCE,
)


class Character(BaseModel):
    id: str
    name: str
    role: str
    description: str
    traits: list[str] = []
    motivations: list[str] = []
    relationships: list[str] = []
    first_appearance: str = ""
    status: str = ""


class Location(BaseModel):
    id: str
    name: str
    type: str
    description: str
    significance: str = ""
    connected_locations: list[str] = []


class StoryObject(BaseModel):
    id: str
    name: str
    type: str
    description: str
    significance: str = ""
    current_location: str = ""
    owner: str = ""


class StoryEvent(BaseModel):
    id: str
    name: str
    description: str
    chapter: int
    timestamp: str = ""
    participants: list[str] = []
    location: str = ""
    caused_by: list[str] = []
    effects: list[str] = []
    type: Literal["action", "dialogue", "revelation", "conflict", "resolution"] = "action"


class Relationship(BaseModel):
    id: str
    source: str = Field(description="Character id the relationship starts from")
    target: str = Field(description="Character id the relationship points to")
    type: str
    description: str
    strength: float = Field(description="0-10 strength of the bond")
    evolution: list[str] = []


class PlotThread(BaseModel):
    id: str
    name: str
    description: str
    status: Literal["active", "resolved", "dormant", "foreshadowed"]
    start_chapter: int
    end_chapter: Optional[int] = None
    related_characters: list[str] = []
    related_events: list[str] = []


class KnowledgeGraphOutput(BaseModel):
    """Complete entity graph of the story."""
    characters: list[Character]
    locations: list[Location]
    objects: list[StoryObject]
    events: list[StoryEvent]
    relationships: list[Relationship]
    plot_threads: list[PlotThread]


KNOWLEDGE_GRAPH_PROMPT = """You are the Story Knowledge Graph Agent - the comprehensive memory system for narrative analysis.

STORY CONTEXT:
{story_context}

STORY/MANUSCRIPT TO ANALYZE:
{story}

YOUR MISSION: Extract ALL story elements and create a complete knowledge graph.

EXTRACTION REQUIREMENTS:
1. CHARACTERS: Extract EVERY named character with their role, personality traits, motivations, and current status
2. LOCATIONS: Extract ALL named places, buildings, cities, and geographic locations
3. OBJECTS: Extract important items, artifacts, keys, documents, or symbolic objects
4. EVENTS: Extract major plot events, revelations, confrontations, and turning points
5. RELATIONSHIPS: Map connections between characters (family, romantic, professional, rivalry, etc.)
6. PLOT THREADS: Identify main plot and all subplots

Use descriptive IDs like "char-maya-chen" not just "char-1". Include all details from the text."""


def build_prompt(context: AgentContext) -> str:
    return KNOWLEDGE_GRAPH_PROMPT.format(
        story_context=render_json(context.result_for(STORY_INTELLIGENCE)),
        story=story_section(context),
    )


FALLBACK = KnowledgeGraphOutput(
    characters=[],
    locations=[],
    objects=[],
    events=[],
    relationships=[],
    plot_threads=[],
)

TASK = AgentTask(
    agent_type=KNOWLEDGE_GRAPH,
    schema=KnowledgeGraphOutput,
    build_prompt=build_prompt,
    fallback=FALLBACK,
    model_tier=MODEL_TIER_PRO,
    max_tokens=KNOWLEDGE_GRAPH_MAX_TOKENS,
)
