"""
Intelligent Recall Agent: answers the questions a writer would ask about
their own story, with references back into the knowledge graph.

A single structured call produces every answer. When generation fails the
fallback answers the default question set with an "unavailable" message and
zero confidence, so the result always has one entry per question.
"""

from pydantic import BaseModel, Field

from scriptforge.agents.context import AgentContext
from scriptforge.agents.tasks.base import AgentTask, render_json, story_section
from scriptforge.constants import (
    DEFAULT_RECALL_QUESTIONS,
    INTELLIGENT_RECALL,
    KNOWLEDGE_GRAPH,
    RECALL_UNAVAILABLE_ANSWER,
    STORY_INTELLIGENCE,
)


class RecallReference(BaseModel):
    type: str
    id: str
    excerpt: str


class RecallAnswer(BaseModel):
    query: str
    answer: str
    confidence: float = Field(ge=0, le=1)
    references: list[RecallReference] = []
    related_info: list[str] = []


class RecallOutput(BaseModel):
    answers: list[RecallAnswer]


INTELLIGENT_RECALL_PROMPT = """You are the Intelligent Recall Agent - the story's memory.

STORY CONTEXT:
{story_context}

KNOWLEDGE GRAPH:
{knowledge_graph}

STORY:
{story}

YOUR TASK:
Think of {count} specific, insightful questions a writer might ask about this story
(for example: {examples}).
Answer each one comprehensively with references from the story, a confidence
between 0 and 1, and any related information worth cross-referencing."""


def build_prompt(context: AgentContext) -> str:
    return INTELLIGENT_RECALL_PROMPT.format(
        story_context=render_json(context.result_for(STORY_INTELLIGENCE)),
        knowledge_graph=render_json(context.result_for(KNOWLEDGE_GRAPH)),
        story=story_section(context),
        count=len(DEFAULT_RECALL_QUESTIONS),
        examples="; ".join(DEFAULT_RECALL_QUESTIONS),
    )


FALLBACK = RecallOutput(
    answers=[
        RecallAnswer(query=question, answer=RECALL_UNAVAILABLE_ANSWER, confidence=0)
        for question in DEFAULT_RECALL_QUESTIONS
    ]
)

TASK = AgentTask(
    agent_type=INTELLIGENT_RECALL,
    schema=RecallOutput,
    build_prompt=build_prompt,
    fallback=FALLBACK,
)
