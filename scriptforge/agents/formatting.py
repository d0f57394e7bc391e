"""
Human-readable summaries of agent results.

``format_agent_output`` renders the short markdown block stored on a node as
its ``output``; ``summarize_context`` collects the run highlights shown after
a full workflow.
"""

import json
from typing import Any

from pydantic import BaseModel

from scriptforge.agents.context import AgentContext
from scriptforge.agents.tasks import (
    AGENT_TASKS,
    ContinuityReportOutput,
    CreativeSuggestionsOutput,
    KnowledgeGraphOutput,
    RecallOutput,
    StoryContextOutput,
    TeaserOutput,
    TimelineOutput,
    UnstructuredResult,
)
from scriptforge.constants import (
    CINEMATIC_TEASER,
    CONTINUITY_VALIDATOR,
    CREATIVE_COAUTHOR,
    KNOWLEDGE_GRAPH,
    STORY_INTELLIGENCE,
    TEMPORAL_REASONING,
)


def _raw(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, indent=2, default=str)


def _format_typed(parsed: BaseModel) -> str:
    if isinstance(parsed, StoryContextOutput):
        return (
            f"**Genre:** {parsed.genre}\n"
            f"**Themes:** {', '.join(parsed.themes)}\n"
            f"**Setting:** {parsed.setting}\n"
            f"**Main Conflict:** {parsed.main_conflict}"
        )
    if isinstance(parsed, KnowledgeGraphOutput):
        return (
            f"**Characters:** {len(parsed.characters)}\n"
            f"**Locations:** {len(parsed.locations)}\n"
            f"**Events:** {len(parsed.events)}\n"
            f"**Relationships:** {len(parsed.relationships)}\n"
            f"**Plot Threads:** {len(parsed.plot_threads)}"
        )
    if isinstance(parsed, TimelineOutput):
        return (
            f"**Timeline Events:** {len(parsed.chronological_events)}\n"
            f"**Flashbacks:** {len(parsed.flashbacks)}\n"
            f"**Causal Chains:** {len(parsed.causal_chains)}\n"
            f"**Issues Found:** {len(parsed.temporal_issues)}"
        )
    if isinstance(parsed, ContinuityReportOutput):
        return (
            f"**Continuity Score:** {parsed.continuity_score:g}/100\n"
            f"**Contradictions:** {len(parsed.contradictions)}\n"
            f"**Errors:** {len(parsed.errors)}\n"
            f"**Recommendations:** {len(parsed.recommendations)}"
        )
    if isinstance(parsed, CreativeSuggestionsOutput):
        return (
            f"**Scene Suggestions:** {len(parsed.scene_suggestions)}\n"
            f"**Plot Developments:** {len(parsed.plot_developments)}\n"
            f"**Dialogue Ideas:** {len(parsed.dialogue_improvements)}\n"
            f"**Character Arcs:** {len(parsed.character_arc_guidance)}"
        )
    if isinstance(parsed, RecallOutput):
        lines = [f"**Insights Generated:** {len(parsed.answers)}"]
        lines.extend(f"• {answer.query}" for answer in parsed.answers[:3])
        return "\n".join(lines)
    if isinstance(parsed, TeaserOutput):
        return (
            f"**Tagline:** {parsed.tagline}\n"
            f"**Visual Scenes:** {len(parsed.visual_prompts)}\n"
            f"**Hooks:** {' | '.join(parsed.hooks)}"
        )
    return _raw(parsed.model_dump())


def format_agent_output(agent_type: str, result: Any) -> str:
    """Markdown summary of one agent result; raw JSON when it has no known shape."""
    task = AGENT_TASKS.get(agent_type)
    if task is None or result is None:
        return _raw(result)
    parsed = task.parse(result)
    if isinstance(parsed, UnstructuredResult):
        return _raw(result)
    return _format_typed(parsed)


def summarize_context(context: AgentContext) -> dict:
    """Which analyses are present in the context, plus short highlights."""
    results = context.previous_results
    summary = {
        "agents_executed": len(results),
        "story_analyzed": STORY_INTELLIGENCE in results,
        "knowledge_graph_built": KNOWLEDGE_GRAPH in results,
        "timeline_analyzed": TEMPORAL_REASONING in results,
        "continuity_checked": CONTINUITY_VALIDATOR in results,
        "suggestions_generated": CREATIVE_COAUTHOR in results,
        "teaser_created": CINEMATIC_TEASER in results,
        "highlights": [],
    }

    highlights = summary["highlights"]
    story = results.get(STORY_INTELLIGENCE)
    if isinstance(story, dict) and story.get("genre"):
        highlights.append(f"Genre identified: {story['genre']}")
    graph = results.get(KNOWLEDGE_GRAPH)
    if isinstance(graph, dict):
        highlights.append(f"{len(graph.get('characters') or [])} characters mapped")
    report = results.get(CONTINUITY_VALIDATOR)
    if isinstance(report, dict) and "continuity_score" in report:
        highlights.append(f"Continuity score: {report['continuity_score']}/100")
    teaser = results.get(CINEMATIC_TEASER)
    if isinstance(teaser, dict) and teaser.get("tagline"):
        highlights.append(f'Trailer tagline: "{teaser["tagline"]}"')

    return summary
