"""
Catalogue of the seven story agents: display metadata used for node labels,
workflow building and the CLI listing.
"""

from pydantic import BaseModel

from scriptforge.constants import (
    STORY_INTELLIGENCE,
    KNOWLEDGE_GRAPH,
    TEMPORAL_REASONING,
    CONTINUITY_VALIDATOR,
    CREATIVE_COAUTHOR,
    INTELLIGENT_RECALL,
    CINEMATIC_TEASER,
)


class AgentDefinition(BaseModel):
    id: str
    name: str
    description: str
    category: str
    capabilities: list[str]
    inputs: list[str]
    outputs: list[str]


AGENT_DEFINITIONS: dict[str, AgentDefinition] = {
    STORY_INTELLIGENCE: AgentDefinition(
        id=STORY_INTELLIGENCE,
        name="Story Intelligence Core",
        description="The brain - global context awareness, manuscript parsing, style & tone learning",
        category="Analysis",
        capabilities=[
            "Global context awareness",
            "Manuscript parsing & analysis",
            "Style & tone learning",
            "Narrative structure detection",
        ],
        inputs=["manuscript", "script", "text", "document"],
        outputs=["story_context", "style_profile", "structure_analysis"],
    ),
    KNOWLEDGE_GRAPH: AgentDefinition(
        id=KNOWLEDGE_GRAPH,
        name="Story Knowledge Graph Agent",
        description="The memory - characters, locations, objects, events, relationships & plot threads",
        category="Knowledge",
        capabilities=[
            "Character tracking",
            "Location mapping",
            "Object & prop tracking",
            "Event sequencing",
            "Relationship graphs",
            "Plot thread management",
        ],
        inputs=["story_context", "manuscript", "scene"],
        outputs=["knowledge_graph", "entity_data", "relationships"],
    ),
    TEMPORAL_REASONING: AgentDefinition(
        id=TEMPORAL_REASONING,
        name="Temporal & Causal Reasoning Agent",
        description="The timeline police - chronology tracking, flashbacks/flash-forwards, cause-effect validation",
        category="Analysis",
        capabilities=[
            "Chronology tracking",
            "Flashback detection",
            "Flash-forward analysis",
            "Cause-effect validation",
            "Temporal paradox detection",
        ],
        inputs=["knowledge_graph", "story_context", "events"],
        outputs=["timeline", "causal_chains", "temporal_issues"],
    ),
    CONTINUITY_VALIDATOR: AgentDefinition(
        id=CONTINUITY_VALIDATOR,
        name="Continuity & Intent Validator",
        description="The editor - contradiction detection, error vs intentional choice, severity classification",
        category="Quality",
        capabilities=[
            "Contradiction detection",
            "Intent analysis",
            "Severity assessment",
            "Plot hole detection",
        ],
        inputs=["knowledge_graph", "timeline", "manuscript"],
        outputs=["continuity_report", "errors", "warnings"],
    ),
    CREATIVE_COAUTHOR: AgentDefinition(
        id=CREATIVE_COAUTHOR,
        name="Creative Co-Author Agent",
        description="The muse - scene & plot suggestions, dialogue improvement, character arc guidance",
        category="Creation",
        capabilities=[
            "Scene suggestions",
            "Plot development ideas",
            "Dialogue enhancement",
            "Character arc guidance",
            "Theme reinforcement",
            "Alternative scenarios",
        ],
        inputs=["story_context", "knowledge_graph", "user_intent"],
        outputs=["suggestions", "improved_dialogue", "plot_ideas"],
    ),
    INTELLIGENT_RECALL: AgentDefinition(
        id=INTELLIGENT_RECALL,
        name="Intelligent Recall Agent",
        description="Ask your story - natural language queries, character & plot lookups, cross-references",
        category="Knowledge",
        capabilities=[
            "Natural language queries",
            "Character lookups",
            "Plot searches",
            "Cross-referencing",
            "Story Q&A",
        ],
        inputs=["knowledge_graph", "query", "story_context"],
        outputs=["answer", "references", "related_info"],
    ),
    CINEMATIC_TEASER: AgentDefinition(
        id=CINEMATIC_TEASER,
        name="Cinematic Teaser Generator",
        description="The mic-drop - story essence extraction, trailer script and visual prompt generation",
        category="Creation",
        capabilities=[
            "Story essence extraction",
            "Trailer script generation",
            "Visual prompt creation",
            "Hook creation",
            "Key moment identification",
        ],
        inputs=["story_context", "knowledge_graph", "preferences"],
        outputs=["teaser_script", "visual_prompts"],
    ),
}
