"""
Application-wide constants to replace magic numbers and strings.
"""
# Agent types, in standard workflow order
STORY_INTELLIGENCE = "story-intelligence"
KNOWLEDGE_GRAPH = "knowledge-graph"
TEMPORAL_REASONING = "temporal-reasoning"
CONTINUITY_VALIDATOR = "continuity-validator"
CREATIVE_COAUTHOR = "creative-coauthor"
INTELLIGENT_RECALL = "intelligent-recall"
CINEMATIC_TEASER = "cinematic-teaser"

STANDARD_AGENT_ORDER = (
    STORY_INTELLIGENCE,
    KNOWLEDGE_GRAPH,
    TEMPORAL_REASONING,
    CONTINUITY_VALIDATOR,
    CREATIVE_COAUTHOR,
    INTELLIGENT_RECALL,
    CINEMATIC_TEASER,
)

# Model tiers
MODEL_TIER_FLASH = "flash"
MODEL_TIER_PRO = "pro"

# Token budget for the knowledge graph extraction (largest structured output)
KNOWLEDGE_GRAPH_MAX_TOKENS = 32768

# Strategy names (logged and recorded on each execution)
STRATEGY_STRUCTURED = "structured"
STRATEGY_LEGACY = "legacy"
STRATEGY_FALLBACK_DEFAULT = "fallback-default"

# Node input snapshot
INPUT_BRIEF_PREVIEW_CHARS = 500
NODE_CANCELLED_MESSAGE = "cancelled"

# Workflow ids / node ids
WORKFLOW_ID_PREFIX = "wf"
NODE_ID_PREFIX = "node"
EDGE_ID_PREFIX = "edge"

# Owner recorded by the execution guard while a full run is active
FULL_RUN_OWNER = "*"

# Recall agent questions used when the model cannot propose its own
DEFAULT_RECALL_QUESTIONS = (
    "What are the key character relationships?",
    "What are the unresolved plot threads?",
    "What are the main conflicts?",
    "How do the themes manifest?",
    "What are potential story weaknesses?",
)
RECALL_UNAVAILABLE_ANSWER = "Unable to process this query at the moment."

# Version history
DEFAULT_VERSION_LIST_LIMIT = 50
VERSION_KIND_NODE = "node"
VERSION_KIND_WORKFLOW = "workflow"
