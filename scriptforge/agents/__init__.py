"""
Story agents package.

Core components:
- context.py:      AgentContext, the immutable input threaded between agents
- definitions.py:  Display metadata for the seven agents
- formatting.py:   Markdown summaries of agent results
- tasks/:          Prompt, schema and fallback for each agent type
"""
