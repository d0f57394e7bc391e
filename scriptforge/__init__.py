"""
ScriptForge orchestration core.

Seven story-analysis agents run over a shared story context as a workflow
graph, with every model call wrapped in retry, timeout, schema validation and
a two-tier executor fallback.
"""

__version__ = "0.1.0"
