from typing import TypedDict, List, Annotated
import operator

from scriptforge.agents.context import AgentContext


class RunState(TypedDict):
    """State threaded through the compiled run graph.

    ``context`` is replaced by every step with the extended copy returned by
    the node it ran. Fields annotated with ``operator.add`` are reducer
    fields: each step contributes a one-element list.
    """

    workflow_id: str
    context: AgentContext

    completed_node_ids: Annotated[List[str], operator.add]
    errors: Annotated[List[dict], operator.add]   # {"node_id", "agent_type", "message"}
