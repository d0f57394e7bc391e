from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AgentContext(BaseModel):
    """
    Snapshot of everything an agent may read: the story brief, the optional
    manuscript and the results of the agents that ran before it.

    The model is frozen. ``with_result`` returns an extended copy so nodes
    never share mutable state; the copy threaded to the next node drops any
    custom prompt, which only applies to the node it was set for.
    """
    model_config = ConfigDict(frozen=True)

    story_brief: str
    manuscript: Optional[str] = None
    workflow_id: Optional[str] = None
    custom_prompt: Optional[str] = None
    previous_results: dict[str, Any] = Field(default_factory=dict)

    def result_for(self, agent_type: str) -> Optional[Any]:
        return self.previous_results.get(agent_type)

    def with_result(self, agent_type: str, result: Any) -> "AgentContext":
        return self.model_copy(update={
            "previous_results": {**self.previous_results, agent_type: result},
            "custom_prompt": None,
        })

    def with_custom_prompt(self, custom_prompt: Optional[str]) -> "AgentContext":
        return self.model_copy(update={"custom_prompt": custom_prompt})
