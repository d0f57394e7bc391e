"""
Execution layer: retry policy, the structured generation primitive, strategy
tiers and the agent executor.
"""
