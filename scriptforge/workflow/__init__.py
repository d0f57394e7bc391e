"""
Workflow package.

Core components:
- graph.py:        WorkflowGraph, nodes, edges, status state machine
- builder.py:      Standard workflow construction
- controller.py:   Single-node execution and the execution guard
- coordinator.py:  Full runs compiled into a LangGraph chain
- recorder.py:     Node/workflow snapshots in the version store
- state.py:        RunState TypedDict
"""
