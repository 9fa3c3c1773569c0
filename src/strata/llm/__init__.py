"""
LLM module - language model and embedding collaborators.

- base: provider interface used by episodic memory and the compressor
- litellm_adapter: LiteLLM-backed completion and embedding providers

The memory layer treats both as optional: when none is configured it falls
back to its own heuristics.
"""
