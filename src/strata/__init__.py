"""
Strata - hierarchical persistent memory for conversational agents.

Package structure:
- core: Configuration, logging, errors, shared types
- storage: Namespaced key-value backends (in-memory, SQLite)
- memory: Scoped memory views (conversation, working, semantic, episodic, shared)
  plus the compression/eviction engine and the agent memory manager
- llm: Language model and embedding collaborators
"""

__version__ = "0.1.0"
