"""
Memory module - hierarchical agent memory.

Scopes (key prefixes):
- global::<key>: shared across all agents
- agent::<agent_id>::<key>: agent-specific, persistent
- session::<session_id>::<key>: session-scoped, temporary

Views:
- conversation: bounded chat history per session
- working: session scratchpad
- semantic: subject-predicate-object facts with optional embeddings
- episodic: summarized interactions ranked by importance
- shared: cross-agent knowledge base with ACLs

compression bounds growth; manager wires identity to all views.
"""
