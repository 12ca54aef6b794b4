"""Knowledge document/entity stores."""

from technodog.providers.knowledge.sqlite_knowledge_store import SQLiteKnowledgeStore

__all__ = ["SQLiteKnowledgeStore"]
