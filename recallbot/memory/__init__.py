"""Long-term conversational memory — storage, recall filtering, context assembly."""

from recallbot.memory.context import assemble_context
from recallbot.memory.evaluator import Evaluation, evaluate_candidates
from recallbot.memory.models import Message, RecalledMemory, Role
from recallbot.memory.storage import MemoryStorage
from recallbot.memory.vector_store import VectorStore

__all__ = [
    "Evaluation",
    "MemoryStorage",
    "Message",
    "RecalledMemory",
    "Role",
    "VectorStore",
    "assemble_context",
    "evaluate_candidates",
]
