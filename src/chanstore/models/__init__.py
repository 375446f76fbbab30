from chanstore.models.compaction import CompactionSummary, ConversationArchive

__all__ = [
    "CompactionSummary", "ConversationArchive",
]
