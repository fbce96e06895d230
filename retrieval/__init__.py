# Retrieval Package
from retrieval.documents import (
    Document,
    ScoredDocument,
    KeywordRetriever,
    SAMPLE_DOCUMENTS,
    extract_sources,
)

__all__ = ["Document", "ScoredDocument", "KeywordRetriever", "SAMPLE_DOCUMENTS", "extract_sources"]
