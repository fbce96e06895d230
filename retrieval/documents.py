"""
Document Retrieval

Flat keyword search over in-memory document collections.
Returns structured documents; answer generation lives in the engine.

DESIGN RULES:
- No vector index - a linear scan per query
- Scores are query-term overlap ratios in [0, 1]
- Documents with no overlapping term are not returned
"""

import logging
import re
from threading import Lock
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "general"
NO_CONTEXT_ANSWER = "I don't have enough information to answer your question accurately."

RAG_SYSTEM_PROMPT = (
    "You are a helpful AI assistant that provides accurate answers based on the provided "
    "context documents. Always cite your sources using document numbers."
)

_TOKEN = re.compile(r"\w+")


class Document(BaseModel):
    id: str
    content: str
    title: Optional[str] = None
    source: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ScoredDocument(BaseModel):
    document: Document
    score: float = Field(..., ge=0.0, le=1.0)


SAMPLE_DOCUMENTS = [
    Document(
        id="doc_1",
        content=(
            "Artificial General Intelligence (AGI) represents the theoretical ability of an AI system "
            "to understand, learn, and apply knowledge across a wide range of domains at a level "
            "comparable to human intelligence."
        ),
        title="Introduction to AGI",
        source="AI Research Papers",
    ),
    Document(
        id="doc_2",
        content=(
            "Chain-of-Thought prompting is a technique that enables large language models to perform "
            "complex reasoning by breaking down problems into intermediate steps."
        ),
        title="Chain-of-Thought Reasoning",
        source="Prompt Engineering Guide",
    ),
    Document(
        id="doc_3",
        content=(
            "Multi-agent systems coordinate multiple autonomous agents to solve complex problems that "
            "are beyond the capability of individual agents."
        ),
        title="Multi-Agent Systems",
        source="Distributed AI",
    ),
    Document(
        id="doc_4",
        content=(
            "Constitutional AI involves training AI systems to follow a set of principles or "
            "constitution to ensure helpful, harmless, and honest behavior."
        ),
        title="Constitutional AI Principles",
        source="AI Safety Research",
    ),
]


def tokenize(text: str) -> List[str]:
    return _TOKEN.findall(text.lower())


def chunk_document(document: Document, chunk_size: int, overlap: int) -> List[Document]:
    """Split a document into overlapping word windows."""
    words = document.content.split()
    if len(words) <= chunk_size:
        return [document]

    step = max(chunk_size - overlap, 1)
    chunks = []
    for index, start in enumerate(range(0, len(words), step)):
        chunks.append(document.model_copy(update={
            "id": f"{document.id}_chunk_{index}",
            "content": " ".join(words[start:start + chunk_size]),
            "metadata": {**document.metadata, "parent_id": document.id, "chunk_index": index},
        }))
        if start + chunk_size >= len(words):
            break
    return chunks


def extract_sources(documents: Sequence[Document]) -> List[str]:
    """Distinct sources and titles, in first-seen order."""
    sources: List[str] = []
    for doc in documents:
        for value in (doc.source, doc.title):
            if value and value not in sources:
                sources.append(value)
    return sources


def build_context_prompt(query: str, documents: Sequence[Document]) -> str:
    context = "\n\n".join(f"[{i + 1}] {doc.content}" for i, doc in enumerate(documents))
    return (
        "Based on the following context documents, please provide a comprehensive and accurate "
        "answer to the user's question. If the context doesn't contain enough information to "
        "fully answer the question, please say so.\n\n"
        f"Context Documents:\n{context}\n\n"
        f"Question: {query}\n\n"
        "Please provide a detailed answer based on the context above, and cite the relevant "
        "document numbers [1], [2], etc. when appropriate."
    )


class KeywordRetriever:
    """
    In-memory document collections with term-overlap search.

    Thread-safe for concurrent indexing and search.
    """

    def __init__(self, documents: Optional[Sequence[Document]] = None):
        self._collections: Dict[str, List[Document]] = {}
        self._lock = Lock()
        if documents:
            self.add_documents(documents)

    def add_documents(
        self,
        documents: Sequence[Document],
        collection: str = DEFAULT_COLLECTION,
        chunk_size: Optional[int] = None,
        chunk_overlap: int = 50,
    ) -> int:
        """
        Index documents into a collection.

        Returns:
            Number of stored entries (chunks count individually)
        """
        stored: List[Document] = []
        for doc in documents:
            if chunk_size:
                stored.extend(chunk_document(doc, chunk_size, chunk_overlap))
            else:
                stored.append(doc)

        with self._lock:
            self._collections.setdefault(collection, []).extend(stored)

        logger.info(f"Indexed {len(stored)} document(s) into '{collection}'")
        return len(stored)

    def search(
        self,
        query: str,
        collection: str = DEFAULT_COLLECTION,
        top_k: int = 5,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[ScoredDocument]:
        """
        Rank a collection against the query.

        Args:
            query: Free-text query
            collection: Collection name
            top_k: Maximum number of results
            filter: Exact-match constraints on document metadata
        """
        query_terms = set(tokenize(query))
        if not query_terms:
            return []

        with self._lock:
            documents = list(self._collections.get(collection, []))

        scored = []
        for doc in documents:
            if filter and any(doc.metadata.get(k) != v for k, v in filter.items()):
                continue
            overlap = len(query_terms & set(tokenize(doc.content)))
            if overlap:
                scored.append(ScoredDocument(document=doc, score=overlap / len(query_terms)))

        # Stable sort keeps insertion order among equal scores
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored[:top_k]

    def collections(self) -> Dict[str, int]:
        with self._lock:
            return {name: len(docs) for name, docs in self._collections.items()}
