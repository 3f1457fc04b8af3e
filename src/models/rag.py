"""RAG pipeline data models for the FBK assistant knowledge base.

Defines Pydantic v2 models for document chunks, retrieval results and
ingestion statistics.  All models are frozen.

Flow overview:

    1. INGESTION: uploaded documents (PDF, markdown, plain text) are
       extracted to text and split into ~800-character overlapping chunks.
    2. EMBEDDING: each chunk is turned into a vector by the embedding backend.
    3. STORAGE: chunks + vectors + denormalized citation metadata go into
       ChromaDB.
    4. RETRIEVAL: the visitor's question is embedded with the same model and
       the closest chunks above the similarity threshold are returned.
    5. GENERATION: retrieved chunks become the CONTEXT block of the prompt.

See src/services/ingestion/ for steps 1-3 and src/services/retriever.py for
step 4.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# DocumentChunk - the unit stored in the vector store.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A slice of a document's extracted text, ready for embedding and storage.

    ``title`` and ``source_url`` are copied from the owning Document so a
    retrieved chunk can be cited without a second lookup.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Vector-store id, derived from document id and index.")
    document_id: str = Field(description="Identifier of the owning Document.")
    chunk_index: int = Field(ge=0, description="0-based ordinal within the document.")
    text: str = Field(description="The chunk's trimmed textual content.")
    title: str = Field(default="", description="Owning document title.")
    source_url: str | None = Field(default=None, description="Owning document URL, if any.")

    @staticmethod
    def make_id(document_id: str, chunk_index: int) -> str:
        return f"{document_id}:{chunk_index:05d}"


# ---------------------------------------------------------------------------
# RetrievedChunk - a search result from the vector store.
# ---------------------------------------------------------------------------
class RetrievedChunk(BaseModel):
    """A document chunk returned from a vector-store query with its score."""

    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk = Field(description="The retrieved document chunk.")
    similarity: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Cosine similarity (1 - cosine distance), clamped to [0, 1].",
    )


# ---------------------------------------------------------------------------
# IngestionResult - summary of one ingestion run.
# ---------------------------------------------------------------------------
class IngestionResult(BaseModel):
    """Statistics returned after a document has been ingested."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    title: str
    chunks_created: int = Field(ge=0)
    total_characters: int = Field(default=0, ge=0, description="Length of the extracted text.")
    ingestion_time: float = Field(default=0.0, ge=0.0, description="Wall-clock seconds.")


# ---------------------------------------------------------------------------
# CorpusStats - aggregate view of the vector store.
# ---------------------------------------------------------------------------
class CorpusStats(BaseModel):
    """Aggregate statistics about the stored chunk corpus."""

    model_config = ConfigDict(frozen=True)

    total_chunks: int = Field(default=0, ge=0)
    total_documents: int = Field(default=0, ge=0)
    chunks_by_document: dict[str, int] = Field(default_factory=dict)
