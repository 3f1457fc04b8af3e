"""Document ingestion pipeline for the assistant's knowledge base.

Orchestrates: **extract -> chunk -> replace -> embed -> store**.

1. **Extract** (text_extractor.py / TextExtractor) -- PDF text layer via
   PyMuPDF, or UTF-8 decoding for plain text and markdown.

2. **Chunk** (chunker.py / TextChunker) -- ~800-character windows with
   150 characters of overlap, snapped back to sentence boundaries.

3. **Replace** -- the document's previous chunks are deleted from the
   vector store before any new chunk is written.

4. **Embed** (embedder.py / Embedder) -- sequential batches of 20 through
   the configured IEmbeddingProvider.

5. **Store** (via IVectorStoreProvider) -- chunks with denormalized title,
   URL and ordinal go into ChromaDB.

IngestionService (ingestion_service.py) owns the status transitions and
the admin-side document lifecycle (upload, re-ingest, delete).
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.embedder import Embedder
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.text_extractor import TextExtractor, mime_type_for_filename

__all__ = [
    "Embedder",
    "IngestionService",
    "TextChunker",
    "TextExtractor",
    "mime_type_for_filename",
]
