"""CLI tools for the FBK assistant.

- ``python -m src.cli.ingest`` - ingest local documents into the knowledge
  base, list documents, show corpus statistics, delete a document.

Heavy imports (chromadb, openai) are deferred inside functions to keep
``--help`` fast.
"""
