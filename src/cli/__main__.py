"""Allow ``python -m src.cli`` execution; runs the ingestion CLI."""

from src.cli.ingest import main

main()
