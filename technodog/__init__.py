"""techno.dog knowledge layer.

Feature-flag gated knowledge cache, Wikipedia ingestion into the documents
table, and the four-stage artist enrichment pipeline (research, extraction,
verification, synthesis) behind a FastAPI app and an argparse CLI.
"""

__version__ = "0.1.0"
