"""grounded-rag — document ingestion and grounded, cited question answering."""

__version__ = "0.1.0"
