"""
Serving — FastAPI application for ingestion and grounded question answering.

Run with ``uvicorn grounded_rag.serving.app:app``.
"""
