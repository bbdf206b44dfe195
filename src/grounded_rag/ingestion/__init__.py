"""
Ingestion — text extraction, chunking, embedding, and summarisation.

This module turns an uploaded file into a stored document: the text is
extracted, summarised, split into overlapping chunks, embedded in
batches, and handed to the document store.
"""
