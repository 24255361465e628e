"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Paragraph-aware chunking with overlap
- Batch embedding generation
- SQLite + FAISS vector storage
- Semantic retrieval
- Grounded prompt assembly and answering
"""
