"""RAG pipeline over harvested posts: chunking, embedding and vector search."""
