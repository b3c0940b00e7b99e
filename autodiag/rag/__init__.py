"""Evidence retrieval: embedding, stores and the retriever."""
