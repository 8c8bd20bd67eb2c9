"""In-process embedding models."""

from aspect_rag.models.local.sentence_embeddings import SentenceTransformerEmbeddings

__all__ = ["SentenceTransformerEmbeddings"]
