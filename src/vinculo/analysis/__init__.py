"""
Módulo de embeddings.

Generación de vectores con Gemini y procesamiento de embeddings pendientes.
"""

from vinculo.analysis.embeddings import EmbeddingGenerator
from vinculo.analysis.processor import EmbeddingProcessor

__all__ = [
    "EmbeddingGenerator",
    "EmbeddingProcessor",
]
