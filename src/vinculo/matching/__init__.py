"""
Motor de matching.

Combina similitud semántica y filtros estructurados con privacidad
para búsquedas simples y descubrimiento de matches mutuos.
"""

from vinculo.matching.filters import AttributeFilterEvaluator
from vinculo.matching.mutual import MutualMatchEngine, average_score, min_score
from vinculo.matching.search import SimilaritySearchEngine, matches_metadata

__all__ = [
    "AttributeFilterEvaluator",
    "SimilaritySearchEngine",
    "MutualMatchEngine",
    "average_score",
    "min_score",
    "matches_metadata",
]
