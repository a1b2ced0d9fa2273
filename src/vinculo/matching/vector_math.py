"""
Operaciones vectoriales para el cálculo de similitud.

Funciones puras, sin estado ni I/O: se pueden llamar desde
cualquier cantidad de tareas concurrentes.
"""

import math
from typing import Optional, Sequence

from vinculo.errors import InvalidInputError


def _check_pair(vec1: Optional[Sequence[float]], vec2: Optional[Sequence[float]]) -> None:
    if vec1 is None or vec2 is None:
        raise InvalidInputError("Los vectores no pueden ser None")
    if len(vec1) != len(vec2):
        raise InvalidInputError(
            f"Los vectores deben tener la misma dimensión: {len(vec1)} y {len(vec2)}"
        )
    if len(vec1) == 0:
        raise InvalidInputError("Los vectores no pueden estar vacíos")


def dot_product(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Producto punto entre dos vectores de igual dimensión."""
    _check_pair(vec1, vec2)
    return math.fsum(a * b for a, b in zip(vec1, vec2))


def magnitude(vector: Optional[Sequence[float]]) -> float:
    """Norma L2. Un vector None o vacío tiene magnitud 0."""
    if not vector:
        return 0.0
    return math.sqrt(math.fsum(a * a for a in vector))


def normalize(vector: Sequence[float]) -> list[float]:
    """
    Normaliza a largo unitario.

    Un vector de magnitud cero se devuelve sin cambios.
    """
    if vector is None:
        raise InvalidInputError("El vector no puede ser None")

    norm = magnitude(vector)
    if norm == 0:
        return list(vector)

    return [a / norm for a in vector]


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """
    Calcula la similitud de coseno entre dos vectores.

    Args:
        vec1: Primer vector
        vec2: Segundo vector

    Returns:
        Similitud en [-1, 1]; 0.0 si alguno tiene magnitud cero

    Raises:
        InvalidInputError: vectores None, vacíos o de distinta dimensión
    """
    _check_pair(vec1, vec2)

    norm1 = magnitude(vec1)
    norm2 = magnitude(vec2)

    if norm1 == 0 or norm2 == 0:
        return 0.0

    similarity = dot_product(vec1, vec2) / (norm1 * norm2)
    # Errores de redondeo pueden dejar el valor apenas fuera de [-1, 1]
    return max(-1.0, min(1.0, similarity))


def clamp_score(score: float) -> float:
    """Lleva un coseno a [0, 1] para ranking y presentación."""
    return max(0.0, min(1.0, score))
