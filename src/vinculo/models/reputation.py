"""
Reputación agregada de una entidad.

Se calcula externamente a partir de calificaciones; la búsqueda
solo la usa para aplicar umbrales mínimos.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class EntityReputation(BaseModel):
    """Resumen de calificaciones de una entidad."""

    entity_id: str = Field(..., description="FK a la entidad")
    overall_score: float = Field(default=0.0, ge=0, description="Promedio general")
    total_ratings: int = Field(default=0, ge=0)
    verified_ratings: int = Field(default=0, ge=0)
    verified_score: Optional[float] = Field(None)
    confidence_score: float = Field(
        default=0.0, ge=0, le=1, description="Confianza estadística del score"
    )
    last_calculated: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def meets(
        self,
        min_score: Optional[float] = None,
        min_ratings: Optional[int] = None,
        min_confidence: Optional[float] = None,
    ) -> bool:
        """Verifica los umbrales pedidos (None = sin umbral)."""
        if min_score is not None and self.overall_score < min_score:
            return False
        if min_ratings is not None and self.total_ratings < min_ratings:
            return False
        if min_confidence is not None and self.confidence_score < min_confidence:
            return False
        return True
