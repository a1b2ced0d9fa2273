"""
Modelo de Embedding por entidad.

Cada entidad tiene a lo sumo un registro activo. El ciclo de vida es:
Pending (resumen listo, falta vector) -> Generated | Failed.
"""

import base64
import hashlib
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from vinculo.models.entity import EntityType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmbeddingStatus(str, Enum):
    """Estado del embedding de una entidad."""

    PENDING = "pending"
    GENERATED = "generated"
    FAILED = "failed"


class EmbeddingRecord(BaseModel):
    """
    Huella semántica de una entidad.

    Invariantes:
    - Generated: vector no vacío y, si se declara, de largo == dimensions
    - Pending / Failed: sin vector
    """

    id: str = Field(default="", description="embedding_{entity_id}")
    entity_id: str = Field(..., description="FK a la entidad")
    entity_type: Optional[EntityType] = Field(
        None, description="Tipo de la entidad (desnormalizado para filtrar)"
    )

    embedding: Optional[list[float]] = Field(None, description="Vector semántico")
    embedding_model: Optional[str] = Field(None, description="Modelo que generó el vector")
    dimensions: Optional[int] = Field(None, ge=1, description="Dimensión declarada")
    status: EmbeddingStatus = Field(default=EmbeddingStatus.PENDING)

    entity_summary: str = Field(default="", description="Texto que se vectoriza")
    summary_hash: str = Field(default="", description="Hash del resumen vectorizado")

    retry_count: int = Field(default=0, ge=0)
    error_message: Optional[str] = Field(None)

    generated_at: Optional[datetime] = Field(None)
    entity_last_modified: datetime = Field(default_factory=_utcnow)

    @field_validator("embedding", mode="before")
    @classmethod
    def _parse_vector(cls, value):
        # pgvector llega por PostgREST como string "[0.1,0.2,...]"
        if isinstance(value, str):
            return json.loads(value) if value.strip() else None
        return value

    @model_validator(mode="after")
    def _check_vector(self) -> "EmbeddingRecord":
        if not self.id:
            self.id = self.generate_id(self.entity_id)

        if self.status == EmbeddingStatus.GENERATED:
            if not self.embedding:
                raise ValueError("Un embedding Generated requiere vector")
            if self.dimensions is not None and len(self.embedding) != self.dimensions:
                raise ValueError(
                    f"Largo del vector ({len(self.embedding)}) "
                    f"distinto a dimensions ({self.dimensions})"
                )
        elif self.embedding is not None:
            raise ValueError(f"Un embedding {self.status.value} no lleva vector")

        return self

    @staticmethod
    def generate_id(entity_id: str) -> str:
        return f"embedding_{entity_id}"

    @staticmethod
    def compute_hash(text: str) -> str:
        """SHA-256 del texto en base64."""
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return base64.b64encode(digest).decode("ascii")

    def summary_changed(self, new_summary: str) -> bool:
        """Indica si el resumen cambió respecto del que se vectorizó."""
        return self.compute_hash(new_summary) != self.summary_hash

    def needs_regeneration(self, entity_last_modified: datetime) -> bool:
        """La entidad se modificó después de generar el embedding."""
        return entity_last_modified > self.entity_last_modified

    @property
    def is_usable(self) -> bool:
        """Generated y con vector: puede participar de una búsqueda."""
        return self.status == EmbeddingStatus.GENERATED and bool(self.embedding)

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return self.model_dump(mode="json")

    @classmethod
    def from_db(cls, row: dict) -> "EmbeddingRecord":
        """Reconstruye el registro desde una fila de Supabase."""
        return cls.model_validate(row)
