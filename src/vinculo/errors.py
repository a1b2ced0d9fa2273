"""
Excepciones del motor de matching.

- InvalidInputError: vectores o parámetros mal formados (nunca se reintenta)
- EmbeddingUnavailableError: el servicio de embeddings no pudo vectorizar el texto
- SourceNotFoundError: la entidad de referencia no tiene embedding generado
"""


class VinculoError(Exception):
    """Error base del sistema."""


class InvalidInputError(VinculoError, ValueError):
    """Entrada inválida: se reporta al llamador de forma sincrónica."""


class EmbeddingUnavailableError(VinculoError):
    """No se pudo obtener el embedding de un texto."""


class SourceNotFoundError(VinculoError):
    """La entidad origen no tiene un embedding en estado Generated."""

    def __init__(self, entity_id: str, reason: str = "sin embedding generado"):
        self.entity_id = entity_id
        super().__init__(f"Entidad {entity_id}: {reason}")
