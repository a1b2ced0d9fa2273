"""
Modelo de Entidad y Privacidad

Una entidad es cualquier registro matcheable (persona, trabajo, propiedad,
carrera, etc.) con un diccionario abierto de atributos y configuración de
visibilidad por campo.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntityType(str, Enum):
    """Tipos de entidad soportados."""

    PERSON = "person"
    JOB = "job"
    PROPERTY = "property"
    PRODUCT = "product"
    SERVICE = "service"
    EVENT = "event"
    MAJOR = "major"
    CAREER = "career"


class FieldVisibility(str, Enum):
    """Nivel de visibilidad de un campo."""

    PRIVATE = "private"
    PUBLIC = "public"
    # Por ahora equivale a PRIVATE: no hay sistema de conexiones
    FRIENDS_ONLY = "friends_only"


class PrivacySettings(BaseModel):
    """
    Visibilidad por defecto + overrides por campo.

    Los overrides se indexan por dot-path exacto ("preferences.cuisine").
    Un campo sin override propio hereda la visibilidad por defecto: un
    override sobre "preferences" no alcanza a "preferences.cuisine".
    """

    default_visibility: FieldVisibility = Field(
        default=FieldVisibility.PRIVATE, description="Visibilidad sin override"
    )
    field_visibility: dict[str, FieldVisibility] = Field(
        default_factory=dict, description="Overrides por dot-path"
    )

    def get_field_visibility(self, field_path: str) -> FieldVisibility:
        """Resuelve la visibilidad efectiva de un campo."""
        if not field_path or not field_path.strip():
            return self.default_visibility

        return self.field_visibility.get(field_path.strip(), self.default_visibility)

    def set_field_visibility(self, field_path: str, visibility: FieldVisibility) -> None:
        if field_path and field_path.strip():
            self.field_visibility[field_path] = visibility

    def has_explicit_visibility(self, field_path: str) -> bool:
        return bool(field_path) and field_path in self.field_visibility

    def public_fields(self) -> list[str]:
        return [p for p, v in self.field_visibility.items() if v == FieldVisibility.PUBLIC]

    def private_fields(self) -> list[str]:
        return [p for p, v in self.field_visibility.items() if v == FieldVisibility.PRIVATE]


class Entity(BaseModel):
    """
    Entidad genérica del sistema.

    El motor de matching solo la lee: la creación y edición
    son responsabilidad del CRUD externo.
    """

    model_config = ConfigDict(from_attributes=True)

    # Identificadores
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="UUID")
    entity_type: EntityType = Field(default=EntityType.PERSON)
    external_id: Optional[str] = Field(None, description="ID en el sistema origen")
    external_source: Optional[str] = Field(None, description="Sistema origen")

    # Contenido
    name: str = Field(default="", description="Nombre para mostrar")
    description: str = Field(default="", description="Descripción libre")
    attributes: dict[str, Any] = Field(
        default_factory=dict, description="Atributos abiertos (anidables)"
    )
    metadata: Optional[dict[str, Any]] = Field(
        None, description="Metadata libre para filtros exactos"
    )

    # Privacidad
    privacy_settings: PrivacySettings = Field(default_factory=PrivacySettings)
    is_searchable: bool = Field(default=True, description="Aparece en búsquedas")
    owned_by_user_id: Optional[str] = Field(None, description="Usuario dueño")

    # Metadatos
    created_at: datetime = Field(default_factory=_utcnow)
    last_modified: datetime = Field(default_factory=_utcnow)

    def is_field_visible_to_user(
        self, field_path: str, requesting_user_id: Optional[str]
    ) -> bool:
        """
        Indica si un campo es visible para el usuario que consulta.

        Fail-closed: si la entidad no es buscable ningún campo es visible,
        y una visibilidad desconocida se trata como no visible.
        """
        if not self.is_searchable:
            return False

        visibility = self.privacy_settings.get_field_visibility(field_path)

        if visibility == FieldVisibility.PUBLIC:
            return True

        if visibility in (FieldVisibility.PRIVATE, FieldVisibility.FRIENDS_ONLY):
            return self._is_owner(requesting_user_id)

        return False

    def _is_owner(self, requesting_user_id: Optional[str]) -> bool:
        return (
            bool(requesting_user_id)
            and bool(self.owned_by_user_id)
            and requesting_user_id == self.owned_by_user_id
        )

    def redacted_for(self, requesting_user_id: Optional[str]) -> "Entity":
        """
        Copia de la entidad con solo los campos visibles para el usuario.

        Se usa para devolver entidades completas en resultados de búsqueda
        sin exponer campos privados.
        """
        attributes = self._redact(self.attributes, "", requesting_user_id)
        description = (
            self.description
            if self.is_field_visible_to_user("description", requesting_user_id)
            else ""
        )
        return self.model_copy(
            update={"attributes": attributes, "description": description},
            deep=True,
        )

    def _redact(
        self, mapping: dict[str, Any], prefix: str, requesting_user_id: Optional[str]
    ) -> dict[str, Any]:
        visible: dict[str, Any] = {}
        for key, value in mapping.items():
            path = f"{prefix}.{key}" if prefix else key
            if isinstance(value, dict) and value:
                nested = self._redact(value, path, requesting_user_id)
                if nested:
                    visible[key] = nested
            elif self.is_field_visible_to_user(path, requesting_user_id):
                visible[key] = value
        return visible

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return self.model_dump(mode="json")

    @classmethod
    def from_db(cls, row: dict) -> "Entity":
        """Reconstruye la entidad desde una fila de Supabase."""
        return cls.model_validate(row)
