"""
Resolución de atributos por dot-path.

Un valor de atributo es str | int | float | bool | list | dict (anidable).
La resolución nunca devuelve None: si el path no existe (o el valor es nulo)
devuelve el centinela NOT_FOUND y cada llamador decide qué hacer.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional, Union

from vinculo.models.entity import Entity

AttributeValue = Union[str, int, float, bool, list, dict]


class _NotFound:
    """Centinela tipado para campos ausentes."""

    _instance: Optional["_NotFound"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()

Resolved = Union[AttributeValue, _NotFound]


class PathKind(str, Enum):
    """Dónde vive un campo: columna propia, JSON de atributos/metadata o calculado."""

    COLUMN = "column"
    JSON = "json"
    COMPUTED = "computed"


# Propiedades conocidas de Entity, indexadas por nombre normalizado
# (minúsculas y sin "_", así "entityType" y "entity_type" son equivalentes)
WELL_KNOWN_FIELDS = {
    "id": "id",
    "entitytype": "entity_type",
    "externalid": "external_id",
    "externalsource": "external_source",
    "name": "name",
    "description": "description",
    "ownedbyuserid": "owned_by_user_id",
    "issearchable": "is_searchable",
    "createdat": "created_at",
    "lastmodified": "last_modified",
    "metadata": "metadata",
    "attributes": "attributes",
}

# Propiedades que son mapas abiertos: el resto del path se resuelve adentro
_MAPPING_FIELDS = {"metadata", "attributes"}


def _normalize(name: str) -> str:
    return name.replace("_", "").lower()


def _compute_age(entity: Entity) -> Resolved:
    raw = _lookup_key(entity.attributes, "birth_date")
    if raw is NOT_FOUND:
        raw = _lookup_key(entity.attributes, "birthDate")
    if raw is NOT_FOUND:
        return NOT_FOUND

    try:
        if isinstance(raw, datetime):
            born = raw.date()
        elif isinstance(raw, date):
            born = raw
        else:
            born = date.fromisoformat(str(raw)[:10])
    except ValueError:
        return NOT_FOUND

    today = datetime.now(timezone.utc).date()
    years = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        years -= 1
    return years


# Campos calculados: no existen en el store, se derivan de la entidad
COMPUTED_FIELDS: dict[str, Callable[[Entity], Resolved]] = {
    "age": _compute_age,
}


def _lookup_key(container: Any, key: str) -> Resolved:
    """Busca una clave en un dict (exacta y luego sin distinguir mayúsculas) o índice de lista."""
    if isinstance(container, dict):
        if key in container:
            value = container[key]
            return NOT_FOUND if value is None else value
        lowered = key.lower()
        for existing, value in container.items():
            if isinstance(existing, str) and existing.lower() == lowered:
                return NOT_FOUND if value is None else value
        return NOT_FOUND

    if isinstance(container, list) and key.isdigit():
        index = int(key)
        if index < len(container) and container[index] is not None:
            return container[index]

    return NOT_FOUND


def _walk(value: Any, parts: list[str]) -> Resolved:
    current: Resolved = value
    for part in parts:
        if current is NOT_FOUND:
            return NOT_FOUND
        current = _lookup_key(current, part)
    return current


def _plain(value: Any) -> Resolved:
    if value is None:
        return NOT_FOUND
    if isinstance(value, Enum):
        return value.value
    return value


def resolve_path(entity: Entity, field_path: str) -> Resolved:
    """
    Resuelve un dot-path contra una entidad.

    Orden: propiedades conocidas de la entidad, luego el diccionario
    de atributos y por último los campos calculados.

    Returns:
        El valor encontrado o NOT_FOUND
    """
    if not field_path or not field_path.strip():
        return NOT_FOUND

    parts = field_path.strip().split(".")
    head = _normalize(parts[0])

    if head in WELL_KNOWN_FIELDS:
        attr = WELL_KNOWN_FIELDS[head]
        value = _plain(getattr(entity, attr))
        if len(parts) == 1:
            return value
        if attr in _MAPPING_FIELDS:
            return _walk(value, parts[1:])
        return NOT_FOUND

    value = _walk(entity.attributes, parts)
    if value is not NOT_FOUND:
        return value

    compute = COMPUTED_FIELDS.get(field_path.strip().lower())
    if compute is not None:
        return compute(entity)

    return NOT_FOUND


def classify_path(field_path: str) -> PathKind:
    """Clasifica un path para decidir si puede evaluarse en el store."""
    parts = field_path.strip().split(".")
    head = _normalize(parts[0])

    if head in WELL_KNOWN_FIELDS:
        if WELL_KNOWN_FIELDS[head] in _MAPPING_FIELDS:
            return PathKind.JSON
        return PathKind.COLUMN

    if field_path.strip().lower() in COMPUTED_FIELDS:
        return PathKind.COMPUTED

    return PathKind.JSON
