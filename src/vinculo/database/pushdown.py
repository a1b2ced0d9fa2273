"""
Traducción de filtros a la sintaxis de árbol lógico de PostgREST.

Solo recibe árboles push-downables (ver AttributeFilterEvaluator).
El predicado generado selecciona un superconjunto de lo que acepta la
evaluación en memoria, que siempre corre después. Una hoja o grupo que
no se puede restringir en el store se traduce como "sin restricción".

Ejemplo:
    and(attributes->>hasPets.eq.true,or(name.ilike."ana",name.ilike."eva"))

Limitación: las claves de JSON se comparan tal cual en el store, mientras
que en memoria la búsqueda de claves ignora mayúsculas.
"""

from typing import Optional

from vinculo.models.attributes import (
    WELL_KNOWN_FIELDS,
    PathKind,
    _normalize,
    classify_path,
)
from vinculo.models.filters import (
    AttributeFilter,
    FilterGroup,
    FilterOperator,
    LogicalOperator,
)

# Columnas de texto: igualdad sin distinguir mayúsculas vía ilike
_TEXT_COLUMNS = {
    "name",
    "description",
    "entity_type",
    "external_id",
    "external_source",
    "owned_by_user_id",
}
_BOOLEAN_COLUMNS = {"is_searchable"}


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _like_literal(value: str) -> Optional[str]:
    """Escapa comodines de LIKE. None si el valor no se puede expresar."""
    if "*" in value:
        # PostgREST traduce "*" a "%" y no hay forma de escaparlo
        return None
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def column_expression(field_path: str) -> Optional[str]:
    """
    Columna o expresión JSON de PostgREST para un field path.

    - "entityType" -> entity_type
    - "metadata.source" -> metadata->>source
    - "attributes.address.city" / "address.city" -> attributes->address->>city

    None si el path apunta a una columna JSON completa.
    """
    parts = [p for p in field_path.strip().split(".") if p]
    head = _normalize(parts[0])

    if head in WELL_KNOWN_FIELDS:
        column = WELL_KNOWN_FIELDS[head]
        if classify_path(field_path) == PathKind.COLUMN:
            return column
        keys = parts[1:]
    else:
        column = "attributes"
        keys = parts

    if not keys:
        return None

    inner = "".join(f"->{key}" for key in keys[:-1])
    return f"{column}{inner}->>{keys[-1]}"


def _boolean_expression(target: str, kind: PathKind, flag: bool) -> Optional[str]:
    literal = "true" if flag else "false"
    if kind == PathKind.JSON:
        return f"{target}.eq.{literal}"
    if target in _BOOLEAN_COLUMNS:
        return f"{target}.is.{literal}"
    return None


def _leaf_expression(attribute_filter: AttributeFilter) -> Optional[str]:
    kind = classify_path(attribute_filter.field_path)
    target = column_expression(attribute_filter.field_path)
    if target is None:
        return None

    op = attribute_filter.operator
    value = attribute_filter.value

    if op == FilterOperator.EXISTS:
        return f"{target}.not.is.null"

    if op in (FilterOperator.IS_TRUE, FilterOperator.IS_FALSE):
        return _boolean_expression(target, kind, op == FilterOperator.IS_TRUE)

    if op == FilterOperator.EQUALS:
        if isinstance(value, bool):
            return _boolean_expression(target, kind, value)
        if isinstance(value, str):
            if target == "id":
                return f"id.eq.{_quote(value)}"
            if kind == PathKind.COLUMN and target not in _TEXT_COLUMNS:
                return None
            literal = _like_literal(value)
            if literal is None:
                return None
            return f"{target}.ilike.{_quote(literal)}"
        return None

    # Las columnas de entities son texto, fecha o booleanas: las
    # comparaciones numéricas quedan para la evaluación en memoria
    return None


def build_postgrest_filter(filter_group: Optional[FilterGroup]) -> Optional[str]:
    """
    Construye la expresión para query.or_() de supabase-py.

    Args:
        filter_group: Árbol push-downable

    Returns:
        Expresión "and(...)" / "or(...)", o None si no restringe nada
    """
    if filter_group is None or not filter_group.has_filters:
        return None

    children = [_leaf_expression(f) for f in filter_group.filters]
    children += [build_postgrest_filter(g) for g in filter_group.nested_groups]

    if filter_group.logical_operator == LogicalOperator.OR:
        # Un hijo sin restricción vuelve todo el OR irrestricto
        if any(child is None for child in children):
            return None
        return f"or({','.join(children)})"

    restricted = [child for child in children if child is not None]
    if not restricted:
        return None
    return f"and({','.join(restricted)})"
