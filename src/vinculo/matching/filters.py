"""
Evaluador de filtros estructurados con control de privacidad.

Reglas de privacidad (fail-closed):
- Si enforce_privacy y el campo no es visible para quien consulta,
  la hoja se saltea: no cuenta ni como match ni como no-match.
- Un grupo donde todas las hojas quedaron salteadas evalúa False.
- Una entidad no buscable no expone ningún campo.
"""

from typing import Any, Optional

import structlog

from vinculo.models.attributes import NOT_FOUND, PathKind, classify_path, resolve_path
from vinculo.models.entity import Entity
from vinculo.models.filters import (
    NUMERIC_OPERATORS,
    AttributeFilter,
    FilterGroup,
    FilterOperator,
    LogicalOperator,
    coerce_number,
)

logger = structlog.get_logger()


# Operadores que se pueden expresar como predicado del store
_PUSHDOWN_OPERATORS = frozenset(
    {
        FilterOperator.EQUALS,
        FilterOperator.IS_TRUE,
        FilterOperator.IS_FALSE,
        FilterOperator.EXISTS,
        FilterOperator.IN_RANGE,
    }
) | NUMERIC_OPERATORS


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _has_value(value: Any) -> bool:
    """No nulo y no vacío (string en blanco, lista o dict vacíos)."""
    if value is NOT_FOUND or value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    return True


def values_equal(field_value: Any, target: Any) -> bool:
    """
    Igualdad tolerante: strings sin distinguir mayúsculas,
    números por valor (incluye strings numéricos), bool solo contra bool.
    """
    if field_value is NOT_FOUND or field_value is None or target is None:
        return False

    if isinstance(field_value, bool) or isinstance(target, bool):
        return isinstance(field_value, bool) and isinstance(target, bool) and field_value == target

    if isinstance(field_value, str) and isinstance(target, str):
        return field_value.casefold() == target.casefold()

    if _is_number(field_value) or _is_number(target):
        left = coerce_number(field_value)
        right = coerce_number(target)
        return left is not None and right is not None and left == right

    return field_value == target


def _contains(field_value: Any, target: Any) -> bool:
    if field_value is NOT_FOUND or target is None:
        return False

    if isinstance(field_value, str):
        return isinstance(target, str) and target.casefold() in field_value.casefold()

    if isinstance(field_value, (list, tuple, set)):
        return any(values_equal(item, target) for item in field_value)

    return False


def _compare(field_value: Any, target: Any) -> Optional[int]:
    """-1 / 0 / 1, o None si alguno no es numérico."""
    left = coerce_number(field_value) if field_value is not NOT_FOUND else None
    right = coerce_number(target)
    if left is None or right is None:
        return None
    return (left > right) - (left < right)


class AttributeFilterEvaluator:
    """
    Evalúa árboles de filtros contra una entidad.

    Sin estado: una instancia se puede compartir entre tareas concurrentes.
    """

    def matches(
        self,
        entity: Entity,
        filter_group: Optional[FilterGroup],
        requesting_user_id: Optional[str] = None,
        enforce_privacy: bool = True,
    ) -> bool:
        """
        Indica si la entidad cumple el árbol de filtros.

        Args:
            entity: Entidad a evaluar
            filter_group: Árbol de filtros (None o vacío = matchea todo)
            requesting_user_id: Usuario que consulta (None = anónimo)
            enforce_privacy: Aplicar visibilidad por campo

        Returns:
            True si la entidad matchea
        """
        if filter_group is None or not filter_group.has_filters:
            return True

        is_and = filter_group.logical_operator == LogicalOperator.AND
        evaluated = 0

        for node in filter_group.nodes:
            if isinstance(node, FilterGroup):
                result = self.matches(entity, node, requesting_user_id, enforce_privacy)
            else:
                if enforce_privacy and not entity.is_field_visible_to_user(
                    node.field_path, requesting_user_id
                ):
                    logger.debug(
                        "Filtro salteado por privacidad",
                        field_path=node.field_path,
                        entity_id=entity.id,
                        user_id=requesting_user_id or "anonymous",
                    )
                    continue
                result = self.evaluate_filter(entity, node)

            evaluated += 1
            if is_and and not result:
                return False
            if not is_and and result:
                return True

        if evaluated == 0:
            # Todas las hojas quedaron ocultas por privacidad
            return False

        return is_and

    def evaluate_filter(self, entity: Entity, attribute_filter: AttributeFilter) -> bool:
        """Evalúa una hoja sin considerar privacidad."""
        value = resolve_path(entity, attribute_filter.field_path)
        try:
            return self._apply_operator(attribute_filter, value)
        except Exception as e:
            logger.warning(
                "Error evaluando filtro",
                field_path=attribute_filter.field_path,
                operator=attribute_filter.operator.value,
                entity_id=entity.id,
                error=str(e),
            )
            return False

    def _apply_operator(self, attribute_filter: AttributeFilter, value: Any) -> bool:
        op = attribute_filter.operator
        target = attribute_filter.value

        if op == FilterOperator.EQUALS:
            return values_equal(value, target)
        if op == FilterOperator.NOT_EQUALS:
            return not values_equal(value, target)
        if op == FilterOperator.CONTAINS:
            return _contains(value, target)
        if op == FilterOperator.NOT_CONTAINS:
            return not _contains(value, target)

        if op in NUMERIC_OPERATORS:
            comparison = _compare(value, target)
            if comparison is None:
                logger.debug(
                    "Valor no numérico en comparación",
                    field_path=attribute_filter.field_path,
                    value=None if value is NOT_FOUND else value,
                )
                return False
            if op == FilterOperator.GREATER_THAN:
                return comparison > 0
            if op == FilterOperator.LESS_THAN:
                return comparison < 0
            if op == FilterOperator.GREATER_OR_EQUAL:
                return comparison >= 0
            return comparison <= 0

        if op == FilterOperator.IN_RANGE:
            low = _compare(value, attribute_filter.min_value)
            high = _compare(value, attribute_filter.max_value)
            return low is not None and high is not None and low >= 0 and high <= 0

        if op == FilterOperator.IS_TRUE:
            return value is True
        if op == FilterOperator.IS_FALSE:
            return value is False
        if op == FilterOperator.EXISTS:
            return _has_value(value)
        if op == FilterOperator.NOT_EXISTS:
            return not _has_value(value)

        logger.warning("Operador desconocido", operator=op)
        return False

    def extract_matched_attributes(
        self,
        entity: Entity,
        filter_group: Optional[FilterGroup],
        requesting_user_id: Optional[str] = None,
        enforce_privacy: bool = True,
    ) -> dict[str, Any]:
        """
        Devuelve {field_path: valor} de las hojas que matchearon y son visibles.

        Sirve para explicar por qué una entidad apareció en los resultados
        sin exponer campos privados.
        """
        matched: dict[str, Any] = {}
        if filter_group is None or not filter_group.has_filters:
            return matched

        for attribute_filter in filter_group.filters:
            if enforce_privacy and not entity.is_field_visible_to_user(
                attribute_filter.field_path, requesting_user_id
            ):
                continue

            value = resolve_path(entity, attribute_filter.field_path)
            if value is NOT_FOUND:
                continue
            if self.evaluate_filter(entity, attribute_filter):
                matched[attribute_filter.field_path] = value

        for nested in filter_group.nested_groups:
            matched.update(
                self.extract_matched_attributes(
                    entity, nested, requesting_user_id, enforce_privacy
                )
            )

        return matched

    def is_push_downable(self, filter_group: Optional[FilterGroup]) -> bool:
        """
        Indica si todo el árbol se puede evaluar como query del store.

        Solo igualdades, booleanos, existencia y comparaciones numéricas
        sobre columnas propias. Campos calculados, contains y negaciones
        se evalúan en memoria.
        """
        if filter_group is None or not filter_group.has_filters:
            return True

        for attribute_filter in filter_group.filters:
            if not self._leaf_push_downable(attribute_filter):
                return False

        return all(self.is_push_downable(nested) for nested in filter_group.nested_groups)

    @staticmethod
    def _leaf_push_downable(attribute_filter: AttributeFilter) -> bool:
        op = attribute_filter.operator
        if op not in _PUSHDOWN_OPERATORS:
            return False

        kind = classify_path(attribute_filter.field_path)
        if kind == PathKind.COMPUTED:
            return False

        if kind == PathKind.JSON:
            # En JSON el store compara texto: sin comparaciones numéricas
            if op in NUMERIC_OPERATORS or op == FilterOperator.IN_RANGE:
                return False
            if op == FilterOperator.EQUALS and not isinstance(attribute_filter.value, (str, bool)):
                return False

        return True
