"""
Filtros estructurados sobre atributos.

Árbol booleano: un FilterGroup combina (AND / OR) filtros hoja y grupos
anidados sin límite de profundidad. Un grupo vacío matchea todo.

Ejemplo JSON:
    {
      "logicalOperator": "or",
      "nestedGroups": [
        {"filters": [{"fieldPath": "hasPets", "operator": "is_true"}]},
        {"filters": [{"fieldPath": "age", "operator": "in_range",
                      "minValue": 25, "maxValue": 35}]}
      ]
    }
"""

import re
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def coerce_number(value: Any) -> Optional[float]:
    """
    Convierte un valor a float para comparaciones numéricas.

    Acepta int, float y strings numéricos. Los booleanos no son números.

    Returns:
        El float o None si no es convertible
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


class _TolerantEnum(str, Enum):
    """Acepta también los nombres en PascalCase ("GreaterThan", "And")."""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = _CAMEL_BOUNDARY.sub("_", value.strip()).lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class FilterOperator(_TolerantEnum):
    """Operadores de comparación."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS_OR_EQUAL = "less_or_equal"
    IN_RANGE = "in_range"
    IS_TRUE = "is_true"
    IS_FALSE = "is_false"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"


class LogicalOperator(_TolerantEnum):
    """Cómo se combinan los resultados de un grupo."""

    AND = "and"
    OR = "or"


NUMERIC_OPERATORS = frozenset(
    {
        FilterOperator.GREATER_THAN,
        FilterOperator.LESS_THAN,
        FilterOperator.GREATER_OR_EQUAL,
        FilterOperator.LESS_OR_EQUAL,
    }
)

VALUE_OPERATORS = NUMERIC_OPERATORS | {
    FilterOperator.EQUALS,
    FilterOperator.NOT_EQUALS,
    FilterOperator.CONTAINS,
    FilterOperator.NOT_CONTAINS,
}


class AttributeFilter(BaseModel):
    """
    Criterio sobre un único campo.

    Ejemplos:
        AttributeFilter(field_path="hasPets", operator="is_true")
        AttributeFilter(field_path="skills", operator="contains", value="python")
        AttributeFilter(field_path="age", operator="in_range", min_value=25, max_value=35)
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    field_path: str = Field(..., description="Dot-path al campo")
    operator: FilterOperator
    value: Any = Field(None, description="Valor de comparación")
    min_value: Any = Field(None, description="Límite inferior de in_range")
    max_value: Any = Field(None, description="Límite superior de in_range")

    @field_validator("field_path")
    @classmethod
    def _non_empty_path(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("field_path no puede estar vacío")
        return v.strip()

    @model_validator(mode="after")
    def _check_operands(self) -> "AttributeFilter":
        if self.operator in VALUE_OPERATORS and self.value is None:
            raise ValueError(f"El operador {self.operator.value} requiere value")

        if self.operator in NUMERIC_OPERATORS and coerce_number(self.value) is None:
            raise ValueError(
                f"El operador {self.operator.value} requiere un value numérico"
            )

        if self.operator == FilterOperator.IN_RANGE:
            low = coerce_number(self.min_value)
            high = coerce_number(self.max_value)
            if low is None or high is None:
                raise ValueError("in_range requiere min_value y max_value numéricos")
            if low > high:
                raise ValueError("in_range: min_value mayor que max_value")

        return self


class FilterGroup(BaseModel):
    """Grupo de filtros combinados con AND / OR."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    logical_operator: LogicalOperator = Field(default=LogicalOperator.AND)
    filters: list[AttributeFilter] = Field(default_factory=list)
    nested_groups: list["FilterGroup"] = Field(default_factory=list)

    @property
    def has_filters(self) -> bool:
        return bool(self.filters) or bool(self.nested_groups)

    @property
    def nodes(self) -> list["FilterNode"]:
        """Hijos del grupo: primero las hojas, después los grupos anidados."""
        return [*self.filters, *self.nested_groups]

    def leaves(self) -> list[AttributeFilter]:
        """Todas las hojas del árbol, en profundidad."""
        result = list(self.filters)
        for group in self.nested_groups:
            result.extend(group.leaves())
        return result

    @classmethod
    def all_of(cls, *nodes: "FilterNode") -> "FilterGroup":
        return cls._from_nodes(LogicalOperator.AND, nodes)

    @classmethod
    def any_of(cls, *nodes: "FilterNode") -> "FilterGroup":
        return cls._from_nodes(LogicalOperator.OR, nodes)

    @classmethod
    def _from_nodes(cls, operator: LogicalOperator, nodes) -> "FilterGroup":
        return cls(
            logical_operator=operator,
            filters=[n for n in nodes if isinstance(n, AttributeFilter)],
            nested_groups=[n for n in nodes if isinstance(n, FilterGroup)],
        )


FilterNode = Union[AttributeFilter, FilterGroup]

FilterGroup.model_rebuild()
