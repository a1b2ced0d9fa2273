"""Tests de matching/filters.py: operadores, lógica de grupos y privacidad."""

from datetime import date

import pytest

from vinculo.matching.filters import AttributeFilterEvaluator
from vinculo.models import (
    AttributeFilter,
    FieldVisibility,
    FilterGroup,
    FilterOperator,
    LogicalOperator,
    PrivacySettings,
)


@pytest.fixture
def evaluator():
    return AttributeFilterEvaluator()


@pytest.fixture
def person(make_entity):
    return make_entity(
        "p1",
        {
            "hasPets": True,
            "smoker": False,
            "age": 30,
            "salary": "1500.5",
            "city": "Buenos Aires",
            "skills": ["Python", "SQL"],
            "nickname": "   ",
            "tags": [],
            "address": {"city": "Rosario", "zip": 2000},
        },
        description="Desarrolladora backend",
    )


def leaf(path, op, value=None, **kwargs):
    return AttributeFilter(field_path=path, operator=op, value=value, **kwargs)


def single(path, op, value=None, **kwargs):
    return FilterGroup(filters=[leaf(path, op, value, **kwargs)])


class TestEmptyGroups:
    def test_none_matches(self, evaluator, person):
        assert evaluator.matches(person, None) is True

    def test_empty_group_matches_any_entity(self, evaluator, person, make_entity):
        hidden = make_entity("x", {"a": 1}, is_searchable=False)
        private = make_entity("y", {"a": 1}, privacy_settings=PrivacySettings())
        for entity in (person, hidden, private):
            assert evaluator.matches(entity, FilterGroup()) is True
            assert evaluator.matches(entity, FilterGroup(), "someone", False) is True


class TestOperators:
    @pytest.mark.parametrize(
        "path,op,value,expected",
        [
            ("city", FilterOperator.EQUALS, "buenos aires", True),
            ("city", FilterOperator.EQUALS, "Rosario", False),
            ("age", FilterOperator.EQUALS, 30.0, True),
            ("age", FilterOperator.EQUALS, "30", True),
            ("salary", FilterOperator.EQUALS, 1500.5, True),
            ("hasPets", FilterOperator.EQUALS, True, True),
            ("hasPets", FilterOperator.EQUALS, 1, False),
            ("address.city", FilterOperator.EQUALS, "ROSARIO", True),
            ("Address.Zip", FilterOperator.EQUALS, 2000, True),
            ("city", FilterOperator.NOT_EQUALS, "Rosario", True),
            ("missing", FilterOperator.NOT_EQUALS, "x", True),
            ("missing", FilterOperator.EQUALS, "x", False),
            ("city", FilterOperator.CONTAINS, "AIRES", True),
            ("skills", FilterOperator.CONTAINS, "python", True),
            ("skills", FilterOperator.CONTAINS, "java", False),
            ("skills", FilterOperator.NOT_CONTAINS, "java", True),
            ("missing", FilterOperator.CONTAINS, "x", False),
            ("missing", FilterOperator.NOT_CONTAINS, "x", True),
            ("age", FilterOperator.GREATER_THAN, 29, True),
            ("age", FilterOperator.GREATER_THAN, 30, False),
            ("age", FilterOperator.GREATER_OR_EQUAL, 30, True),
            ("age", FilterOperator.LESS_THAN, 30, False),
            ("age", FilterOperator.LESS_OR_EQUAL, 30, True),
            ("salary", FilterOperator.GREATER_THAN, 1000, True),
            ("city", FilterOperator.GREATER_THAN, 10, False),
            ("missing", FilterOperator.LESS_THAN, 10, False),
            ("hasPets", FilterOperator.IS_TRUE, None, True),
            ("smoker", FilterOperator.IS_FALSE, None, True),
            ("smoker", FilterOperator.IS_TRUE, None, False),
            ("missing", FilterOperator.IS_FALSE, None, False),
            ("city", FilterOperator.EXISTS, None, True),
            ("nickname", FilterOperator.EXISTS, None, False),
            ("tags", FilterOperator.EXISTS, None, False),
            ("missing", FilterOperator.EXISTS, None, False),
            ("missing", FilterOperator.NOT_EXISTS, None, True),
            ("nickname", FilterOperator.NOT_EXISTS, None, True),
            ("city", FilterOperator.NOT_EXISTS, None, False),
        ],
    )
    def test_leaf(self, evaluator, person, path, op, value, expected):
        assert evaluator.evaluate_filter(person, leaf(path, op, value)) is expected

    def test_in_range_is_inclusive(self, evaluator, person):
        assert evaluator.evaluate_filter(
            person, leaf("age", FilterOperator.IN_RANGE, min_value=30, max_value=35)
        )
        assert evaluator.evaluate_filter(
            person, leaf("age", FilterOperator.IN_RANGE, min_value=25, max_value=30)
        )
        assert not evaluator.evaluate_filter(
            person, leaf("age", FilterOperator.IN_RANGE, min_value=31, max_value=40)
        )

    def test_string_boolean_is_not_true(self, evaluator, make_entity):
        entity = make_entity("e", {"hasPets": "true"})
        assert not evaluator.evaluate_filter(entity, leaf("hasPets", FilterOperator.IS_TRUE))

    def test_well_known_fields(self, evaluator, person):
        assert evaluator.evaluate_filter(person, leaf("entityType", FilterOperator.EQUALS, "PERSON"))
        assert evaluator.evaluate_filter(person, leaf("name", FilterOperator.EQUALS, "p1"))
        assert evaluator.evaluate_filter(person, leaf("isSearchable", FilterOperator.IS_TRUE))

    def test_computed_age(self, evaluator, make_entity):
        today = date.today()
        born = date(today.year - 40, 1, 1)
        entity = make_entity("e", {"birthDate": born.isoformat()})
        assert evaluator.evaluate_filter(
            entity, leaf("age", FilterOperator.IN_RANGE, min_value=39, max_value=40)
        )


class TestGroupLogic:
    def test_and_requires_all(self, evaluator, person):
        group = FilterGroup.all_of(
            leaf("hasPets", FilterOperator.IS_TRUE),
            leaf("age", FilterOperator.GREATER_THAN, 40),
        )
        assert evaluator.matches(person, group) is False

    def test_or_requires_any(self, evaluator, person):
        group = FilterGroup.any_of(
            leaf("hasPets", FilterOperator.IS_FALSE),
            leaf("age", FilterOperator.LESS_THAN, 40),
        )
        assert evaluator.matches(person, group) is True

    def test_nested_groups(self, evaluator, person):
        group = FilterGroup.all_of(
            leaf("hasPets", FilterOperator.IS_TRUE),
            FilterGroup.any_of(
                leaf("city", FilterOperator.EQUALS, "Córdoba"),
                FilterGroup.all_of(
                    leaf("skills", FilterOperator.CONTAINS, "sql"),
                    leaf("age", FilterOperator.IN_RANGE, min_value=25, max_value=35),
                ),
            ),
        )
        assert evaluator.matches(person, group) is True

    def test_parsed_from_wire_format(self, evaluator, person):
        group = FilterGroup.model_validate(
            {
                "logicalOperator": "Or",
                "nestedGroups": [
                    {"filters": [{"fieldPath": "hasPets", "operator": "IsTrue"}]},
                    {"filters": [{"fieldPath": "age", "operator": "GreaterThan", "value": 99}]},
                ],
            }
        )
        assert group.logical_operator == LogicalOperator.OR
        assert evaluator.matches(person, group) is True


class TestPrivacy:
    @pytest.fixture
    def private_person(self, make_entity):
        return make_entity(
            "p2",
            {"hasPets": True, "smoker": False, "city": "Rosario"},
            owned_by_user_id="owner-1",
            privacy_settings=PrivacySettings(
                default_visibility=FieldVisibility.PRIVATE,
                field_visibility={"city": FieldVisibility.PUBLIC},
            ),
        )

    @pytest.mark.parametrize(
        "op",
        [FilterOperator.IS_TRUE, FilterOperator.IS_FALSE, FilterOperator.EXISTS, FilterOperator.NOT_EXISTS],
    )
    @pytest.mark.parametrize("field", ["hasPets", "smoker", "missing"])
    def test_private_field_never_matches_for_anonymous(self, evaluator, private_person, field, op):
        assert evaluator.matches(private_person, single(field, op), None, True) is False

    def test_private_field_never_matches_for_other_user(self, evaluator, private_person):
        group = single("hasPets", FilterOperator.IS_TRUE)
        assert evaluator.matches(private_person, group, "intruder", True) is False

    def test_owner_sees_private_fields(self, evaluator, private_person):
        group = single("hasPets", FilterOperator.IS_TRUE)
        assert evaluator.matches(private_person, group, "owner-1", True) is True

    def test_privacy_disabled_evaluates_everything(self, evaluator, private_person):
        group = single("hasPets", FilterOperator.IS_TRUE)
        assert evaluator.matches(private_person, group, None, False) is True

    def test_gated_leaf_is_skipped_not_failed(self, evaluator, private_person):
        group = FilterGroup.all_of(
            leaf("hasPets", FilterOperator.IS_FALSE),
            leaf("city", FilterOperator.EQUALS, "rosario"),
        )
        assert evaluator.matches(private_person, group, None, True) is True

    def test_gated_leaf_does_not_satisfy_or(self, evaluator, private_person):
        group = FilterGroup.any_of(
            leaf("hasPets", FilterOperator.IS_TRUE),
            leaf("city", FilterOperator.EQUALS, "Córdoba"),
        )
        assert evaluator.matches(private_person, group, None, True) is False

    def test_friends_only_is_owner_only(self, evaluator, make_entity):
        entity = make_entity(
            "f",
            {"hasPets": True},
            owned_by_user_id="owner-1",
            privacy_settings=PrivacySettings(
                default_visibility=FieldVisibility.PUBLIC,
                field_visibility={"hasPets": FieldVisibility.FRIENDS_ONLY},
            ),
        )
        group = single("hasPets", FilterOperator.IS_TRUE)
        assert evaluator.matches(entity, group, "friend", True) is False
        assert evaluator.matches(entity, group, "owner-1", True) is True

    def test_non_searchable_entity_exposes_nothing(self, evaluator, make_entity):
        entity = make_entity("h", {"hasPets": True}, is_searchable=False, owned_by_user_id="u")
        assert evaluator.matches(entity, single("hasPets", FilterOperator.IS_TRUE), "u", True) is False

    def test_public_parent_does_not_expose_children(self, evaluator, make_entity):
        entity = make_entity(
            "s",
            {"preferences": {"ssn": "123", "cuisine": "italiana"}},
            owned_by_user_id="owner-1",
            privacy_settings=PrivacySettings(
                default_visibility=FieldVisibility.PRIVATE,
                field_visibility={"preferences": FieldVisibility.PUBLIC},
            ),
        )
        group = single("preferences.ssn", FilterOperator.EQUALS, "123")

        assert evaluator.matches(entity, group, None, True) is False
        assert evaluator.extract_matched_attributes(entity, group, None, True) == {}
        assert evaluator.matches(entity, group, "owner-1", True) is True


class TestExtractMatchedAttributes:
    def test_only_matched_and_visible(self, evaluator, make_entity):
        entity = make_entity(
            "m",
            {"hasPets": True, "age": 30, "salary": 900},
            privacy_settings=PrivacySettings(
                default_visibility=FieldVisibility.PUBLIC,
                field_visibility={"salary": FieldVisibility.PRIVATE},
            ),
        )
        group = FilterGroup.any_of(
            leaf("hasPets", FilterOperator.IS_TRUE),
            leaf("age", FilterOperator.GREATER_THAN, 50),
            FilterGroup.all_of(leaf("salary", FilterOperator.GREATER_THAN, 100)),
        )
        assert evaluator.extract_matched_attributes(entity, group, None, True) == {"hasPets": True}
        assert evaluator.extract_matched_attributes(entity, group, None, False) == {
            "hasPets": True,
            "salary": 900,
        }

    def test_absent_fields_are_not_reported(self, evaluator, person):
        group = single("missing", FilterOperator.NOT_EXISTS)
        assert evaluator.extract_matched_attributes(person, group) == {}


class TestPushDown:
    @pytest.mark.parametrize(
        "group,expected",
        [
            (FilterGroup(), True),
            (single("hasPets", FilterOperator.IS_TRUE), True),
            (single("city", FilterOperator.EQUALS, "Rosario"), True),
            (single("name", FilterOperator.EQUALS, "Ana"), True),
            (single("city", FilterOperator.EXISTS), True),
            (single("entityType", FilterOperator.EQUALS, "job"), True),
            (single("salary", FilterOperator.GREATER_THAN, 10), False),
            (single("age", FilterOperator.IN_RANGE, min_value=1, max_value=2), False),
            (single("rooms", FilterOperator.EQUALS, 3), False),
            (single("skills", FilterOperator.CONTAINS, "x"), False),
            (single("city", FilterOperator.NOT_EQUALS, "x"), False),
            (single("city", FilterOperator.NOT_EXISTS), False),
            (single("metadata.source", FilterOperator.EQUALS, "crm"), True),
            (single("isSearchable", FilterOperator.IS_TRUE), True),
            (
                FilterGroup.all_of(
                    leaf("hasPets", FilterOperator.IS_TRUE),
                    FilterGroup.any_of(leaf("skills", FilterOperator.CONTAINS, "x")),
                ),
                False,
            ),
        ],
    )
    def test_classification(self, evaluator, group, expected):
        assert evaluator.is_push_downable(group) is expected

    def test_computed_field_is_not_push_downable(self, evaluator):
        # "age" sin atributo almacenado se resuelve como campo calculado
        assert evaluator.is_push_downable(single("age", FilterOperator.EXISTS)) is False
