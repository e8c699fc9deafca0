"""Tests for the cat payload validators and business rules."""

from datetime import date

import pytest

from cats.rules import validate_cat_create, validate_cat_update
from cats.schemas import BreederRecord, KittenRecord
from exceptions import ValidationFailed


def fields_of(result):
    return {violation.field for violation in result.violations}


def test_kitten_is_created_with_linked_parents():
    result = validate_cat_create(
        {"name": "Milo", "gender": "male", "type": "kitten", "fatherId": 1, "motherId": 2}
    )
    assert result.ok
    assert isinstance(result.value, KittenRecord)
    assert result.value.father_id == 1
    assert result.value.mother_id == 2
    assert result.value.status == "available"


@pytest.mark.parametrize("missing", ["fatherId", "motherId"])
def test_kitten_without_a_parent_is_rejected(missing):
    payload = {"name": "Milo", "gender": "male", "type": "kitten", "fatherId": 1, "motherId": 2}
    del payload[missing]

    result = validate_cat_create(payload)

    assert not result.ok
    assert fields_of(result) == {missing}
    assert result.violations[0].message == f"{missing} is required for kittens"


def test_kitten_without_parents_reports_both():
    result = validate_cat_create({"name": "Milo", "gender": "male", "type": "kitten"})
    assert fields_of(result) == {"fatherId", "motherId"}


def test_kitten_pedigree_text_is_nulled():
    result = validate_cat_create(
        {
            "name": "Milo",
            "gender": "male",
            "type": "kitten",
            "fatherId": 1,
            "motherId": 2,
            "sireName": "King Leo",
            "damName": "Queen Zara",
            "sireRegistration": "LOOF 123",
            "damRegistration": "LOOF 456",
        }
    )
    values = result.unwrap().column_values()
    assert values["sire_name"] is None
    assert values["dam_name"] is None
    assert values["sire_registration"] is None
    assert values["dam_registration"] is None


def test_breeder_with_father_is_rejected():
    result = validate_cat_create(
        {"name": "Luna", "gender": "female", "type": "breeder", "fatherId": 1}
    )
    assert not result.ok
    assert fields_of(result) == {"fatherId"}
    with pytest.raises(ValidationFailed) as excinfo:
        result.unwrap()
    assert excinfo.value.details() == {"fatherId": ["fatherId is not allowed for breeders"]}


def test_breeder_keeps_pedigree_and_has_no_parents():
    result = validate_cat_create(
        {
            "name": "Luna",
            "gender": "female",
            "type": "breeder",
            "birthDate": "2021-03-10",
            "sireName": "Ch. Silver Moon",
            "damName": "Lady Bella",
        }
    )
    record = result.unwrap()
    assert isinstance(record, BreederRecord)
    values = record.column_values()
    assert values["birth_date"] == date(2021, 3, 10)
    assert values["sire_name"] == "Ch. Silver Moon"
    assert values["father_id"] is None
    assert values["mother_id"] is None


def test_raw_strings_are_coerced():
    result = validate_cat_create(
        {
            "name": "  Milo ",
            "gender": "male",
            "type": "kitten",
            "status": "reserved",
            "fatherId": "1",
            "motherId": " 2 ",
        }
    )
    record = result.unwrap()
    assert record.name == "Milo"
    assert record.father_id == 1
    assert record.mother_id == 2
    assert record.status == "reserved"


def test_enum_values_are_case_sensitive():
    result = validate_cat_create({"name": "Luna", "gender": "Female", "type": "breeder"})
    assert [(v.field, v.message) for v in result.violations] == [
        ("gender", "gender must be one of: male, female")
    ]


@pytest.mark.parametrize(
    "value", ["2021-03-10T00:00:00", "10/03/2021", "2021-3-10", "2021-02-30", 20210310]
)
def test_birth_date_must_be_a_plain_date(value):
    result = validate_cat_create(
        {"name": "Luna", "gender": "female", "type": "breeder", "birthDate": value}
    )
    assert fields_of(result) == {"birthDate"}


def test_all_field_violations_are_collected():
    result = validate_cat_create(
        {"name": "", "gender": "x", "type": "dog", "status": "gone", "birthDate": "soon"}
    )
    assert fields_of(result) == {"name", "gender", "type", "status", "birthDate"}


def test_required_fields_are_named():
    result = validate_cat_create({})
    assert fields_of(result) == {"name", "gender", "type"}
    assert "name is required" in [v.message for v in result.violations]


def test_unknown_fields_are_dropped():
    record = validate_cat_create(
        {"name": "Luna", "gender": "female", "type": "breeder", "color": "silver", "id": 99}
    ).unwrap()
    assert "color" not in record.column_values()
    assert "id" not in record.column_values()


def test_payload_must_be_an_object():
    result = validate_cat_create(["Luna"])
    assert fields_of(result) == {"body"}


def test_invalid_parent_id_is_a_field_violation():
    result = validate_cat_create(
        {"name": "Milo", "gender": "male", "type": "kitten", "fatherId": "one", "motherId": 0}
    )
    assert fields_of(result) == {"fatherId", "motherId"}


def test_update_only_touches_given_fields():
    changes = validate_cat_update({"name": "Luna II", "status": "sold"}, "breeder").unwrap()
    assert changes.values == {"name": "Luna II", "status": "sold"}


def test_update_cannot_change_type():
    result = validate_cat_update({"type": "kitten"}, "breeder")
    assert fields_of(result) == {"type"}


def test_update_with_same_type_is_accepted():
    changes = validate_cat_update({"type": "breeder", "name": "Luna"}, "breeder").unwrap()
    assert changes.values == {"name": "Luna"}


def test_kitten_update_needs_both_parents():
    result = validate_cat_update({"fatherId": 3}, "kitten")
    assert fields_of(result) == {"motherId"}

    changes = validate_cat_update({"fatherId": 3, "motherId": 4}, "kitten").unwrap()
    assert changes.values["father_id"] == 3
    assert changes.values["mother_id"] == 4


def test_kitten_update_cannot_clear_parents():
    result = validate_cat_update({"fatherId": None, "motherId": None}, "kitten")
    assert fields_of(result) == {"fatherId", "motherId"}


def test_kitten_update_nulls_pedigree_text():
    changes = validate_cat_update({"sireName": "King Leo"}, "kitten").unwrap()
    assert changes.values["sire_name"] is None
    assert changes.values["dam_registration"] is None


def test_breeder_update_rejects_parents():
    result = validate_cat_update({"motherId": 4}, "breeder")
    assert fields_of(result) == {"motherId"}


def test_update_rejects_null_for_required_fields():
    result = validate_cat_update({"name": None, "gender": None}, "breeder")
    assert fields_of(result) == {"name", "gender"}


def test_update_can_clear_birth_date():
    changes = validate_cat_update({"birthDate": None}, "breeder").unwrap()
    assert changes.values == {"birth_date": None}
