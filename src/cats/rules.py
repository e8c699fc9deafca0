"""
Business rules binding a cat's type to its parent and pedigree fields.

Kittens are linked to two parent cats and never carry free-text pedigree;
breeders carry optional free-text pedigree and are never linked to parents.
The rules run after field-level validation and use the *effective* type:
the type given in the payload, else the stored type of the cat being
updated. A cat's type cannot be changed once created.
"""

from typing import Any, List, Mapping

from pydantic.alias_generators import to_camel

from cats.models import PARENT_FIELDS, PEDIGREE_FIELDS
from cats.schemas import (
    BreederRecord,
    CatChanges,
    CatCreate,
    CatRecord,
    CatUpdate,
    KittenRecord,
)
from validation import Result, Violation, parse_model


def _kitten_parents_missing(fields: CatCreate) -> List[Violation]:
    return [
        Violation(to_camel(name), f"{to_camel(name)} is required for kittens")
        for name in PARENT_FIELDS
        if getattr(fields, name) is None
    ]


def _breeder_parents_given(values: Mapping[str, Any]) -> List[Violation]:
    return [
        Violation(to_camel(name), f"{to_camel(name)} is not allowed for breeders")
        for name in PARENT_FIELDS
        if values.get(name) is not None
    ]


def check_create(fields: CatCreate) -> Result[CatRecord]:
    common = {
        "name": fields.name,
        "gender": fields.gender,
        "birth_date": fields.birth_date,
        "status": fields.status,
    }

    if fields.type == "kitten":
        violations = _kitten_parents_missing(fields)
        if violations:
            return Result.failure(violations)
        # Pedigree text is dropped, not rejected, for kittens
        return Result.success(
            KittenRecord(father_id=fields.father_id, mother_id=fields.mother_id, **common)
        )

    violations = _breeder_parents_given(fields.provided())
    if violations:
        return Result.failure(violations)
    return Result.success(
        BreederRecord(
            sire_name=fields.sire_name,
            dam_name=fields.dam_name,
            sire_registration=fields.sire_registration,
            dam_registration=fields.dam_registration,
            **common,
        )
    )


def check_update(fields: CatUpdate, stored_type: str) -> Result[CatChanges]:
    values = fields.provided()
    violations: List[Violation] = []

    requested_type = values.pop("type", stored_type)
    if requested_type != stored_type:
        violations.append(
            Violation(
                "type", f"type cannot be changed from {stored_type} to {requested_type}"
            )
        )

    if stored_type == "kitten":
        given = [name for name in PARENT_FIELDS if name in values]
        if len(given) == 1:
            missing = next(name for name in PARENT_FIELDS if name not in values)
            violations.append(
                Violation(
                    to_camel(missing),
                    f"{to_camel(missing)} is required when updating a kitten's parents",
                )
            )
        for name in given:
            if values[name] is None:
                violations.append(
                    Violation(to_camel(name), f"{to_camel(name)} cannot be cleared for kittens")
                )
        values.update(dict.fromkeys(PEDIGREE_FIELDS))
    else:
        violations.extend(_breeder_parents_given(values))

    if violations:
        return Result.failure(violations)
    return Result.success(CatChanges(type=stored_type, values=values))


def validate_cat_create(payload: Any) -> Result[CatRecord]:
    """
    Validate an untrusted create payload into a kitten or breeder record.
    """
    parsed = parse_model(CatCreate, payload)
    if not parsed.ok:
        return Result.failure(parsed.violations)
    return check_create(parsed.value)


def validate_cat_update(payload: Any, stored_type: str) -> Result[CatChanges]:
    """
    Validate an untrusted partial update against the stored cat type.
    """
    parsed = parse_model(CatUpdate, payload)
    if not parsed.ok:
        return Result.failure(parsed.violations)
    return check_update(parsed.value, stored_type)
