from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from cats.models import CAT_TYPES, GENDERS, PARENT_FIELDS, PEDIGREE_FIELDS, STATUSES
from pagination import parse_sort
from photos.schemas import Photo
from validation import (
    coerce_choice,
    coerce_date,
    coerce_int,
    coerce_text,
    require_present,
    wire_name,
)

Gender = Literal["male", "female"]
CatType = Literal["breeder", "kitten"]
Status = Literal["available", "reserved", "sold"]

CAT_SORT_FIELDS = (
    "id",
    "name",
    "gender",
    "type",
    "status",
    "birthDate",
    "createdAt",
    "updatedAt",
)
DEFAULT_CAT_SORT = "createdAt:desc"


class _Wire(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class CatFields(_Wire):
    """
    Field-level rules shared by the create and update payloads.

    Every field is optional here; ``CatCreate`` makes the mandatory ones
    required. Rules that depend on the cat type live in ``cats.rules``.
    """

    name: Optional[str] = None
    gender: Optional[Gender] = None
    type: Optional[CatType] = None
    birth_date: Optional[date] = None
    status: Optional[Status] = None

    father_id: Optional[int] = None
    mother_id: Optional[int] = None

    sire_name: Optional[str] = None
    dam_name: Optional[str] = None
    sire_registration: Optional[str] = None
    dam_registration: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value, info):
        field = wire_name(info, cls)
        return coerce_text(require_present(value, field), field, required=True)

    @field_validator("gender", mode="before")
    @classmethod
    def _gender(cls, value, info):
        field = wire_name(info, cls)
        return coerce_choice(require_present(value, field), field, GENDERS)

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, value, info):
        field = wire_name(info, cls)
        return coerce_choice(require_present(value, field), field, CAT_TYPES)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value, info):
        field = wire_name(info, cls)
        return coerce_choice(require_present(value, field), field, STATUSES)

    @field_validator("birth_date", mode="before")
    @classmethod
    def _birth_date(cls, value, info):
        return coerce_date(value, wire_name(info, cls))

    @field_validator(*PARENT_FIELDS, mode="before")
    @classmethod
    def _parent(cls, value, info):
        return coerce_int(value, wire_name(info, cls), minimum=1)

    @field_validator(*PEDIGREE_FIELDS, mode="before")
    @classmethod
    def _pedigree(cls, value, info):
        return coerce_text(value, wire_name(info, cls))

    def provided(self) -> Dict[str, Any]:
        """Column values for the fields that were present in the payload."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class CatCreate(CatFields):
    name: str
    gender: Gender
    type: CatType
    status: Status = "available"


class CatUpdate(CatFields):
    pass


class KittenRecord(BaseModel):
    """A validated kitten: linked parents, no external pedigree."""

    model_config = ConfigDict(frozen=True)

    type: Literal["kitten"] = "kitten"
    name: str
    gender: Gender
    birth_date: Optional[date] = None
    status: Status = "available"
    father_id: int
    mother_id: int

    def column_values(self) -> Dict[str, Any]:
        values = self.model_dump()
        values.update(dict.fromkeys(PEDIGREE_FIELDS))
        return values


class BreederRecord(BaseModel):
    """A validated breeder: optional external pedigree, no linked parents."""

    model_config = ConfigDict(frozen=True)

    type: Literal["breeder"] = "breeder"
    name: str
    gender: Gender
    birth_date: Optional[date] = None
    status: Status = "available"
    sire_name: Optional[str] = None
    dam_name: Optional[str] = None
    sire_registration: Optional[str] = None
    dam_registration: Optional[str] = None

    def column_values(self) -> Dict[str, Any]:
        values = self.model_dump()
        values.update(dict.fromkeys(PARENT_FIELDS))
        return values


CatRecord = Union[KittenRecord, BreederRecord]


class CatChanges(BaseModel):
    """Normalized column assignments produced by an accepted update."""

    model_config = ConfigDict(frozen=True)

    type: CatType
    values: Dict[str, Any] = Field(default_factory=dict)


class CatListQuery(_Wire):
    page: Optional[int] = None
    limit: Optional[int] = None
    sort: str = DEFAULT_CAT_SORT
    type: Optional[CatType] = None
    status: Optional[Status] = None
    gender: Optional[Gender] = None

    @field_validator("page", "limit", mode="before")
    @classmethod
    def _ints(cls, value, info):
        if value == "":
            return None
        return coerce_int(value, wire_name(info, cls))

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, value, info):
        return coerce_choice(value or None, wire_name(info, cls), CAT_TYPES)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value, info):
        return coerce_choice(value or None, wire_name(info, cls), STATUSES)

    @field_validator("gender", mode="before")
    @classmethod
    def _gender(cls, value, info):
        return coerce_choice(value or None, wire_name(info, cls), GENDERS)

    @field_validator("sort", mode="before")
    @classmethod
    def _sort(cls, value, info):
        if value is None or value == "":
            return DEFAULT_CAT_SORT
        if not isinstance(value, str):
            raise PydanticCustomError("string_type", "sort must be a string")
        return str(parse_sort(value, CAT_SORT_FIELDS))

    def filters(self) -> Dict[str, Any]:
        return {"type": self.type, "status": self.status, "gender": self.gender}


class Cat(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    name: str
    gender: Gender
    type: CatType
    birth_date: Optional[date] = None
    status: Status
    father_id: Optional[int] = None
    mother_id: Optional[int] = None
    sire_name: Optional[str] = None
    dam_name: Optional[str] = None
    sire_registration: Optional[str] = None
    dam_registration: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CatWithPhotos(Cat):
    photos: List[Photo] = []
