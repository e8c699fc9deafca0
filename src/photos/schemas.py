from datetime import datetime
from typing import Any, List, Optional

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from pagination import parse_sort
from validation import coerce_bool, coerce_int, require_present, wire_name

PHOTO_SORT_FIELDS = ("id", "catId", "position", "cover", "createdAt", "updatedAt")
DEFAULT_PHOTO_SORT = "position:asc"

_http_url = TypeAdapter(AnyHttpUrl)


def coerce_url(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise PydanticCustomError("url_type", f"{field} must be a string")
    try:
        _http_url.validate_python(value)
    except PydanticValidationError:
        raise PydanticCustomError("url_parsing", f"{field} must be a valid http(s) URL")
    return value


class _Wire(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class PhotoUpdate(_Wire):
    url: Optional[str] = None
    cover: Optional[bool] = None
    position: Optional[int] = None

    @field_validator("url", mode="before")
    @classmethod
    def _url(cls, value, info):
        field = wire_name(info, cls)
        return coerce_url(require_present(value, field), field)

    @field_validator("cover", mode="before")
    @classmethod
    def _cover(cls, value, info):
        field = wire_name(info, cls)
        return coerce_bool(require_present(value, field), field)

    @field_validator("position", mode="before")
    @classmethod
    def _position(cls, value, info):
        field = wire_name(info, cls)
        return coerce_int(require_present(value, field), field)


class PhotoUpload(_Wire):
    """
    Text fields of the multipart upload form. The file itself is checked
    by the router.
    """

    cat_id: int
    cover: bool = False
    position: int = 0

    @field_validator("cat_id", mode="before")
    @classmethod
    def _cat_id(cls, value, info):
        field = wire_name(info, cls)
        return coerce_int(require_present(value, field), field, minimum=1)

    @field_validator("cover", mode="before")
    @classmethod
    def _cover(cls, value, info):
        if value is None or value == "":
            return False
        return coerce_bool(value, wire_name(info, cls))

    @field_validator("position", mode="before")
    @classmethod
    def _position(cls, value, info):
        if value is None or value == "":
            return 0
        return coerce_int(value, wire_name(info, cls))


class PhotoCreate(PhotoUpload):
    """A photo referencing an image that is already hosted somewhere."""

    url: str

    @field_validator("url", mode="before")
    @classmethod
    def _url(cls, value, info):
        field = wire_name(info, cls)
        return coerce_url(require_present(value, field), field)


class PhotoUploadBulk(_Wire):
    """
    Text fields of the multi-file upload form. Photos get consecutive
    positions starting at ``start_position``.
    """

    cat_id: int
    start_position: int = 0

    @field_validator("cat_id", mode="before")
    @classmethod
    def _cat_id(cls, value, info):
        field = wire_name(info, cls)
        return coerce_int(require_present(value, field), field, minimum=1)

    @field_validator("start_position", mode="before")
    @classmethod
    def _start_position(cls, value, info):
        if value is None or value == "":
            return 0
        return coerce_int(value, wire_name(info, cls))


class PhotoBulkCreate(PhotoUploadBulk):
    urls: List[str]

    @field_validator("urls", mode="before")
    @classmethod
    def _urls(cls, value, info):
        field = wire_name(info, cls)
        if not isinstance(value, list) or not value:
            raise PydanticCustomError("list_type", f"{field} must be a non-empty list of URLs")
        return [coerce_url(url, f"{field}[{index}]") for index, url in enumerate(value)]


class ReorderItem(_Wire):
    id: int
    position: int

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, value, info):
        field = wire_name(info, cls)
        return coerce_int(require_present(value, field), field, minimum=1)

    @field_validator("position", mode="before")
    @classmethod
    def _position(cls, value, info):
        field = wire_name(info, cls)
        return coerce_int(require_present(value, field), field)


class PhotoReorder(_Wire):
    items: List[ReorderItem] = Field(min_length=1)


class PhotoListQuery(_Wire):
    cat_id: Optional[int] = None
    page: Optional[int] = None
    limit: Optional[int] = None
    sort: str = DEFAULT_PHOTO_SORT

    @field_validator("cat_id", "page", "limit", mode="before")
    @classmethod
    def _ints(cls, value, info):
        if value == "":
            return None
        return coerce_int(value, wire_name(info, cls))

    @field_validator("sort", mode="before")
    @classmethod
    def _sort(cls, value, info):
        if value is None or value == "":
            return DEFAULT_PHOTO_SORT
        if not isinstance(value, str):
            raise PydanticCustomError("string_type", "sort must be a string")
        return str(parse_sort(value, PHOTO_SORT_FIELDS))


class Photo(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    cat_id: int
    url: str
    public_id: Optional[str] = None
    cover: bool
    position: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
