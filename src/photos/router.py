from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, File, Form, Query, UploadFile, status

from auth.dependencies import get_settings, require_admin
from config import Settings
from database import get_db
from exceptions import PayloadTooLarge, ValidationFailed
from pagination import Page, build_meta
from photos import service
from photos.schemas import Photo, PhotoUpload, PhotoUploadBulk
from photos.storage import get_image_storage
from validation import Violation, parse_model

router = APIRouter(prefix="/photos", tags=["Photos"])


def _present(**fields) -> Dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}


def _image_violations(file: Optional[UploadFile], field: str) -> List[Violation]:
    if file is None:
        return [Violation(field, f"{field} is required (multipart field '{field}')")]
    if not (file.content_type or "").startswith("image/"):
        return [Violation(field, "Only image files are allowed")]
    return []


async def _read_image(file: UploadFile, settings: Settings) -> bytes:
    data = await file.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        raise PayloadTooLarge(f"Maximum photo size is {settings.max_upload_bytes} bytes")
    return data


def _dump(photos) -> List[dict]:
    return [Photo.model_validate(photo).model_dump(by_alias=True, mode="json") for photo in photos]


@router.get("", response_model=Page[Photo])
async def list_photos(
    cat_id: Optional[str] = Query(None, alias="catId", description="Only this cat's photos"),
    page: Optional[str] = Query(None, description="Page number, from 1"),
    limit: Optional[str] = Query(None, description="Page size, 1 to 100"),
    sort: Optional[str] = Query(None, description="field:asc or field:desc"),
    db=Depends(get_db),
):
    page_request, filters = service.parse_photo_list_query(
        _present(catId=cat_id, page=page, limit=limit, sort=sort)
    ).unwrap()
    photos, total = await service.get_photos(db, page_request, cat_id=filters["catId"])
    return Page[Photo](
        meta=build_meta(page_request, total, filters),
        data=[Photo.model_validate(photo) for photo in photos],
    )


@router.post(
    "/upload",
    response_model=Photo,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def upload_cat_photo(
    cat_id: Optional[str] = Form(None, alias="catId"),
    cover: Optional[str] = Form(None),
    position: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    db=Depends(get_db),
    storage=Depends(get_image_storage),
    settings=Depends(get_settings),
):
    """
    Upload one image for a cat (multipart field 'file') to the image storage.
    With cover=true the photo becomes the cat's only cover.
    """
    fields = parse_model(PhotoUpload, _present(catId=cat_id, cover=cover, position=position))
    violations = list(fields.violations) + _image_violations(file, "file")
    if violations:
        raise ValidationFailed(violations)

    data = await _read_image(file, settings)
    return Photo.model_validate(
        await service.upload_photo(db, storage, fields.value, data, file.content_type)
    )


@router.post(
    "/upload-bulk",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def upload_cat_photos(
    cat_id: Optional[str] = Form(None, alias="catId"),
    start_position: Optional[str] = Form(None, alias="startPosition"),
    files: Optional[List[UploadFile]] = File(None),
    db=Depends(get_db),
    storage=Depends(get_image_storage),
    settings=Depends(get_settings),
):
    """
    Upload several images for a cat (multipart field 'files', repeated).
    Positions count up from startPosition in the order the files were sent.
    """
    fields = parse_model(
        PhotoUploadBulk, _present(catId=cat_id, startPosition=start_position)
    )
    violations = list(fields.violations)
    if not files:
        violations += _image_violations(None, "files")
    else:
        for index, file in enumerate(files):
            violations += _image_violations(file, f"files[{index}]")
    if violations:
        raise ValidationFailed(violations)

    images = [(await _read_image(file, settings), file.content_type) for file in files]
    photos = await service.upload_photos(db, storage, fields.value, images)
    return {"message": f"{len(photos)} photo(s) uploaded", "data": _dump(photos)}


@router.post(
    "",
    response_model=Photo,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def add_photo_by_url(payload: Dict[str, Any] = Body(...), db=Depends(get_db)):
    """
    Add a photo hosted elsewhere, by its URL.
    """
    return Photo.model_validate(await service.create_photo(db, payload))


@router.post(
    "/bulk",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def add_photos_by_url(payload: Dict[str, Any] = Body(...), db=Depends(get_db)):
    """
    Add several hosted photos; positions count up from startPosition.
    """
    photos = await service.create_photos(db, payload)
    return {"message": f"{len(photos)} photo(s) added", "data": _dump(photos)}


@router.post("/reorder", dependencies=[Depends(require_admin)])
async def reorder_photos(payload: Dict[str, Any] = Body(...), db=Depends(get_db)):
    """
    Set the display position of several photos at once.
    """
    photos = await service.reorder_photos(db, payload)
    return {"message": "Photos reordered", "data": _dump(photos)}


@router.patch("/{photo_id}", response_model=Photo, dependencies=[Depends(require_admin)])
async def update_photo(
    photo_id: int,
    payload: Dict[str, Any] = Body(...),
    db=Depends(get_db),
    storage=Depends(get_image_storage),
):
    """
    Change the url, cover flag or position of a photo.
    """
    return Photo.model_validate(await service.update_photo(db, storage, photo_id, payload))


@router.post("/{photo_id}/set-cover", dependencies=[Depends(require_admin)])
async def set_cover_photo(photo_id: int, db=Depends(get_db)):
    """
    Make this photo the only cover of its cat.
    """
    photo = await service.set_cover(db, photo_id)
    return {
        "message": "Cover updated",
        "photo": Photo.model_validate(photo).model_dump(by_alias=True, mode="json"),
    }


@router.delete("/{photo_id}", dependencies=[Depends(require_admin)])
async def delete_cat_photo(
    photo_id: int, db=Depends(get_db), storage=Depends(get_image_storage)
):
    """
    Delete a photo. Its image is removed from the storage on a best-effort basis.
    """
    await service.delete_photo(db, storage, photo_id)
    return {"message": "Photo deleted"}
