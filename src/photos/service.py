import logging
import uuid
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import case, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from cats.models import Cat, Photo
from exceptions import NotFound
from pagination import PageRequest, clamp_limit, clamp_page, parse_sort
from photos.schemas import (
    PhotoBulkCreate,
    PhotoCreate,
    PhotoListQuery,
    PhotoReorder,
    PhotoUpdate,
    PhotoUpload,
    PhotoUploadBulk,
)
from validation import Result, parse_model

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "id": Photo.id,
    "catId": Photo.cat_id,
    "position": Photo.position,
    "cover": Photo.cover,
    "createdAt": Photo.created_at,
    "updatedAt": Photo.updated_at,
}

IMAGE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def parse_photo_list_query(params: Mapping[str, Any]) -> Result[Tuple[PageRequest, dict]]:
    parsed = parse_model(PhotoListQuery, params)
    if not parsed.ok:
        return Result.failure(parsed.violations)
    query = parsed.value
    request = PageRequest(
        page=clamp_page(query.page),
        limit=clamp_limit(query.limit),
        sort=parse_sort(query.sort, SORT_COLUMNS),
    )
    return Result.success((request, {"catId": query.cat_id}))


def image_filename(cat_id: int, content_type: str) -> str:
    extension = IMAGE_EXTENSIONS.get(content_type, "")
    return f"cat-{cat_id}-{uuid.uuid4().hex}{extension}"


async def discard_assets(storage, asset_ids: Iterable[Optional[str]]) -> None:
    """
    Delete images from the storage without failing the caller.
    """
    for asset_id in asset_ids:
        if not asset_id:
            continue
        try:
            await storage.delete(asset_id)
        except Exception:
            logger.warning("Could not delete image %s from the storage", asset_id, exc_info=True)


def cat_lock_query(cat_id: int):
    # FOR NO KEY UPDATE: photo inserts hold a KEY SHARE lock on the cat row
    return select(Cat.id).where(Cat.id == cat_id).with_for_update(key_share=True)


async def lock_cat(db: AsyncSession, cat_id: int) -> None:
    """
    Lock the cat row until the end of the transaction.

    Every change to a cat's photo set that may touch the cover takes this
    lock first, so such changes for one cat run one after another and each
    sees the photos committed before it.
    """
    if await db.scalar(cat_lock_query(cat_id)) is None:
        raise NotFound("Cat not found")


async def assign_cover(db: AsyncSession, photo: Photo) -> None:
    """
    Make ``photo`` the only cover among the photos of its cat.

    The cat row is locked first. A single UPDATE then flips every sibling
    at once, so no reader ever sees two covers for the same cat.
    """
    await lock_cat(db, photo.cat_id)
    await db.execute(
        update(Photo)
        .where(Photo.cat_id == photo.cat_id)
        .values(cover=case((Photo.id == photo.id, True), else_=False))
        .execution_options(synchronize_session=False)
    )


async def get_photo(db: AsyncSession, photo_id: int) -> Photo:
    """
    Get a photo from the database by ID.
    """
    result = await db.execute(select(Photo).where(Photo.id == photo_id))
    photo = result.scalars().first()
    if not photo:
        raise NotFound("Photo not found")
    return photo


async def get_photos(
    db: AsyncSession, page: PageRequest, cat_id: Optional[int] = None
) -> Tuple[List[Photo], int]:
    count_query = select(func.count(Photo.id))
    page_query = select(Photo)
    if cat_id is not None:
        count_query = count_query.where(Photo.cat_id == cat_id)
        page_query = page_query.where(Photo.cat_id == cat_id)

    total = await db.scalar(count_query)

    column = SORT_COLUMNS[page.sort.field]
    order = column.desc() if page.sort.descending else column.asc()
    result = await db.execute(
        page_query.order_by(order, Photo.id.asc()).offset(page.offset).limit(page.limit)
    )
    return list(result.scalars().all()), total or 0


async def _require_cat(db: AsyncSession, cat_id: int) -> None:
    if await db.get(Cat, cat_id) is None:
        raise NotFound("Cat not found")


async def _save_new_photos(
    db: AsyncSession, cat_id: int, photos: Sequence[Photo], cover: Optional[Photo] = None
) -> List[Photo]:
    await lock_cat(db, cat_id)
    db.add_all(photos)
    await db.flush()
    if cover is not None:
        await assign_cover(db, cover)
    await db.commit()
    for photo in photos:
        await db.refresh(photo)
    return list(photos)


async def upload_photo(
    db: AsyncSession,
    storage,
    upload: PhotoUpload,
    data: bytes,
    content_type: str,
) -> Photo:
    """
    Upload an image to the storage and create the photo record.
    """
    await _require_cat(db, upload.cat_id)

    filename = image_filename(upload.cat_id, content_type)
    stored = await storage.upload(data, filename, content_type)

    try:
        photo = Photo(
            cat_id=upload.cat_id,
            url=stored.url,
            public_id=stored.asset_id,
            cover=False,
            position=upload.position,
        )
        await _save_new_photos(
            db, upload.cat_id, [photo], cover=photo if upload.cover else None
        )
    except Exception:
        await db.rollback()
        # The record is gone, so is the image
        await discard_assets(storage, [stored.asset_id])
        raise

    logger.info("Uploaded photo id=%s for cat id=%s", photo.id, photo.cat_id)
    return photo


async def upload_photos(
    db: AsyncSession,
    storage,
    upload: PhotoUploadBulk,
    images: Sequence[Tuple[bytes, str]],
) -> List[Photo]:
    """
    Upload several images and create their records in one transaction.

    ``images`` holds (data, content type) pairs. Nothing is kept when any
    upload or the insert fails.
    """
    await _require_cat(db, upload.cat_id)

    stored = []
    try:
        for data, content_type in images:
            filename = image_filename(upload.cat_id, content_type)
            stored.append(await storage.upload(data, filename, content_type))
    except Exception:
        await discard_assets(storage, [image.asset_id for image in stored])
        raise

    try:
        photos = [
            Photo(
                cat_id=upload.cat_id,
                url=image.url,
                public_id=image.asset_id,
                cover=False,
                position=upload.start_position + offset,
            )
            for offset, image in enumerate(stored)
        ]
        photos = await _save_new_photos(db, upload.cat_id, photos)
    except Exception:
        await db.rollback()
        await discard_assets(storage, [image.asset_id for image in stored])
        raise

    logger.info("Uploaded %d photo(s) for cat id=%s", len(photos), upload.cat_id)
    return photos


async def create_photo(db: AsyncSession, payload: Any) -> Photo:
    """
    Create a photo record for an image hosted elsewhere.
    """
    fields = parse_model(PhotoCreate, payload).unwrap()
    await _require_cat(db, fields.cat_id)
    try:
        photo = Photo(
            cat_id=fields.cat_id, url=fields.url, cover=False, position=fields.position
        )
        await _save_new_photos(
            db, fields.cat_id, [photo], cover=photo if fields.cover else None
        )
    except Exception:
        await db.rollback()
        raise

    logger.info("Added photo id=%s for cat id=%s from %s", photo.id, photo.cat_id, photo.url)
    return photo


async def create_photos(db: AsyncSession, payload: Any) -> List[Photo]:
    """
    Create photo records for several hosted images, in the given order.
    """
    fields = parse_model(PhotoBulkCreate, payload).unwrap()
    await _require_cat(db, fields.cat_id)
    try:
        photos = [
            Photo(
                cat_id=fields.cat_id,
                url=url,
                cover=False,
                position=fields.start_position + offset,
            )
            for offset, url in enumerate(fields.urls)
        ]
        photos = await _save_new_photos(db, fields.cat_id, photos)
    except Exception:
        await db.rollback()
        raise

    logger.info("Added %d photo(s) for cat id=%s", len(photos), fields.cat_id)
    return photos


async def update_photo(db: AsyncSession, storage, photo_id: int, payload: Any) -> Photo:
    """
    Change the url, position or cover flag of a photo.

    A new url detaches the photo from its uploaded image, which is then
    removed from the storage.
    """
    fields = parse_model(PhotoUpdate, payload).unwrap()
    photo = await get_photo(db, photo_id)
    released = None
    try:
        if fields.url is not None and fields.url != photo.url:
            released = photo.public_id
            photo.url = fields.url
            photo.public_id = None
        if fields.position is not None:
            photo.position = fields.position
        if fields.cover is True:
            await assign_cover(db, photo)
        elif fields.cover is False:
            photo.cover = False
        await db.commit()
        await db.refresh(photo)
    except Exception:
        await db.rollback()
        raise

    await discard_assets(storage, [released])
    return photo


async def set_cover(db: AsyncSession, photo_id: int) -> Photo:
    photo = await get_photo(db, photo_id)
    try:
        await assign_cover(db, photo)
        await db.commit()
        await db.refresh(photo)
    except Exception:
        await db.rollback()
        raise

    logger.info("Photo id=%s is now the cover of cat id=%s", photo.id, photo.cat_id)
    return photo


async def reorder_photos(db: AsyncSession, payload: Any) -> List[Photo]:
    """
    Set the positions of several photos in one transaction.
    """
    reorder = parse_model(PhotoReorder, payload).unwrap()
    positions = {item.id: item.position for item in reorder.items}

    result = await db.execute(select(Photo).where(Photo.id.in_(list(positions))))
    photos = {photo.id: photo for photo in result.scalars().all()}
    missing = sorted(set(positions) - set(photos))
    if missing:
        raise NotFound(f"Photo(s) not found: {', '.join(str(i) for i in missing)}")

    try:
        for photo_id, position in positions.items():
            photos[photo_id].position = position
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return sorted(photos.values(), key=lambda p: (p.cat_id, p.position, p.id))


async def delete_photo(db: AsyncSession, storage, photo_id: int) -> None:
    """
    Delete a photo record, then its image in the storage (best effort).
    """
    photo = await get_photo(db, photo_id=photo_id)
    asset_id = photo.public_id
    try:
        await db.delete(photo)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Deleted photo id=%s", photo_id)
    await discard_assets(storage, [asset_id])
