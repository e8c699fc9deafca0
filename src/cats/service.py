import logging
from typing import Any, List, Mapping, Tuple

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from cats.models import Cat
from cats.rules import validate_cat_create, validate_cat_update
from cats.schemas import CatListQuery
from exceptions import NotFound
from pagination import PageRequest, clamp_limit, clamp_page, parse_sort
from photos.service import discard_assets
from validation import Result, parse_model

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "id": Cat.id,
    "name": Cat.name,
    "gender": Cat.gender,
    "type": Cat.type,
    "status": Cat.status,
    "birthDate": Cat.birth_date,
    "createdAt": Cat.created_at,
    "updatedAt": Cat.updated_at,
}


def parse_cat_list_query(params: Mapping[str, Any]) -> Result[Tuple[PageRequest, dict]]:
    """
    Turn raw query parameters into a page request and the active filters.
    """
    parsed = parse_model(CatListQuery, params)
    if not parsed.ok:
        return Result.failure(parsed.violations)
    query = parsed.value
    request = PageRequest(
        page=clamp_page(query.page),
        limit=clamp_limit(query.limit),
        sort=parse_sort(query.sort, SORT_COLUMNS),
    )
    return Result.success((request, query.filters()))


async def get_cat(db: AsyncSession, cat_id: int) -> Cat:
    """
    Get one cat by id along with their photos.
    """
    query = await db.execute(
        select(Cat).options(selectinload(Cat.photos)).filter(Cat.id == cat_id)
    )
    result = query.scalars().first()
    if not result:
        raise NotFound("Cat not found")
    return result


async def get_cats(
    db: AsyncSession, page: PageRequest, filters: Mapping[str, Any]
) -> Tuple[List[Cat], int]:
    """
    Get one page of cats matching the filters, and the number of matches.
    """
    conditions = [
        getattr(Cat, name) == value for name, value in filters.items() if value is not None
    ]

    count_query = select(func.count(Cat.id))
    page_query = select(Cat).options(selectinload(Cat.photos))
    if conditions:
        count_query = count_query.where(*conditions)
        page_query = page_query.where(*conditions)

    total = await db.scalar(count_query)

    column = SORT_COLUMNS[page.sort.field]
    order = column.desc() if page.sort.descending else column.asc()
    query = await db.execute(
        page_query
        .order_by(order, Cat.id.asc())
        .offset(page.offset)
        .limit(page.limit)
    )
    return list(query.scalars().all()), total or 0


async def create_cat(db: AsyncSession, payload: Any) -> Cat:
    """
    Validate the payload and create a record of the cat in the database.
    """
    record = validate_cat_create(payload).unwrap()
    try:
        db_cat = Cat(**record.column_values())
        db.add(db_cat)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Created %s %r with id=%s", db_cat.type, db_cat.name, db_cat.id)
    return db_cat


async def update_cat(db: AsyncSession, cat_id: int, payload: Any) -> Cat:
    """
    Update information about the cat, keeping it consistent with its type.
    """
    db_cat = await db.get(Cat, cat_id)
    if db_cat is None:
        raise NotFound("Cat not found")

    changes = validate_cat_update(payload, db_cat.type).unwrap()
    try:
        for key, value in changes.values.items():
            setattr(db_cat, key, value)
        await db.commit()
        await db.refresh(db_cat)
    except Exception:
        await db.rollback()
        raise

    logger.info("Updated cat id=%s fields=%s", cat_id, sorted(changes.values))
    return db_cat


async def delete_cat(db: AsyncSession, storage, cat_id: int) -> None:
    """
    Delete the cat and all its photos, then their images in the storage.
    """
    db_cat = await get_cat(db, cat_id=cat_id)
    photo_count = len(db_cat.photos)
    asset_ids = [photo.public_id for photo in db_cat.photos if photo.public_id]
    try:
        # Photos go with the cat through the relationship cascade
        await db.delete(db_cat)
        await db.commit()
    except Exception:
        # If there is an error during cat deletion, rollback the database transaction
        await db.rollback()
        raise

    logger.info("Deleted cat id=%s with %d photo(s)", cat_id, photo_count)
    await discard_assets(storage, asset_ids)
