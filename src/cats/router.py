from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from auth.dependencies import require_admin
from cats.schemas import Cat, CatWithPhotos
from cats.service import (
    create_cat,
    delete_cat,
    get_cat,
    get_cats,
    parse_cat_list_query,
    update_cat,
)
from database import get_db
from pagination import Page, build_meta
from photos.storage import get_image_storage

router = APIRouter(prefix="/cats", tags=["Cats"])


@router.get("", response_model=Page[CatWithPhotos])
async def list_cats(
    page: Optional[str] = Query(None, description="Page number, from 1"),
    limit: Optional[str] = Query(None, description="Page size, 1 to 100"),
    cat_type: Optional[str] = Query(None, alias="type", description="breeder or kitten"),
    cat_status: Optional[str] = Query(
        None, alias="status", description="available, reserved or sold"
    ),
    gender: Optional[str] = Query(None, description="male or female"),
    sort: Optional[str] = Query(None, description="field:asc or field:desc"),
    db=Depends(get_db),
):
    """
    Get one page of cats, with their photos.
    """
    params = {
        "page": page,
        "limit": limit,
        "type": cat_type,
        "status": cat_status,
        "gender": gender,
        "sort": sort,
    }
    page_request, filters = parse_cat_list_query(
        {key: value for key, value in params.items() if value is not None}
    ).unwrap()
    cats, total = await get_cats(db, page_request, filters)
    return Page[CatWithPhotos](
        meta=build_meta(page_request, total, filters),
        data=[CatWithPhotos.model_validate(cat) for cat in cats],
    )


@router.get("/{cat_id}", response_model=CatWithPhotos)
async def get_cat_on_id(cat_id: int, db=Depends(get_db)):
    """
    Get one cat by id.
    """
    return CatWithPhotos.model_validate(await get_cat(db, cat_id=cat_id))


@router.post(
    "",
    response_model=Cat,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_cat_record(payload: Dict[str, Any] = Body(...), db=Depends(get_db)):
    """
    Create a breeder or a kitten. Kittens need fatherId and motherId;
    breeders may carry sire/dam names and registrations instead.
    """
    return Cat.model_validate(await create_cat(db, payload))


@router.put("/{cat_id}", response_model=Cat, dependencies=[Depends(require_admin)])
async def update_cat_by_id(
    cat_id: int, payload: Dict[str, Any] = Body(...), db=Depends(get_db)
):
    """
    Update the fields of an existing cat. Its type cannot change.
    """
    return Cat.model_validate(await update_cat(db, cat_id, payload))


@router.delete("/{cat_id}", dependencies=[Depends(require_admin)])
async def delete_cat_by_id(
    cat_id: int, db=Depends(get_db), storage=Depends(get_image_storage)
):
    """
    We delete a cat by id and all photos associated with it,
    both in the database and in the image storage.
    """
    await delete_cat(db, storage, cat_id)
    return {"message": f"Cat with id:{cat_id} and all related photos deleted successfully"}
