from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from storefront.db.session import get_db
from storefront.services import catalog_service
from storefront.utils.response import success
from storefront.core.rate_limiter import limiter

router = APIRouter()


@router.get("", response_model=dict)
@limiter.limit("100/minute")
def get_hero_slides(request: Request, db: Session = Depends(get_db)):
    """Active homepage slides in display order"""
    slides = catalog_service.list_active_hero_slides(db)
    return success(
        data=[catalog_service.serialize_hero_slide(slide) for slide in slides],
        message="Hero slides retrieved",
    )
