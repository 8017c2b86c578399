from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tuckshop.api.errors import http_error
from tuckshop.database import get_db
from tuckshop.schemas.category import CategoryResponse
from tuckshop.services.category_service import CategoryService
from tuckshop.services.errors import StockServiceError

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get(
    "/",
    response_model=list[CategoryResponse],
    summary="List categories",
    description="All product categories ordered by name."
)
def list_categories(db: Session = Depends(get_db)):
    service = CategoryService(db)
    try:
        categories = service.list_all()
    except StockServiceError as e:
        raise http_error(e)
    return [CategoryResponse.model_validate(c) for c in categories]
