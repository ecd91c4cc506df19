from fastapi import APIRouter, Depends

from app.dependencies import get_product_service
from app.models.product import Category
from app.schemas.product import CategoryPage
from app.services.product_service import ProductService

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("", response_model=list[Category])
async def list_categories(
    top_level_only: bool = False,
    service: ProductService = Depends(get_product_service),
):
    """
    List active categories ordered by sort_order.
    """
    return await service.list_categories(top_level_only=top_level_only)


@router.get("/{slug}", response_model=CategoryPage)
async def get_category(
    slug: str,
    service: ProductService = Depends(get_product_service),
):
    """
    Category page: the category and its active products by name.
    """
    return await service.get_category_page(slug)
