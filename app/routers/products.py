import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError

from app.dependencies import get_product_service
from app.schemas.product import (
    DEFAULT_MAX_PRICE,
    DEFAULT_MIN_PRICE,
    ProductDetail,
    ProductList,
    ProductQuery,
    SortKey,
)
from app.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["Products"])


@router.get("", response_model=ProductList)
async def list_products(
    q: str | None = None,
    category: str | None = Query(
        default=None,
        description="Category id, or 'all' for every category",
    ),
    featured: bool = False,
    organic: bool = False,
    min_price: float = Query(default=DEFAULT_MIN_PRICE, ge=0),
    max_price: float = Query(default=DEFAULT_MAX_PRICE, ge=0),
    sort: SortKey = "newest",
    service: ProductService = Depends(get_product_service),
):
    """
    List active products.

    - Public endpoint.
    - Filters mirror the shop page: search, category, featured,
      organic, price range and sort order.
    """
    category_id = None
    if category and category != "all":
        try:
            category_id = uuid.UUID(category)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="category must be a UUID or 'all'",
            )

    try:
        query = ProductQuery(
            q=q,
            category_id=category_id,
            featured=featured,
            organic=organic,
            min_price=min_price,
            max_price=max_price,
            sort=sort,
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False),
        )

    return await service.list_products(query)


@router.get("/{slug}", response_model=ProductDetail)
async def get_product(
    slug: str,
    service: ProductService = Depends(get_product_service),
):
    """
    Get a single active product by slug.

    - Public endpoint.
    """
    return await service.get_product_detail(slug)
