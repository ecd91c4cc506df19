from fastapi import HTTPException, status

from app.models.product import Product
from app.repositories.product_repo import ProductRepository
from app.schemas.product import (
    CategoryPage,
    HomePage,
    ProductCard,
    ProductDetail,
    ProductList,
    ProductQuery,
)
from app.schemas.settings import StoreSettings
from app.services.settings_service import SettingsService

# Number of products in each home page section
HOME_SECTION_SIZE = 10


class ProductService:
    """
    Storefront browsing.

    Responsibilities:
      - listing with filters / sort
      - product detail
      - category pages and the home page sections
      - shaping products into display cards (formatted prices, image)
    """

    def __init__(self, repo: ProductRepository, settings_service: SettingsService):
        self.repo = repo
        self.settings_service = settings_service

    # ----- Helpers -----

    @staticmethod
    def to_card(product: Product, settings: StoreSettings) -> ProductCard:
        image = product.primary_image
        fmt = SettingsService.format_price
        return ProductCard(
            id=product.id,
            name=product.name,
            slug=product.slug,
            short_description=product.short_description,
            price=product.price,
            price_display=fmt(settings, product.price),
            compare_at_price=product.compare_at_price,
            compare_at_price_display=(
                fmt(settings, product.compare_at_price)
                if product.discount_percent is not None
                else None
            ),
            discount_percent=product.discount_percent,
            stock_quantity=product.stock_quantity,
            in_stock=product.in_stock,
            is_low_stock=product.is_low_stock,
            is_featured=product.is_featured,
            is_organic=product.is_organic,
            weight=product.weight,
            weight_unit=product.weight_unit,
            image_url=image.url if image else None,
            category_name=product.category.name if product.category else None,
        )

    async def _cards(self, products: list[Product]) -> list[ProductCard]:
        settings = await self.settings_service.get_settings()
        return [self.to_card(p, settings) for p in products]

    # ----- Products -----

    async def list_products(self, query: ProductQuery) -> ProductList:
        products = await self.repo.list_products(query)
        cards = await self._cards(products)
        return ProductList(
            items=cards,
            count=len(cards),
            has_active_filters=query.has_active_filters,
        )

    async def get_product(self, product_id) -> Product:
        """
        Product lookup used by the cart endpoints (needs current stock).
        """
        product = await self.repo.get_product(product_id)
        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        return product

    async def get_product_detail(self, slug: str) -> ProductDetail:
        product = await self.repo.get_product_by_slug(slug)
        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )

        settings = await self.settings_service.get_settings()
        fmt = SettingsService.format_price

        return ProductDetail(
            product=product,
            price_display=fmt(settings, product.price),
            compare_at_price_display=(
                fmt(settings, product.compare_at_price)
                if product.discount_percent is not None
                else None
            ),
            discount_percent=product.discount_percent,
            images=product.sorted_images(),
        )

    # ----- Categories -----

    async def list_categories(self, top_level_only: bool = False):
        return await self.repo.list_categories(top_level_only=top_level_only)

    async def get_category_page(self, slug: str) -> CategoryPage:
        category = await self.repo.get_category_by_slug(slug)
        if not category:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Category not found",
            )

        products = await self.repo.list_products(
            ProductQuery(category_id=category.id, sort="name")
        )
        return CategoryPage(category=category, products=await self._cards(products))

    async def get_home_page(self) -> HomePage:
        settings = await self.settings_service.get_settings()

        featured = await self.repo.list_products(
            ProductQuery(featured=True, limit=HOME_SECTION_SIZE)
        )
        organic = await self.repo.list_products(
            ProductQuery(organic=True, limit=HOME_SECTION_SIZE)
        )
        newest = await self.repo.list_products(ProductQuery(limit=HOME_SECTION_SIZE))
        categories = await self.repo.list_categories(top_level_only=True)

        return HomePage(
            store_name=settings.store_name,
            categories=categories,
            featured=[self.to_card(p, settings) for p in featured],
            organic=[self.to_card(p, settings) for p in organic],
            newest=[self.to_card(p, settings) for p in newest],
        )
