from fastapi import APIRouter, Depends

from app.dependencies import get_product_service, get_settings_service
from app.schemas.product import HomePage
from app.schemas.settings import StoreSettings
from app.services.product_service import ProductService
from app.services.settings_service import SettingsService

router = APIRouter(tags=["Store"])


@router.get("/settings", response_model=StoreSettings)
async def get_store_settings(
    service: SettingsService = Depends(get_settings_service),
):
    """
    Public store settings (name, contact, currency, shipping rules).
    """
    return await service.get_settings()


@router.get("/home", response_model=HomePage)
async def get_home(service: ProductService = Depends(get_product_service)):
    """
    Landing page: top-level categories plus featured, organic and
    newest products.
    """
    return await service.get_home_page()
