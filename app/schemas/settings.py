from sqlmodel import SQLModel


class StoreSettings(SQLModel):
    """
    Typed view of the `settings` table. Defaults apply to missing keys.
    """

    store_name: str = "FreshCart"
    store_email: str = "contact@freshcart.com"
    store_phone: str = "+91 1234567890"
    store_address: str = "123 Fresh Street, Mumbai, India"
    currency: str = "INR"
    currency_symbol: str = "₹"
    tax_rate: float = 18
    free_shipping_threshold: float = 500
    shipping_fee: float = 40
    min_order_amount: float = 100


class PriceQuote(SQLModel):
    """
    Cart totals as shown on the cart page.
    """

    subtotal: float
    shipping_fee: float
    total: float
    free_shipping_threshold: float
    amount_to_free_shipping: float
    subtotal_display: str
    shipping_display: str
    total_display: str
