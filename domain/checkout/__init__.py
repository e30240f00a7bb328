from .eligibility import (
    Cart,
    CartItem,
    CheckoutContext,
    EligibilityValidator,
    Product,
    ProductType,
    is_physical_good,
    is_valid_birth_date,
)

__all__ = [
    "Cart",
    "CartItem",
    "CheckoutContext",
    "EligibilityValidator",
    "Product",
    "ProductType",
    "is_physical_good",
    "is_valid_birth_date",
]
