from .tenancy import Company, Store, store_employees
from .auth import User, SessionToken
from .catalog import Product, ProductVariant, PricingRule, StockMovement
from .orders import Order, OrderLine

__all__ = [
    'Company', 'Store', 'store_employees',
    'User', 'SessionToken',
    'Product', 'ProductVariant', 'PricingRule', 'StockMovement',
    'Order', 'OrderLine',
]
