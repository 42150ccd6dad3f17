from .identity import User, Boss, AuthToken
from .tenancy import Company, CompanyUser, CompanyPayment
from .field import Shop, ShopAssignment, Lead
from .catalog import Product, ProductPrice
from .orders import Order, OrderItem
from .security import SecurityEvent

__all__ = [
    'User', 'Boss', 'AuthToken',
    'Company', 'CompanyUser', 'CompanyPayment',
    'Shop', 'ShopAssignment', 'Lead',
    'Product', 'ProductPrice',
    'Order', 'OrderItem',
    'SecurityEvent',
]
