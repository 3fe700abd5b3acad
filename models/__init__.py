from models.products import Product
from models.inventory import Inventory
from models.inventory_changes import InventoryChange
from models.orders import Order
from models.order_items import OrderItem
from models.shipping_rules import ShippingRule
from models.customer_profiles import CustomerProfile

__all__ = ["Product", "Inventory", "InventoryChange", "Order", "OrderItem", "ShippingRule", "CustomerProfile"]
