from models.inventory_items import Product

__all__ = ['Product',]
