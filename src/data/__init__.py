"""
Data Generation Module
"""
from .generators import CUSTOMERS, PRODUCTS, DemoDataGenerator, OrderPlan

__all__ = [
    "CUSTOMERS",
    "PRODUCTS",
    "DemoDataGenerator",
    "OrderPlan",
]
