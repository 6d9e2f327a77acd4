"""
Demo Data Generator

Deterministic coffee-shop demo data: the house catalog, a handful of
regulars, a month of random orders, research notes and monthly financial
metrics. Produces plain records only; ``src.ingestion.seed_db`` writes them.
"""

import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from faker import Faker

from src.database.models import PaymentMethod, utcnow


# =============================================================================
# CATALOG
# =============================================================================

PRODUCTS: List[Dict] = [
    {"name": "Espresso", "description": "Rich and bold espresso shot", "category": "Coffee",
     "price": Decimal("3.50"), "cost": Decimal("0.80"), "stock": 500},
    {"name": "Cappuccino", "description": "Espresso with steamed milk and foam", "category": "Coffee",
     "price": Decimal("4.50"), "cost": Decimal("1.20"), "stock": 450},
    {"name": "Latte", "description": "Smooth espresso with steamed milk", "category": "Coffee",
     "price": Decimal("4.75"), "cost": Decimal("1.30"), "stock": 480},
    {"name": "Americano", "description": "Espresso with hot water", "category": "Coffee",
     "price": Decimal("3.75"), "cost": Decimal("0.90"), "stock": 520},
    {"name": "Mocha", "description": "Chocolate-flavored espresso drink", "category": "Coffee",
     "price": Decimal("5.25"), "cost": Decimal("1.60"), "stock": 380},
    {"name": "Cold Brew", "description": "Smooth cold-steeped coffee", "category": "Coffee",
     "price": Decimal("4.25"), "cost": Decimal("1.10"), "stock": 300},
    {"name": "Croissant", "description": "Buttery French pastry", "category": "Pastry",
     "price": Decimal("3.50"), "cost": Decimal("1.00"), "stock": 100},
    {"name": "Blueberry Muffin", "description": "Fresh baked muffin with blueberries", "category": "Pastry",
     "price": Decimal("3.25"), "cost": Decimal("0.90"), "stock": 85},
]

CUSTOMERS: List[Dict] = [
    {"name": "Sarah Johnson", "email": "sarah.j@email.com", "phone": "+1-555-0101"},
    {"name": "Michael Chen", "email": "mchen@email.com", "phone": "+1-555-0102"},
    {"name": "Emily Rodriguez", "email": "emily.r@email.com", "phone": "+1-555-0103"},
    {"name": "David Kim", "email": "dkim@email.com", "phone": "+1-555-0104"},
    {"name": "Jessica Martinez", "email": "jmartinez@email.com", "phone": "+1-555-0105"},
]

MARKET_RESEARCH: List[Dict] = [
    {
        "title": "Coffee Consumption Trends",
        "category": "Market Trends",
        "description": "Analysis of current coffee drinking habits",
        "findings": "Cold brew and specialty lattes showing 25% growth. Sustainability increasingly important to consumers.",
        "source": "Industry Report",
    },
    {
        "title": "Local Competition Analysis",
        "category": "Competition",
        "description": "Survey of nearby coffee shops",
        "findings": "3 major competitors within 2-mile radius. Average price point $4.50. Our quality ratings higher.",
        "source": "Field Research",
    },
    {
        "title": "Customer Satisfaction Survey Q4",
        "category": "Customer Feedback",
        "description": "Quarterly customer satisfaction metrics",
        "findings": "4.2/5 average rating. Top requests: more seating, faster service, loyalty rewards program.",
        "source": "Customer Survey",
    },
]


@dataclass
class OrderPlan:
    """Order to be created through the ingestion service"""
    customer_index: int
    lines: List[Tuple[int, int]]  # (product index, quantity)
    payment_method: PaymentMethod
    order_date: datetime


# =============================================================================
# GENERATOR
# =============================================================================

class DemoDataGenerator:
    """
    Seeded source of demo records.

    Example:
        generator = DemoDataGenerator(seed=42)
        plans = generator.order_plans(50)
    """

    def __init__(self, seed: int = 42):
        self.random = random.Random(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)

    def customers(self, extra: int = 0) -> List[Dict]:
        """House regulars plus ``extra`` generated walk-ins."""
        records = [dict(customer) for customer in CUSTOMERS]
        taken = {customer["email"] for customer in records}
        while len(records) < len(CUSTOMERS) + extra:
            email = self.fake.unique.email()
            if email in taken:
                continue
            taken.add(email)
            records.append({
                "name": self.fake.name(),
                "email": email,
                "phone": self.fake.phone_number()[:50],
            })
        return records

    def order_plans(
        self,
        count: int = 50,
        customer_count: int = len(CUSTOMERS),
        days: int = 30,
        now: Optional[datetime] = None,
    ) -> List[OrderPlan]:
        """Random orders of 1-3 lines, quantity 1-2 each, spread over ``days``."""
        now = now or utcnow()
        methods = list(PaymentMethod)
        plans = []
        for _ in range(count):
            order_date = now - timedelta(
                days=self.random.randrange(days),
                minutes=self.random.randrange(12 * 60),
            )
            plans.append(OrderPlan(
                customer_index=self.random.randrange(customer_count),
                lines=[
                    (self.random.randrange(len(PRODUCTS)), self.random.randint(1, 2))
                    for _ in range(self.random.randint(1, 3))
                ],
                payment_method=self.random.choice(methods),
                order_date=order_date,
            ))
        return sorted(plans, key=lambda plan: plan.order_date)

    def financial_metrics(self, months: int = 6, today: Optional[date] = None) -> List[Dict]:
        """One ``Monthly`` metric per month going back from ``today``; profit = revenue - expenses."""
        today = today or utcnow().date()
        records = []
        for offset in range(months):
            year, month = divmod(today.year * 12 + today.month - 1 - offset, 12)
            metric_date = date(year, month + 1, 1)
            revenue = Decimal(str(round(15000 + self.random.random() * 5000, 2)))
            expenses = Decimal(str(round(8000 + self.random.random() * 2000, 2)))
            records.append({
                "metric_date": metric_date,
                "revenue": revenue,
                "expenses": expenses,
                "profit": revenue - expenses,
                "category": "Monthly",
                "notes": f"Financial performance for {metric_date.strftime('%B %Y')}",
            })
        return records
