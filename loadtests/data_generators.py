"""Faker-based data generators for Locust load test scenarios.

Payloads match the field names of the ordering API's Pydantic request
schemas and pass its validation rules (complete address for delivery,
named pickup location, quantities of at least 1).
"""

import random

from faker import Faker

fake = Faker("es_CL")

ADMIN_HEADERS = {"X-User-Id": "loadtest-admin", "X-User-Role": "admin"}


def client_headers(user_id: str) -> dict:
    return {"X-User-Id": user_id, "X-User-Role": "client"}


def product_data(stock_quantity: int | None = None) -> dict:
    price = random.randint(5, 200) * 1000
    return {
        "name": f"{fake.word().title()} {fake.word()} {random.randint(100, 999)}",
        "price": price,
        "wholesale_price": int(price * 0.8),
        "stock_quantity": stock_quantity if stock_quantity is not None else random.randint(500, 5000),
        "sku": f"LT-{random.randint(100000, 999999)}",
        "brand": fake.company()[:100],
    }


def delivery_address() -> dict:
    return {
        "street": fake.street_address(),
        "city": fake.city(),
        "state": random.choice(["Metropolitana", "Valparaíso", "Biobío", "Los Lagos"]),
        "postal_code": fake.postcode(),
        "country": "Chile",
    }


def pickup_location() -> dict:
    return {
        "name": f"Sucursal {fake.city()}",
        "address": fake.street_address(),
        "notes": "Retiro en mesón",
    }


def order_data(product_ids: list[str], quantity: int | None = None) -> dict:
    """An order for one or two of `product_ids`, randomly delivery or pickup."""
    lines = [
        {"product_id": product_id, "quantity": quantity or random.randint(1, 3)}
        for product_id in random.sample(product_ids, k=min(len(product_ids), random.randint(1, 2)))
    ]
    if random.random() < 0.5:
        return {
            "items": lines,
            "shipment_method": "delivery",
            "shipping_address": delivery_address(),
            "payment_method": random.choice(["webpay", "bankTransfer", "cash"]),
            "order_type": random.choice(["B2C", "B2C", "B2B"]),
        }
    return {
        "items": lines,
        "shipment_method": "pickup",
        "pickup_location": pickup_location(),
        "payment_method": random.choice(["webpay", "bankTransfer", "cash"]),
        "order_type": "B2C",
    }
