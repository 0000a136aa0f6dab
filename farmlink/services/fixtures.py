"""
Development Fixture Catalog.

Static sample data answered by the ``FixtureResponder`` when the client
runs in development mode.  Each ``FixtureCatalog`` instance owns deep
copies of the module-level records, so in-memory edits made during one
session never leak into another responder (or another test).
"""

from __future__ import annotations

import copy
from typing import Any, Optional

Record = dict[str, Any]

# ---------------------------------------------------------------------------
# Mock identities
# ---------------------------------------------------------------------------

MOCK_USERS: dict[str, Record] = {
    "buyer": {
        "id": "mock-buyer-1",
        "full_name": "John Buyer",
        "email": "buyer@test.com",
        "phone_number": "+233501234567",
        "roles": ["buyer"],
        "profile_image_url": None,
        "location": "Accra, Ghana",
        "is_verified": True,
        "created_at": "2024-01-15T10:00:00Z",
    },
    "farmer": {
        "id": "mock-farmer-1",
        "full_name": "Mary Farmer",
        "email": "farmer@test.com",
        "phone_number": "+233507654321",
        "roles": ["farmer"],
        "profile_image_url": None,
        "location": "Kumasi, Ghana",
        "farm_name": "Green Valley Farm",
        "farm_size_hectares": 5.5,
        "primary_crops": ["Tomatoes", "Lettuce", "Spinach"],
        "farming_experience_years": 8,
        "farming_methods": ["Organic", "Traditional"],
        "certifications": ["Organic Certified"],
        "is_verified_farmer": True,
        "created_at": "2024-01-10T10:00:00Z",
    },
    "officer": {
        "id": "mock-officer-1",
        "full_name": "David Officer",
        "email": "officer@test.com",
        "phone_number": "+233509876543",
        "roles": ["officer"],
        "profile_image_url": None,
        "location": "Accra Region",
        "specialization": "Organic Farming & Pest Management",
        "territory": "Greater Accra Region",
        "certifications": ["Certified Agricultural Advisor", "Organic Farming Specialist"],
        "languages": ["English", "Twi", "Ga"],
        "is_verified": True,
        "created_at": "2024-01-05T10:00:00Z",
    },
    "multi_role": {
        "id": "mock-multi-1",
        "full_name": "Sarah Multi",
        "email": "multi@test.com",
        "phone_number": "+233502345678",
        "roles": ["buyer", "farmer", "officer"],
        "profile_image_url": None,
        "location": "Takoradi, Ghana",
        "farm_name": "Multi Farm",
        "farm_size_hectares": 3.2,
        "primary_crops": ["Maize", "Beans"],
        "farming_experience_years": 5,
        "is_verified_farmer": True,
        "is_verified": True,
        "created_at": "2024-02-01T10:00:00Z",
    },
}

# ---------------------------------------------------------------------------
# Resource collections
# ---------------------------------------------------------------------------

PRODUCTS: list[Record] = [
    {
        "id": "prod-1",
        "name": "Fresh Tomatoes",
        "description": "Organic vine-ripened tomatoes",
        "category": "vegetables",
        "price_per_unit": 5.50,
        "unit_of_measure": "kg",
        "quantity_available": 100,
        "minimum_order_quantity": 5,
        "is_organic": True,
        "quality_grade": "premium",
        "harvest_date": "2025-09-25",
        "expiry_date": "2025-10-10",
        "status": "available",
        "images": [],
        "farmer_id": "mock-farmer-1",
        "location": "Kumasi, Ghana",
        "created_at": "2025-09-20T10:00:00Z",
    },
    {
        "id": "prod-2",
        "name": "Organic Spinach",
        "description": "Fresh organic spinach leaves",
        "category": "vegetables",
        "price_per_unit": 3.00,
        "unit_of_measure": "kg",
        "quantity_available": 50,
        "minimum_order_quantity": 2,
        "is_organic": True,
        "quality_grade": "grade_a",
        "harvest_date": "2025-09-28",
        "status": "available",
        "images": [],
        "farmer_id": "mock-farmer-1",
        "location": "Kumasi, Ghana",
        "created_at": "2025-09-22T10:00:00Z",
    },
    {
        "id": "prod-3",
        "name": "Sweet Corn",
        "description": "Fresh sweet corn from local farm",
        "category": "vegetables",
        "price_per_unit": 2.50,
        "unit_of_measure": "kg",
        "quantity_available": 8,
        "minimum_order_quantity": 5,
        "is_organic": False,
        "quality_grade": "standard",
        "harvest_date": "2025-09-26",
        "status": "available",
        "images": [],
        "farmer_id": "mock-farmer-2",
        "location": "Accra, Ghana",
        "created_at": "2025-09-21T10:00:00Z",
    },
]

ORDERS: list[Record] = [
    {
        "id": "order-1",
        "order_number": "ORD-2025-00456",
        "buyer_id": "mock-buyer-1",
        "buyer_name": "John Buyer",
        "farmer_id": "mock-farmer-1",
        "farmer_name": "Mary Farmer",
        "status": "pending",
        "payment_status": "pending",
        "total_amount": 125.50,
        "delivery_address": "123 Main St, Accra",
        "delivery_date": "2025-10-05",
        "special_instructions": "Please call on arrival",
        "created_at": "2025-09-30T09:00:00Z",
        "items": [
            {
                "product_id": "prod-1",
                "product_name": "Fresh Tomatoes",
                "quantity": 10,
                "unit_price": 5.50,
                "unit_of_measure": "kg",
                "line_total": 55.00,
            },
            {
                "product_id": "prod-2",
                "product_name": "Organic Spinach",
                "quantity": 20,
                "unit_price": 3.00,
                "unit_of_measure": "kg",
                "line_total": 60.00,
            },
        ],
    },
    {
        "id": "order-2",
        "order_number": "ORD-2025-00432",
        "buyer_id": "mock-buyer-1",
        "buyer_name": "John Buyer",
        "farmer_id": "mock-farmer-1",
        "farmer_name": "Mary Farmer",
        "status": "delivered",
        "payment_status": "paid",
        "total_amount": 89.00,
        "delivery_address": "123 Main St, Accra",
        "delivery_date": "2025-09-28",
        "created_at": "2025-09-29T10:00:00Z",
        "items": [
            {
                "product_id": "prod-2",
                "product_name": "Organic Spinach",
                "quantity": 25,
                "unit_price": 3.00,
                "unit_of_measure": "kg",
                "line_total": 75.00,
            },
        ],
    },
]

VISITS: list[Record] = [
    {
        "id": "visit-1",
        "farmer_id": "mock-farmer-1",
        "farmer_name": "Mary Farmer",
        "farm_name": "Green Valley Farm",
        "officer_id": "mock-officer-1",
        "officer_name": "David Officer",
        "visit_type": "verification",
        "status": "scheduled",
        "preferred_date": "2025-10-10",
        "preferred_time": "morning",
        "purpose": "Initial farm verification",
        "location": "Kumasi, Ghana",
        "special_requirements": "",
        "requested_at": "2025-09-28T08:00:00Z",
    },
]

FARMERS: list[Record] = [
    {
        "id": "mock-farmer-1",
        "full_name": "Mary Farmer",
        "phone_number": "+233507654321",
        "farm_name": "Green Valley Farm",
        "farm_size": 5.5,
        "primary_crops": ["Tomatoes", "Lettuce", "Spinach"],
        "experience_years": 8,
        "is_verified": True,
        "location": "Kumasi, Ghana",
        "joined_date": "2024-01-10",
        "total_products": 12,
        "total_orders": 45,
    },
    {
        "id": "mock-farmer-2",
        "full_name": "James Farmer",
        "phone_number": "+233508765432",
        "farm_name": "Organic Harvest",
        "farm_size": 3.2,
        "primary_crops": ["Spinach", "Cabbage", "Carrots"],
        "experience_years": 5,
        "is_verified": False,
        "location": "Accra, Ghana",
        "joined_date": "2024-02-20",
        "total_products": 8,
        "total_orders": 23,
    },
]

# Resource name -> defaults stamped onto entities created via POST.
CREATE_DEFAULTS: dict[str, Record] = {
    "products": {"status": "available", "images": []},
    "orders": {"status": "pending", "payment_status": "pending"},
    "visits": {"status": "requested"},
    "farmers": {"is_verified": False},
}


class FixtureCatalog:
    """Per-session, in-memory copy of the fixture collections.

    Parameters
    ----------
    default_user:
        Key into ``MOCK_USERS`` for the identity answered when no
        identity has been seeded or matched.  Unknown keys fall back to
        ``"buyer"``.
    """

    def __init__(self, default_user: str = "multi_role") -> None:
        self.collections: dict[str, list[Record]] = {
            "products": copy.deepcopy(PRODUCTS),
            "orders": copy.deepcopy(ORDERS),
            "visits": copy.deepcopy(VISITS),
            "farmers": copy.deepcopy(FARMERS),
        }
        self.users: dict[str, Record] = copy.deepcopy(MOCK_USERS)
        self.default_user_key: str = default_user if default_user in self.users else "buyer"

    def collection(self, resource: str) -> list[Record]:
        return self.collections[resource]

    def find(self, resource: str, entity_id: str) -> Optional[Record]:
        for record in self.collections[resource]:
            if record.get("id") == entity_id:
                return record
        return None

    def default_user(self) -> Record:
        return copy.deepcopy(self.users[self.default_user_key])

    def user_by_phone(self, phone_number: Optional[str]) -> Optional[Record]:
        if not phone_number:
            return None
        for record in self.users.values():
            if record.get("phone_number") == phone_number:
                return copy.deepcopy(record)
        return None
