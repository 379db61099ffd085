import logging

import config
import database
from auth import hash_password
from schemas import Product, User

logger = logging.getLogger(__name__)

SAMPLE_PRODUCTS = [
    {"name": "Rice", "category": "Essentials", "price": 90, "unit": "1 kg packet", "description": "Basmati rice"},
    {"name": "Milk", "category": "Dairy", "price": 60, "unit": "1 litre", "description": "Fresh milk"},
]


def seed_products() -> int:
    db = database.require_db()
    if db["product"].count_documents({}) > 0:
        return 0
    for sample in SAMPLE_PRODUCTS:
        database.create_document("product", Product(**sample))
    logger.info("Seeded %d sample products", len(SAMPLE_PRODUCTS))
    return len(SAMPLE_PRODUCTS)


def seed_admin() -> bool:
    db = database.require_db()
    if db["user"].count_documents({"role": "admin"}) > 0:
        return False
    admin = User(
        name="Admin",
        email=config.ADMIN_EMAIL,
        password_hash=hash_password(config.ADMIN_PASSWORD),
        role="admin",
    )
    database.create_document("user", admin)
    logger.info("Created default admin %s", config.ADMIN_EMAIL)
    return True


def run() -> None:
    database.ensure_indexes()
    seed_products()
    seed_admin()
