"""
Seed an admin, a test customer and the starter service catalog.

    python -m carwash.seed

Safe to run repeatedly; existing rows are left as they are.
"""

import asyncio

from loguru import logger
from tortoise import Tortoise

from carwash import settings
from carwash.log import setup_logging
from carwash.models import Role, Service, User
from carwash.security import hash_password

USERS = (
    {
        "name": "Admin",
        "email": "admin@carwash.com",
        "password": "admin123",
        "phone": "081234567890",
        "role": Role.ADMIN,
    },
    {
        "name": "Test User",
        "email": "user@test.com",
        "password": "user123",
        "phone": "081234567891",
        "role": Role.USER,
    },
)

SERVICES = (
    {
        "name": "Cuci Mobil Reguler",
        "description": "Cuci eksterior dan vakum interior standar",
        "price": 25000,
        "duration": 30,
    },
    {
        "name": "Cuci Mobil Premium",
        "description": "Cuci lengkap, wax, semir ban dan pembersihan interior",
        "price": 50000,
        "duration": 60,
    },
    {
        "name": "Cuci Motor",
        "description": "Cuci motor lengkap termasuk rantai",
        "price": 15000,
        "duration": 20,
    },
    {
        "name": "Detailing Interior",
        "description": "Pembersihan mendalam jok, dashboard dan karpet",
        "price": 150000,
        "duration": 120,
    },
)


async def seed() -> None:
    for data in USERS:
        fields = dict(data)
        email = fields.pop("email")
        fields["password_hash"] = hash_password(fields.pop("password"))
        _, created = await User.get_or_create(email=email, defaults=fields)
        if created:
            logger.info("Seeded user {}", email)

    for data in SERVICES:
        fields = dict(data)
        name = fields.pop("name")
        _, created = await Service.get_or_create(name=name, defaults=fields)
        if created:
            logger.info("Seeded service {}", name)


async def main() -> None:
    setup_logging()
    await Tortoise.init(config=settings.TORTOISE_ORM)
    await Tortoise.generate_schemas(safe=True)
    try:
        await seed()
    finally:
        await Tortoise.close_connections()


if __name__ == "__main__":
    asyncio.run(main())
