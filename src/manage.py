"""
Management commands for the cattery API.

    cattery-manage init-db
    cattery-manage create-user alice --password s3cret-pass --role editor
    cattery-manage seed
    cattery-manage authorize-drive
"""

import argparse
import asyncio
import logging
import sys
from datetime import date

from sqlalchemy.future import select

from auth.service import create_user, get_user_by_username
from cats.models import Cat
from config import Settings
from database import create_database, create_engine, create_sessionmaker
from exceptions import AppError
from photos.storage import authorize

logger = logging.getLogger("manage")

BREEDERS = [
    dict(name="Luna", gender="female", birth_date=date(2021, 3, 10),
         sire_name="Ch. Silver Moon", dam_name="Lady Bella"),
    dict(name="Simba", gender="male", birth_date=date(2020, 7, 22),
         sire_name="King Leo", dam_name="Queen Zara"),
    dict(name="Nala", gender="female", birth_date=date(2021, 5, 18),
         sire_name="Golden Star", dam_name="Princess Mia"),
]

# (name, gender, birth date, status, father, mother)
KITTENS = [
    ("Milo", "male", date(2024, 6, 1), "available", "Simba", "Luna"),
    ("Cleo", "female", date(2024, 6, 1), "reserved", "Simba", "Luna"),
    ("Oreo", "male", date(2024, 6, 10), "available", "Simba", "Nala"),
    ("Misty", "female", date(2024, 6, 10), "sold", "Simba", "Nala"),
    ("Leo", "male", date(2024, 7, 5), "available", "Simba", "Luna"),
]


async def _find_or_create_cat(db, name: str, **defaults) -> Cat:
    result = await db.execute(select(Cat).where(Cat.name == name))
    cat = result.scalars().first()
    if cat is None:
        cat = Cat(name=name, **defaults)
        db.add(cat)
        await db.flush()
    return cat


async def init_db(settings: Settings) -> None:
    engine = create_engine(settings)
    try:
        await create_database(engine)
    finally:
        await engine.dispose()
    logger.info("Tables created")


async def add_user(settings: Settings, username: str, password: str, role: str) -> None:
    engine = create_engine(settings)
    try:
        async with create_sessionmaker(engine)() as db:
            await create_user(db, settings, username, password, role)
    finally:
        await engine.dispose()


async def seed(settings: Settings) -> None:
    """
    Fill the database with a default admin and a few breeders and kittens.
    """
    engine = create_engine(settings)
    try:
        await create_database(engine)
        async with create_sessionmaker(engine)() as db:
            if await get_user_by_username(db, "admin") is None:
                await create_user(db, settings, "admin", "admin123", "admin")

            breeders = {}
            for fields in BREEDERS:
                fields = dict(fields)
                name = fields.pop("name")
                breeders[name] = await _find_or_create_cat(
                    db, name, type="breeder", status="available", **fields
                )

            for name, gender, birth_date, status, father, mother in KITTENS:
                await _find_or_create_cat(
                    db,
                    name,
                    type="kitten",
                    gender=gender,
                    birth_date=birth_date,
                    status=status,
                    father_id=breeders[father].id,
                    mother_id=breeders[mother].id,
                )
            await db.commit()
    finally:
        await engine.dispose()
    logger.info("Dev seed done")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cattery-manage", description=__doc__.splitlines()[1])
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="create the database tables")

    user = commands.add_parser("create-user", help="add a user who can log in")
    user.add_argument("username")
    user.add_argument("--password", required=True)
    user.add_argument("--role", default="admin", choices=["admin", "editor"])

    commands.add_parser("seed", help="load development data")

    drive = commands.add_parser("authorize-drive", help="authorize access to Google Drive")
    drive.add_argument("--port", type=int, default=8080)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(message)s")

    try:
        if args.command == "init-db":
            asyncio.run(init_db(settings))
        elif args.command == "create-user":
            asyncio.run(add_user(settings, args.username, args.password, args.role))
        elif args.command == "seed":
            asyncio.run(seed(settings))
        elif args.command == "authorize-drive":
            path = authorize(settings, port=args.port)
            logger.info("Google Drive credentials saved to %s", path)
    except AppError as e:
        logger.error("%s", e.message)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
