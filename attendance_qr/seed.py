from __future__ import annotations

import logging

from sqlalchemy import select

from .database import Base, engine, SessionLocal
from .models import User


logger = logging.getLogger("seed")

DEFAULT_USERS = [
    ("admin", "Administrator", "admin"),
    ("front.desk", "Front Desk", "employee"),
]


def upsert_defaults() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        for username, full_name, role in DEFAULT_USERS:
            exists = db.execute(select(User).where(User.username == username)).scalar_one_or_none()
            if not exists:
                db.add(User(username=username, full_name=full_name, role=role))
        db.commit()
    finally:
        db.close()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    upsert_defaults()
    logger.info("Seed complete.")


if __name__ == "__main__":
    main()
