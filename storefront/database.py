"""Database connection and session management."""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from storefront.config import ADMIN_EMAIL, ADMIN_PASSWORD, DATABASE_URL, SEED_DATA
from storefront.models import Base, Product, Role, User

logger = logging.getLogger(__name__)

SEED_PRODUCTS = [
    {
        "name": "Mango Banana Boost",
        "price": 149,
        "stock": 50,
        "image_url": "https://images.pexels.com/photos/1640777/pexels-photo-1640777.jpeg",
        "description": "A tropical explosion of sweet mango and creamy banana to boost your day.",
        "is_featured": True,
    },
    {
        "name": "Green Detox Smoothie",
        "price": 159,
        "stock": 40,
        "image_url": "https://images.pexels.com/photos/7187426/pexels-photo-7187426.jpeg",
        "description": "Cleansing greens with a hint of citrus for the ultimate detox.",
        "is_featured": False,
    },
    {
        "name": "Strawberry Yogurt Bliss",
        "price": 169,
        "stock": 45,
        "image_url": "https://images.pexels.com/photos/461198/pexels-photo-461198.jpeg",
        "description": "Creamy yogurt blended with fresh strawberries for a blissful treat.",
        "is_featured": True,
    },
    {
        "name": "Berry Antioxidant Blast",
        "price": 169,
        "stock": 40,
        "image_url": "https://images.pexels.com/photos/414555/pexels-photo-414555.jpeg",
        "description": "Loaded with berries and antioxidants to keep you healthy and glowing.",
        "is_featured": False,
    },
    {
        "name": "Tropical Mango Pineapple",
        "price": 149,
        "stock": 50,
        "image_url": "https://images.pexels.com/photos/1346347/pexels-photo-1346347.jpeg",
        "description": "Vacation in a cup! Sweet mango and tangy pineapple.",
        "is_featured": False,
    },
    {
        "name": "Avocado Matcha Smoothie",
        "price": 179,
        "stock": 30,
        "image_url": "https://images.pexels.com/photos/5945754/pexels-photo-5945754.jpeg",
        "description": "Rich avocado meets earthy matcha for a smooth, energizing drink.",
        "is_featured": False,
    },
    {
        "name": "Chocolate Banana Protein Shake",
        "price": 189,
        "stock": 35,
        "image_url": "https://images.pexels.com/photos/775031/pexels-photo-775031.jpeg",
        "description": "Protein-packed chocolate goodness with a banana base.",
        "is_featured": False,
    },
]


def _engine_options(url: str) -> Dict[str, Any]:
    if make_url(url).get_backend_name() == "sqlite":
        # Writers wait on each other instead of failing with "database is locked"
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,  # Verify connections before use
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_timeout": 30,  # Wait max 30 seconds for a connection
    }


# Process-wide engine and connection pool
engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session.

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Unit of work for a mutating operation.

    Commits when the block exits normally and rolls back on any exception,
    which is re-raised to the caller.
    """
    try:
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise


def seed_data(db: Session) -> None:
    """Insert the default catalog and admin account when missing."""
    from storefront.auth import hash_password

    with transaction(db):
        if db.query(Product).count() == 0:
            db.add_all([Product(**data) for data in SEED_PRODUCTS])
            logger.info("Seeded database with smoothie catalog", extra={
                "product_count": len(SEED_PRODUCTS)
            })

        if db.query(User).filter(User.email == ADMIN_EMAIL).first() is None:
            db.add(User(
                email=ADMIN_EMAIL,
                name="Administrator",
                password=hash_password(ADMIN_PASSWORD),
                role=Role.ADMIN.value
            ))
            logger.info("Seeded admin account", extra={"email": ADMIN_EMAIL})


def init_db() -> None:
    """Initialize database tables and seed data."""
    Base.metadata.create_all(bind=engine)

    if not SEED_DATA:
        return

    db = SessionLocal()
    try:
        seed_data(db)
    finally:
        db.close()
