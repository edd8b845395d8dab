"""Database connection and session management."""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Any, Dict, Generator
import logging

from config import DATABASE_URL, ADMIN_EMAIL, ADMIN_PASSWORD
from models import Base, Product, User
from auth import hash_password

logger = logging.getLogger(__name__)


def engine_options(url: str) -> Dict[str, Any]:
    """Connection pool settings for the given database URL."""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,  # Verify connections before use
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_timeout": 30,
    }


engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))

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


SEED_PRODUCTS = [
    {
        "name": "Intel Core i7-14700K", "category": "CPU", "brand": "Intel",
        "price": 24995.0, "stock": 10, "badge": "hot",
        "specs": "20 cores, 28 threads, up to 5.6 GHz",
        "full_specs": [{"label": "Socket", "value": "LGA1700"}, {"label": "TDP", "value": "125W"}],
    },
    {
        "name": "AMD Ryzen 7 7800X3D", "category": "CPU", "brand": "AMD",
        "price": 23495.0, "sale_price": 21995.0, "stock": 8, "badge": "sale",
        "specs": "8 cores, 16 threads, 96MB L3 cache",
        "full_specs": [{"label": "Socket", "value": "AM5"}, {"label": "TDP", "value": "120W"}],
    },
    {
        "name": "NVIDIA GeForce RTX 4070 Super", "category": "GPU", "brand": "NVIDIA",
        "price": 38950.0, "stock": 5, "badge": "featured",
        "specs": "12GB GDDR6X",
        "full_specs": [{"label": "VRAM", "value": "12GB"}, {"label": "Boost Clock", "value": "2475 MHz"}],
    },
    {
        "name": "Corsair Vengeance 32GB DDR5-6000", "category": "RAM", "brand": "Corsair",
        "price": 6495.0, "stock": 25,
        "specs": "2x16GB, CL30",
    },
    {
        "name": "Samsung 990 PRO 2TB NVMe SSD", "category": "Storage", "brand": "Samsung",
        "price": 10250.0, "stock": 15,
        "specs": "PCIe 4.0, up to 7450 MB/s",
    },
    {
        "name": "ASUS ROG Strix B650E-F", "category": "Motherboard", "brand": "ASUS",
        "price": 16995.0, "stock": 6,
        "specs": "AM5, ATX, Wi-Fi 6E",
    },
    {
        "name": "Seasonic Focus GX-850", "category": "PSU", "brand": "Seasonic",
        "price": 7850.0, "stock": 12,
        "specs": "850W, 80+ Gold, fully modular",
    },
    {
        "name": "LG UltraGear 27GR95QE", "category": "Monitor", "brand": "LG",
        "price": 49995.0, "stock": 3,
        "specs": "27\" OLED, 1440p, 240Hz",
    },
]


def seed(db: Session) -> None:
    """Insert the starter catalog and the administrator account when missing."""
    if db.query(Product).count() == 0:
        db.add_all([Product(**data) for data in SEED_PRODUCTS])
        logger.info("Seeded database with sample products", extra={
            "product_count": len(SEED_PRODUCTS)
        })

    if db.query(User).filter(User.email == ADMIN_EMAIL).first() is None:
        db.add(User(
            name="Administrator",
            email=ADMIN_EMAIL,
            password_hash=hash_password(ADMIN_PASSWORD),
            role="admin"
        ))
        logger.info("Seeded administrator account", extra={"email": ADMIN_EMAIL})

    db.commit()


def init_db(bind: Engine = None) -> None:
    """Initialize database tables and seed data."""
    bind = bind or engine
    Base.metadata.create_all(bind=bind)

    db = Session(bind=bind)
    try:
        seed(db)
    finally:
        db.close()
