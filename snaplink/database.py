from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from snaplink.config import settings
import os

TESTING = os.environ.get("TESTING", "False") == "True"

if TESTING:
    DATABASE_URL = "sqlite:///./test.db"
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False, "timeout": 30}
    )
else:
    DATABASE_URL = settings.DATABASE_URL
    connect_args = {}
    if DATABASE_URL.startswith("postgresql"):
        # Ограничивает время выполнения агрегирующих запросов
        connect_args["options"] = f"-c statement_timeout={settings.QUERY_TIMEOUT_MS}"
    engine = create_engine(
        DATABASE_URL,
        pool_size=20,
        max_overflow=20,
        pool_timeout=60,
        pool_recycle=3600,
        connect_args=connect_args
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
