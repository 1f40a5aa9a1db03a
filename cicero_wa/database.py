from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from cicero_wa.config import settings

engine = create_engine(settings.database_url, pool_pre_ping=True, echo=settings.debug)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
