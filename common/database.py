# common/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .config import DATABASE_URL

# TestClient runs handlers on worker threads; sqlite connections must be shareable
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    Yield a SQLAlchemy session for the duration of one request.

    Used as a FastAPI dependency by every service; the session is closed
    once the response has been sent.

    Yields
    ------
    Session
        Session bound to the shared engine.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
