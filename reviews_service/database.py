from sqlalchemy.orm import declarative_base

from common.database import SessionLocal, engine, get_db  # noqa: F401

# Tables of this service only (the reviews table).
# create_all/drop_all on it leave the other services alone.
Base = declarative_base()
