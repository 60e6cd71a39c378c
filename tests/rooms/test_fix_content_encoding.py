import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

import fix_content_encoding
from rooms_service.database import Base, SessionLocal, engine
from rooms_service.models import EscapeRoom


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


def seed(db):
    db.add_all(
        [
            EscapeRoom(name="Vault", description="Donâ€™t miss it", post_content="Clean text"),
            EscapeRoom(name="Crypt", description="Spooky", post_content="CafÃ© upstairs"),
            EscapeRoom(name="Lab", description="Fine", post_content=None),
        ]
    )
    db.commit()


def test_fix_room_reports_only_broken_fields():
    room = EscapeRoom(name="Vault", description="Donâ€™t miss it", post_content="Clean text")
    assert fix_content_encoding.fix_room(room) == {"description": "Don't miss it"}


def test_fix_rooms_updates_in_batches(db):
    seed(db)

    stats = fix_content_encoding.fix_rooms(db, batch_size=2)
    assert stats == {"processed": 3, "fixed": 2, "errors": 0}

    rooms = {r.name: r for r in db.query(EscapeRoom).all()}
    assert rooms["Vault"].description == "Don't miss it"
    assert rooms["Crypt"].post_content == "Café upstairs"


def test_dry_run_leaves_rows_untouched(db):
    seed(db)

    stats = fix_content_encoding.fix_rooms(db, dry_run=True)
    assert stats["fixed"] == 2

    vault = db.query(EscapeRoom).filter(EscapeRoom.name == "Vault").first()
    assert vault.description == "Donâ€™t miss it"
