import asyncio
import itertools
import os
import uuid
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("DB_NAME", "ratings_test")
os.environ["ID_FORMAT"] = "uuid"

from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from app.db.session import ensure_indexes, get_db
from app.services.auth import create_access_token
from app.services.identifiers import is_valid_uuid
from app.services.rating import RatingService
from server import app

IDS = SimpleNamespace(
    learner=str(uuid.uuid4()),
    other_learner=str(uuid.uuid4()),
    teacher=str(uuid.uuid4()),
    new_teacher=str(uuid.uuid4()),
    listing=str(uuid.uuid4()),
    other_listing=str(uuid.uuid4()),
)

USERS = [
    {"id": IDS.learner, "name": "Alice Learner", "email": "alice@example.com",
     "role": "learner", "profile_picture": "alice.png"},
    {"id": IDS.other_learner, "name": "Bob Learner", "email": "bob@example.com",
     "role": "learner", "profile_picture": ""},
    {"id": IDS.teacher, "name": "Tom Teacher", "email": "tom@example.com",
     "role": "teacher", "profile_picture": "tom.png"},
    {"id": IDS.new_teacher, "name": "Nina Teacher", "email": "nina@example.com",
     "role": "teacher", "profile_picture": ""},
]

LISTINGS = [
    {"id": IDS.listing, "title": "Intro to Guitar", "description": "Chords and strumming",
     "fee": 20, "category": "music", "teacher_id": IDS.teacher},
    {"id": IDS.other_listing, "title": "Sourdough Basics", "description": "Starter to loaf",
     "fee": 15, "category": "cooking", "teacher_id": IDS.teacher},
]

SESSIONS = [
    {"id": str(uuid.uuid4()), "learner_id": IDS.learner, "teacher_id": IDS.teacher,
     "listing_id": IDS.listing, "status": "completed"},
    {"id": str(uuid.uuid4()), "learner_id": IDS.other_learner, "teacher_id": IDS.teacher,
     "listing_id": IDS.listing, "status": "scheduled"},
]


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def ids():
    return IDS


@pytest.fixture
def mock_db():
    db = AsyncMongoMockClient()["ratings_test"]

    async def seed():
        await ensure_indexes(db)
        await db.users.insert_many([dict(u) for u in USERS])
        await db.skill_listings.insert_many([dict(listing) for listing in LISTINGS])
        await db.sessions.insert_many([dict(s) for s in SESSIONS])

    run(seed())
    return db


@pytest.fixture
def service(mock_db):
    return RatingService(mock_db, is_valid_uuid)


@pytest.fixture
def insert_ratings(mock_db):
    """Insert ratings straight into the store.

    Every inserted rating is newer than all ratings inserted before it.
    """
    start = datetime(2024, 1, 1, 12, 0, 0)
    minutes = itertools.count()

    def insert(scores, teacher_id=IDS.teacher, listing_id=IDS.listing, learner_ids=None):
        docs = []
        for i, score in enumerate(scores):
            docs.append({
                "id": str(uuid.uuid4()),
                "learner_id": learner_ids[i] if learner_ids else str(uuid.uuid4()),
                "teacher_id": teacher_id,
                "listing_id": listing_id,
                "score": score,
                "created_at": start + timedelta(minutes=next(minutes)),
                "updated_at": None,
            })
        if docs:
            run(mock_db.ratings.insert_many([dict(d) for d in docs]))
        return docs
    return insert


@pytest.fixture
def client(mock_db):
    app.dependency_overrides[get_db] = lambda: mock_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def headers(user_id):
        return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}
    return headers
