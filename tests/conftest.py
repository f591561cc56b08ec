import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('CREDENTIAL_SCHEME', 'plaintext')

from school_backend.database import Base  # noqa: E402
from school_backend.document_store import DocumentStore  # noqa: E402
from school_backend.models.document import Document  # noqa: E402


@pytest.fixture
def document_db():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=[Document.__table__])

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=[Document.__table__])
        engine.dispose()


@pytest.fixture
def store(document_db) -> DocumentStore:
    return DocumentStore(document_db)


@pytest.fixture
def seed(store):
    def _seed(path: str, fields: dict) -> None:
        store.batch().set(path, fields).commit()

    return _seed


@pytest.fixture
def student(seed) -> dict:
    fields = {
        'email': 'student@school.test',
        'password_hash': 'secret-pass',
        'user_role': 'student',
        'school_id': 'school1',
        'is_new': True,
        'enrolled_classes': [],
    }
    seed('user/student1', fields)
    return {'id': 'student1', **fields}


@pytest.fixture
def active_session(seed, student) -> str:
    token = 'token-student1'
    seed(f'sessions/{token}', {
        'userId': student['id'],
        'loginTime': datetime.now(timezone.utc),
        'expiresAt': datetime.now(timezone.utc) + timedelta(hours=24),
        'isActive': True,
    })
    return token
