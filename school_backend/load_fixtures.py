"""Load documents from a JSON fixture file into the document store.

Usage:
    python -m school_backend.load_fixtures fixtures.json

The file maps document paths to their fields. References and timestamps use
the same tagged form the store writes, e.g. ``{"$ref": "school/s1/classes/A"}``.
"""
import json
import sys

from school_backend.database import SessionLocal, engine
from school_backend.document_store import DocumentStore, decode_value
from school_backend.models import document


def load_fixtures(store: DocumentStore, fixtures: dict) -> int:
    batch = store.batch()
    for path, fields in fixtures.items():
        if not isinstance(fields, dict):
            raise ValueError(f'Fixture for {path} must be an object.')
        batch.set(path, decode_value(fields))
    batch.commit()
    return len(batch)


def main() -> None:
    if len(sys.argv) != 2:
        print('Usage: python -m school_backend.load_fixtures FILE', file=sys.stderr)
        sys.exit(2)

    with open(sys.argv[1], encoding='utf-8') as fixture_file:
        fixtures = json.load(fixture_file)

    document.Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        count = load_fixtures(DocumentStore(db), fixtures)
    finally:
        db.close()
    print(f'Loaded {count} documents.')


if __name__ == '__main__':
    main()
