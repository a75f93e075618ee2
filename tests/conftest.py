import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from contact_repository import ContactRepository  # noqa: E402
from db_models import Contact, LinkPrecedence  # noqa: E402
from db_setup import init_db  # noqa: E402
from identify_service import IdentifyService  # noqa: E402

BASE_TIME = datetime(2023, 4, 1, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "contacts.db")
    init_db(path)
    return path


@pytest.fixture
def repository(db_path):
    return ContactRepository(db_path)


@pytest.fixture
def service(repository):
    return IdentifyService(repository)


@pytest.fixture
def add_contact(repository):
    """Insert a contact directly, `minutes` after BASE_TIME."""

    def _add(email=None, phone=None, linked_id=None, minutes=0):
        created = BASE_TIME + timedelta(minutes=minutes)
        return repository.create(Contact(
            email=email,
            phoneNumber=phone,
            linkedId=linked_id,
            linkPrecedence=LinkPrecedence.SECONDARY if linked_id else LinkPrecedence.PRIMARY,
            createdAt=created,
            updatedAt=created,
        ))

    return _add
