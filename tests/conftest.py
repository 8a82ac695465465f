from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from library_circulation.core.config import Settings
from library_circulation.core.database import Base, make_engine, make_session_factory, session_scope
from library_circulation.main import create_app
from library_circulation.models.models import Book, Copy, CopyStatus, Loan, Member
from library_circulation.services.circulation import CirculationService

FIXED_NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def settings(tmp_path):
    return Settings(database_url=f"sqlite:///{tmp_path / 'circulation.db'}", log_level="DEBUG")


@pytest.fixture
def engine(settings):
    engine = make_engine(settings)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def service(session_factory):
    return CirculationService(session_factory, clock=lambda: FIXED_NOW)


@pytest.fixture
def make_book(session_factory):
    def _make(copies=1, title="Dune", author="Frank Herbert"):
        with session_scope(session_factory) as db:
            book = Book(title=title, author=author, published_year=1965, category="Fiction")
            book.copies = [Copy(status=CopyStatus.AVAILABLE) for _ in range(copies)]
            db.add(book)
            db.flush()
            return book.id
    return _make


@pytest.fixture
def make_member(session_factory):
    def _make(name="Member"):
        with session_scope(session_factory) as db:
            member = Member(display_name=name)
            db.add(member)
            db.flush()
            return member.id
    return _make


@pytest.fixture
def snapshot(session_factory):
    """Current (copy id -> status, list of loan tuples) for before/after comparisons."""
    def _snapshot():
        with session_scope(session_factory) as db:
            copies = {c.id: c.status for c in db.query(Copy).order_by(Copy.id)}
            loans = [(l.id, l.member_id, l.copy_id, l.returned_at)
                     for l in db.query(Loan).order_by(Loan.id)]
        return copies, loans
    return _snapshot


@pytest.fixture
def check_invariants(session_factory):
    def _check():
        with session_scope(session_factory) as db:
            for copy in db.query(Copy):
                active = [l for l in copy.loans if l.returned_at is None]
                assert len(active) <= 1
                assert (copy.status == CopyStatus.UNAVAILABLE) == (len(active) == 1)
            for member in db.query(Member):
                assert len([l for l in member.loans if l.returned_at is None]) <= 3
    return _check


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as client:
        yield client
