"""Small provisioning utilities: create tables and seed demo data."""
import argparse
import logging
from dataclasses import replace

from library_circulation.core.config import Settings, configure_logging
from library_circulation.core.database import Base, make_engine, make_session_factory, session_scope
from library_circulation.models.models import Book, Copy, Member

logger = logging.getLogger("elibrary.cli")

SEED_MEMBERS = ["Alice", "Bob"]
SEED_BOOKS = [
    # title, author, year, category, copies
    ("Data Engineering with Python", "J. Reader", 2020, "Engineering", 3),
    ("Designing Data-Intensive Applications", "Martin Kleppmann", 2017, "Engineering", 2),
]


def seed(session_factory) -> bool:
    """Insert demo members and books unless the tables already hold rows."""
    with session_scope(session_factory) as db:
        seeded = False
        if db.query(Member).count() == 0:
            db.add_all([Member(display_name=name) for name in SEED_MEMBERS])
            seeded = True
        if db.query(Book).count() == 0:
            for title, author, year, category, copies in SEED_BOOKS:
                book = Book(title=title, author=author, published_year=year, category=category)
                book.copies = [Copy() for _ in range(copies)]
                db.add(book)
            seeded = True
    return seeded


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Library circulation utilities')
    parser.add_argument('--initdb', action='store_true', help='Create tables')
    parser.add_argument('--seed', action='store_true', help='Seed sample data')
    parser.add_argument('--db', help='Database URL (defaults to $ELIB_DB)')
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.db:
        settings = replace(settings, database_url=args.db)
    configure_logging(settings)
    engine = make_engine(settings)
    try:
        if args.initdb or args.seed:
            Base.metadata.create_all(bind=engine)
            logger.info('Tables ready at %s', engine.url)
        if args.seed:
            if seed(make_session_factory(engine)):
                logger.info('Seeded sample data')
            else:
                logger.info('Sample data already present')
    finally:
        engine.dispose()
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
