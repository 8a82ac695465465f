import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.types import TypeDecorator
from sqlalchemy.orm import relationship

from library_circulation.core.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores UTC and hands back aware datetimes, also on backends without zone support."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            value = value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)
        return value


class CopyStatus(str, enum.Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class Book(Base):
    __tablename__ = "books"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False, index=True)
    author = Column(String, nullable=False, index=True)
    published_year = Column(Integer, nullable=True)
    category = Column(String, nullable=True, index=True)
    created_at = Column(UTCDateTime(), default=utcnow)
    copies = relationship("Copy", back_populates="book", order_by="Copy.id")

Index('ix_books_title_author', Book.title, Book.author)

class Copy(Base):
    __tablename__ = "copies"
    id = Column(Integer, primary_key=True, index=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False, index=True)
    status = Column(
        Enum(CopyStatus, name="copy_status", native_enum=False,
             values_callable=lambda statuses: [s.value for s in statuses]),
        nullable=False, default=CopyStatus.AVAILABLE,
    )
    book = relationship("Book", back_populates="copies")
    loans = relationship("Loan", back_populates="copy")

Index('ix_copies_book_status', Copy.book_id, Copy.status)

class Member(Base):
    __tablename__ = "members"
    id = Column(Integer, primary_key=True, index=True)
    display_name = Column(String, nullable=False, index=True)
    joined_at = Column(UTCDateTime(), default=utcnow)
    loans = relationship("Loan", back_populates="member")

class Loan(Base):
    __tablename__ = "loans"
    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    copy_id = Column(Integer, ForeignKey("copies.id"), nullable=False, index=True)
    borrowed_at = Column(UTCDateTime(), nullable=False)
    due_at = Column(UTCDateTime(), nullable=False)
    returned_at = Column(UTCDateTime(), nullable=True)
    member = relationship("Member", back_populates="loans")
    copy = relationship("Copy", back_populates="loans")

    @property
    def active(self):
        return self.returned_at is None

# one active loan per copy
Index(
    'uq_loans_active_copy', Loan.copy_id, unique=True,
    sqlite_where=Loan.returned_at.is_(None),
    postgresql_where=Loan.returned_at.is_(None),
)
Index('ix_loans_member_active', Loan.member_id, Loan.returned_at)
