from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional

from library_circulation.core.database import get_db
from library_circulation.models import models
from library_circulation.schemas import schemas
from library_circulation.services.circulation import CirculationService

router = APIRouter()


def get_circulation(request: Request) -> CirculationService:
    return request.app.state.circulation


def _catalog_query(db: Session):
    available = models.Copy.status == models.CopyStatus.AVAILABLE
    return (
        db.query(models.Book,
                 func.count(models.Copy.id).filter(available).label("available_copies"),
                 func.count(models.Copy.id).label("total_copies"))
        .outerjoin(models.Copy, models.Copy.book_id == models.Book.id)
        .group_by(models.Book.id)
    )


def _book_out(row) -> schemas.BookOut:
    book, available, total = row
    return schemas.BookOut(id=book.id, title=book.title, author=book.author,
                           published_year=book.published_year, category=book.category,
                           available_copies=available, total_copies=total)


@router.post("/books/", response_model=schemas.BookOut)
def create_book(book_in: schemas.BookCreate, db: Session = Depends(get_db)):
    book = models.Book(
        title=book_in.title,
        author=book_in.author,
        published_year=book_in.published_year,
        category=book_in.category,
    )
    book.copies = [models.Copy() for _ in range(book_in.copies)]
    db.add(book)
    db.commit()
    return schemas.BookOut(id=book.id, title=book.title, author=book.author,
                           published_year=book.published_year, category=book.category,
                           available_copies=book_in.copies, total_copies=book_in.copies)

@router.get("/books/", response_model=List[schemas.BookOut])
def list_books(q: Optional[str] = Query(None, description="search title or author"),
               category: Optional[str] = None,
               skip: int = Query(0, ge=0), limit: int = Query(20, ge=1, le=100),
               db: Session = Depends(get_db)):
    query = _catalog_query(db)
    if q:
        like_q = f"%{q}%"
        query = query.filter((models.Book.title.ilike(like_q)) | (models.Book.author.ilike(like_q)))
    if category:
        query = query.filter(models.Book.category == category)
    rows = query.order_by(models.Book.title, models.Book.id).offset(skip).limit(limit).all()
    return [_book_out(row) for row in rows]

@router.get("/books/{book_id}", response_model=schemas.BookOut)
def read_book(book_id: int, db: Session = Depends(get_db)):
    row = _catalog_query(db).filter(models.Book.id == book_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Book not found")
    return _book_out(row)

@router.post("/books/{book_id}/copies", response_model=List[schemas.CopyOut])
def add_copies(book_id: int, count: int = Query(1, ge=1, le=100), db: Session = Depends(get_db)):
    book = db.query(models.Book).filter(models.Book.id == book_id).first()
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    copies = [models.Copy(book_id=book.id, status=models.CopyStatus.AVAILABLE) for _ in range(count)]
    db.add_all(copies)
    db.commit()
    return copies

@router.post("/members/", response_model=schemas.MemberOut)
def create_member(member_in: schemas.MemberCreate, db: Session = Depends(get_db)):
    member = models.Member(display_name=member_in.display_name.strip())
    db.add(member)
    db.commit()
    return member

@router.get("/members/{member_id}/loans", response_model=List[schemas.LoanOut])
def list_member_loans(member_id: int, active: Optional[bool] = None, db: Session = Depends(get_db)):
    if not db.query(models.Member.id).filter(models.Member.id == member_id).first():
        raise HTTPException(status_code=404, detail="Member not found")
    query = db.query(models.Loan).filter(models.Loan.member_id == member_id)
    if active is True:
        query = query.filter(models.Loan.returned_at.is_(None))
    elif active is False:
        query = query.filter(models.Loan.returned_at.is_not(None))
    return query.order_by(models.Loan.borrowed_at.desc(), models.Loan.id.desc()).all()

@router.post("/loans/borrow", response_model=schemas.BorrowOut)
def borrow_book(member_id: int, book_id: int,
                circulation: CirculationService = Depends(get_circulation)):
    return circulation.borrow(member_id, book_id)
