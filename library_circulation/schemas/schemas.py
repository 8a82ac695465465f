from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Optional

from library_circulation.models.models import CopyStatus

class BookBase(BaseModel):
    title: str = Field(min_length=1)
    author: str = Field(min_length=1)
    published_year: Optional[int] = Field(default=None, ge=0, le=2100)
    category: Optional[str] = None

    @field_validator('title', 'author')
    @classmethod
    def strip_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v

class BookCreate(BookBase):
    copies: int = Field(default=1, ge=0)

class BookOut(BookBase):
    id: int
    available_copies: int
    total_copies: int

class CopyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    book_id: int
    status: CopyStatus

class MemberCreate(BaseModel):
    display_name: str = Field(min_length=1)

class MemberOut(MemberCreate):
    model_config = ConfigDict(from_attributes=True)
    id: int
    joined_at: datetime

class LoanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    member_id: int
    copy_id: int
    borrowed_at: datetime
    due_at: datetime
    returned_at: Optional[datetime] = None
    active: bool

class BorrowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    loan_id: int
    copy_id: int
    borrowed_at: datetime
    due_at: datetime
