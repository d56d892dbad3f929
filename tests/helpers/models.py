"""Sample book-selling domain used by unit tests and benchmarks."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, ClassVar, Iterable, List, Optional

from pydantic import Field
from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from crudservices import (
    READ_ONLY,
    LinkedDto,
    StatusGeneric,
    create_operation,
    update_operation,
)


class Base(DeclarativeBase):
    pass


class Book(Base):
    __tablename__ = "books"

    book_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    published_on: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    publisher: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    actual_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    promotional_text: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    soft_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    reviews: Mapped[List["Review"]] = relationship(
        back_populates="book", cascade="all, delete-orphan"
    )
    author_links: Mapped[List["BookAuthor"]] = relationship(
        back_populates="book", cascade="all, delete-orphan"
    )

    @classmethod
    @create_operation()
    def create_book(
        cls,
        title: str,
        published_on: datetime,
        price: float,
        description: Optional[str] = None,
        publisher: Optional[str] = None,
    ) -> StatusGeneric:
        status = StatusGeneric()
        if not title or not title.strip():
            status.add_error("The book title cannot be empty.", "title")
            return status
        status.result = cls(
            title=title.strip(),
            published_on=published_on,
            price=price,
            description=description,
            publisher=publisher,
        )
        return status

    @update_operation()
    def update_published_on(self, published_on: datetime) -> None:
        self.published_on = published_on

    @update_operation()
    def add_promotion(self, actual_price: float, promotional_text: str) -> StatusGeneric:
        status = StatusGeneric()
        if not promotional_text:
            status.add_error(
                "You must provide some text to go with the promotion.",
                "promotional_text",
            )
            return status
        self.actual_price = actual_price
        self.promotional_text = promotional_text
        status.message = f"The book's new price is ${actual_price:.2f}."
        return status

    @update_operation()
    def remove_promotion(self) -> None:
        self.actual_price = None
        self.promotional_text = None

    def validate_entity(self) -> Iterable[str]:
        if self.price is not None and self.price < 0:
            yield "The price cannot be negative."


class Author(Base):
    __tablename__ = "authors"

    author_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    book_links: Mapped[List["BookAuthor"]] = relationship(back_populates="author")


class BookAuthor(Base):
    __tablename__ = "book_authors"

    book_id: Mapped[int] = mapped_column(ForeignKey("books.book_id"), primary_key=True)
    author_id: Mapped[int] = mapped_column(
        ForeignKey("authors.author_id"), primary_key=True
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False)

    book: Mapped[Book] = relationship(back_populates="author_links")
    author: Mapped[Author] = relationship(back_populates="book_links")


class Review(Base):
    __tablename__ = "reviews"

    review_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    voter_name: Mapped[str] = mapped_column(String(100), nullable=False)
    num_stars: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    book_id: Mapped[int] = mapped_column(ForeignKey("books.book_id"), nullable=False)

    book: Mapped[Book] = relationship(back_populates="reviews")


class SoftDelEntity(Base):
    __tablename__ = "soft_del_entities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    soft_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Color(enum.Enum):
    RED = "red"
    GREEN = "green"


class Paint(Base):
    __tablename__ = "paints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    color: Mapped[Color] = mapped_column(Enum(Color), nullable=False)
    code: Mapped[str] = mapped_column(String(4), nullable=False)


def not_soft_deleted(entity_type: type):
    return entity_type.soft_deleted.is_(False)


# ----------------------------------------------------------------------
# DTOs
# ----------------------------------------------------------------------
class ChangePubDateDto(LinkedDto):
    linked_entity: ClassVar[type] = Book

    book_id: int
    published_on: datetime
    title: Annotated[Optional[str], READ_ONLY] = None


class AddPromotionDto(LinkedDto):
    linked_entity: ClassVar[type] = Book

    book_id: int
    actual_price: float = Field(ge=0)
    promotional_text: str = ""


class ChangePriceDto(LinkedDto):
    linked_entity: ClassVar[type] = Book

    book_id: int
    price: float


class ChangeTitleDto(LinkedDto):
    linked_entity: ClassVar[type] = Book

    book_id: int
    title: Optional[str]


class CreateBookDto(LinkedDto):
    linked_entity: ClassVar[type] = Book

    book_id: Optional[int] = None
    title: str
    published_on: datetime
    price: float
    publisher: Optional[str] = None


class BookTitleDto(LinkedDto):
    linked_entity: ClassVar[type] = Book

    book_id: int
    title: str
    price: float


class BookAuthorOrderDto(LinkedDto):
    linked_entity: ClassVar[type] = BookAuthor

    book_id: int
    author_id: int
    order: int
