"""In-memory database setup and seed data for the sample book domain."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from crudservices import CrudServicesConfig, QueryFilters, setup_entities
from crudservices.infra.db import create_sqlite_in_memory_engine
from tests.helpers.models import (
    Author,
    Base,
    Book,
    BookAuthor,
    Paint,
    Review,
    SoftDelEntity,
    not_soft_deleted,
)

SAMPLE_ENTITIES = (Book, Author, BookAuthor, Review, SoftDelEntity, Paint)


def create_test_engine() -> Engine:
    """Fresh in-memory SQLite database with the sample schema created."""

    engine = create_sqlite_in_memory_engine()
    Base.metadata.create_all(engine)
    return engine


def seed_database_four_books(session: Session) -> List[Book]:
    """Insert the four classic sample books; book 4 carries reviews and a promotion."""

    martin_fowler = Author(name="Martin Fowler")
    eric_evans = Author(name="Eric Evans")
    future_person = Author(name="Future Person")

    books = [
        _book(
            "Refactoring",
            "Improving the design of existing code",
            datetime(1999, 7, 8),
            40.0,
            martin_fowler,
        ),
        _book(
            "Patterns of Enterprise Application Architecture",
            "Written in direct response to the stiff challenges",
            datetime(2002, 11, 15),
            53.0,
            martin_fowler,
        ),
        _book(
            "Domain-Driven Design",
            "Linking business needs to software design",
            datetime(2003, 8, 30),
            56.0,
            eric_evans,
        ),
        _book(
            "Quantum Networking",
            "Entangled quantum networking provides faster-than-light data communications",
            datetime(2057, 1, 1),
            220.0,
            future_person,
        ),
    ]
    quantum = books[-1]
    quantum.publisher = "Future Publishing"
    quantum.actual_price = 219.0
    quantum.promotional_text = "Save $1 if you order 40 years ahead!"
    quantum.reviews = [
        Review(
            voter_name="Jon P Smith",
            num_stars=5,
            comment="I look forward to reading this book, if I am still alive!",
        ),
        Review(
            voter_name="Albert Einstein",
            num_stars=5,
            comment="I write this book was very well written",
        ),
    ]
    session.add_all(books)
    session.commit()
    return books


def add_soft_del_entity(session: Session, *, soft_deleted: bool) -> SoftDelEntity:
    entity = SoftDelEntity(soft_deleted=soft_deleted)
    session.add(entity)
    session.commit()
    session.expunge_all()
    return entity


def soft_delete_filters() -> QueryFilters:
    return QueryFilters().register(SoftDelEntity, not_soft_deleted)


def setup_entities_direct(
    *, query_filters: QueryFilters | None = None, **kwargs
) -> CrudServicesConfig:
    """Config for every sample entity, with the soft-delete filter by default."""

    return setup_entities(
        *SAMPLE_ENTITIES,
        query_filters=query_filters or soft_delete_filters(),
        **kwargs,
    )


def setup_single_dto_and_entities(
    dto_type: type, *, dto_types: Iterable[type] = (), **kwargs
) -> CrudServicesConfig:
    return setup_entities_direct(dto_types=[dto_type, *dto_types], **kwargs)


def _book(
    title: str,
    description: str,
    published_on: datetime,
    price: float,
    author: Author,
) -> Book:
    book = Book(
        title=title,
        description=description,
        published_on=published_on,
        price=price,
        publisher="Manning",
    )
    book.author_links = [BookAuthor(author=author, order=0)]
    return book
