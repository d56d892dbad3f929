"""
Performance Benchmarks: generic update dispatch against hand-written updates

Each group compares a hand-coded update of book 4 with the same change made
through CrudServices.update_and_save. Every round opens its own session,
builds its own service and checks the saved date before closing.

update-property: set ``published_on`` directly vs. field mapping
update-method:   call ``Book.update_published_on`` vs. named operation

Run with: pytest tests/benchmarks -v --benchmark-only
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterator

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from crudservices import CrudServices, CrudServicesConfig, CrudValues
from crudservices.infra.db import session_scope
from tests.helpers.database import (
    create_test_engine,
    seed_database_four_books,
    setup_single_dto_and_entities,
)
from tests.helpers.models import Book, ChangePubDateDto
from tests.helpers.sequences import DateSequence

pytestmark = [pytest.mark.benchmarks]

BOOK_ID = 4


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_test_engine()
    with session_scope(engine) as session:
        seed_database_four_books(session)
    yield engine
    engine.dispose()


@pytest.fixture()
def dates() -> DateSequence:
    return DateSequence()


@pytest.fixture()
def config() -> CrudServicesConfig:
    return setup_single_dto_and_entities(ChangePubDateDto)


def _assert_saved(session: Session, expected: datetime) -> None:
    session.expire_all()
    assert session.get(Book, BOOK_ID).published_on == expected


class TestUpdateProperty:
    @pytest.mark.benchmark(group="update-property")
    def test_hand_coded_property_update(self, benchmark, engine, dates):
        def update() -> None:
            new_date = dates.next()
            with session_scope(engine) as session:
                book = session.get(Book, BOOK_ID)
                book.published_on = new_date
                session.commit()
                _assert_saved(session, new_date)

        benchmark(update)

    @pytest.mark.benchmark(group="update-property")
    def test_generic_property_update(self, benchmark, engine, config, dates):
        def update() -> None:
            new_date = dates.next()
            with session_scope(engine) as session:
                service = CrudServices(session, config)
                dto = ChangePubDateDto(book_id=BOOK_ID, published_on=new_date)
                service.update_and_save(dto, CrudValues.USE_AUTO_MAPPER)
                assert service.is_valid, service.get_all_errors()
                _assert_saved(session, new_date)

        benchmark(update)


class TestUpdateMethod:
    @pytest.mark.benchmark(group="update-method")
    def test_hand_coded_method_update(self, benchmark, engine, dates):
        def update() -> None:
            new_date = dates.next()
            with session_scope(engine) as session:
                book = session.get(Book, BOOK_ID)
                book.update_published_on(new_date)
                session.commit()
                _assert_saved(session, new_date)

        benchmark(update)

    @pytest.mark.benchmark(group="update-method")
    def test_generic_method_update(self, benchmark, engine, config, dates):
        def update() -> None:
            new_date = dates.next()
            with session_scope(engine) as session:
                service = CrudServices(session, config)
                dto = ChangePubDateDto(book_id=BOOK_ID, published_on=new_date)
                service.update_and_save(dto, "update_published_on")
                assert service.is_valid, service.get_all_errors()
                _assert_saved(session, new_date)

        benchmark(update)
