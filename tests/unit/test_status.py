"""Tests for StatusGeneric accumulation rules."""

from __future__ import annotations

import pytest

from crudservices import StatusError, StatusGeneric

pytestmark = [pytest.mark.status]


def test_new_status_is_valid_with_default_message():
    status = StatusGeneric()

    assert status.is_valid
    assert not status.has_errors
    assert status.message == "Success"
    assert status.get_all_errors() == ""


def test_errors_keep_order_and_invalidate():
    status = StatusGeneric()
    status.add_error("first", "title")
    status.add_error("second")

    assert not status.is_valid
    assert [error.message for error in status.errors] == ["first", "second"]
    assert status.errors[0].member_names == ("title",)
    assert status.get_all_errors() == "first\nsecond"
    assert status.get_all_errors(", ") == "first, second"


def test_failed_message_counts_errors():
    status = StatusGeneric()
    status.message = "All good"
    status.add_error("one")
    assert status.message == "Failed with 1 error"

    status.add_error("two")
    assert status.message == "Failed with 2 errors"


def test_header_prefixes_added_errors():
    status = StatusGeneric(header="Book")
    status.add_error("Price is too high")
    status.add_validation_error(StatusError("raw message"))

    assert status.get_all_errors() == "Book: Price is too high\nraw message"


def test_combine_statuses_merges_errors():
    outer = StatusGeneric()
    inner = StatusGeneric()
    inner.add_error("inner failure")

    outer.combine_statuses(inner)

    assert not outer.is_valid
    assert outer.get_all_errors() == "inner failure"


def test_combine_statuses_adopts_custom_success_message():
    outer = StatusGeneric()
    inner = StatusGeneric()
    inner.message = "Promotion added"

    outer.combine_statuses(inner)
    assert outer.message == "Promotion added"

    outer.combine_statuses(StatusGeneric())
    assert outer.message == "Promotion added"
