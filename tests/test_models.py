"""Tests for the Book entity model."""

import json

import pytest
from pydantic import ValidationError

from bookworm.sync.errors import InvalidIsbnError
from bookworm.sync.models import (
    Book,
    BookList,
    Metadata,
    ReadStatus,
    is_valid_isbn,
    validate_isbn,
)

from conftest import ISBN, OTHER_ISBN, T0, at


class TestIsbnValidation:

    @pytest.mark.parametrize("value", ["9780143107712", "0143107712", "9791234567896"])
    def test_valid(self, value):
        assert is_valid_isbn(value)

    @pytest.mark.parametrize("value", ["abc", "", "978014310771", "8780143107712", "97801431077X2", "014310771X"])
    def test_invalid(self, value):
        assert not is_valid_isbn(value)

    def test_validate_strips_and_accepts_int(self):
        assert validate_isbn(" 9780143107712 ") == ISBN
        assert validate_isbn(9780143107712) == ISBN

    def test_validate_rejects_non_numeric(self):
        with pytest.raises(InvalidIsbnError):
            validate_isbn("abc")


class TestBookConstruction:

    def test_create_defaults_to_unknown(self):
        book = Book.create(ISBN, T0)

        assert book.isbn == ISBN
        assert book.updated_at == T0
        assert book.synced_at is None
        assert book.read_status is None
        assert book.title is None
        assert book.authors is None
        assert book.cover is None
        assert book.photos is None
        assert book.share_id is None

    def test_create_rejects_invalid_isbn(self):
        with pytest.raises(InvalidIsbnError):
            Book.create("abc", T0)

    def test_direct_construction_rejects_invalid_isbn(self):
        with pytest.raises(ValidationError):
            Book(isbn="abc", updated_at=T0)

    def test_naive_timestamps_are_utc(self):
        book = Book(isbn=ISBN, updated_at=T0.replace(tzinfo=None))
        assert book.updated_at == T0

    def test_books_are_immutable(self):
        book = Book.create(ISBN, T0)
        with pytest.raises(ValidationError):
            book.title = "Dune"


class TestSyncTransitions:

    def test_mark_synced_keeps_updated_at(self):
        book = Book.create(ISBN, T0).mark_synced(at(5))

        assert book.synced_at == at(5)
        assert book.updated_at == T0

    def test_mark_synced_is_idempotent(self):
        once = Book.create(ISBN, T0).mark_synced(at(5))
        assert once.mark_synced(at(5)) == once

    def test_mark_unsynced_is_idempotent(self):
        book = Book.create(ISBN, T0).mark_synced(at(5)).mark_unsynced()

        assert book.synced_at is None
        assert book.mark_unsynced() == book


class TestBusinessTransitions:

    def test_status_change_leaves_synced_at_alone(self):
        book = Book.create(ISBN, T0).mark_synced(at(1))
        updated = book.with_read_status(ReadStatus.LIKED, at(2))

        assert updated.read_status == ReadStatus.LIKED
        assert updated.updated_at == at(2)
        assert updated.synced_at == at(1)

    def test_updated_at_never_moves_back(self):
        book = Book.create(ISBN, at(10))
        updated = book.with_read_status(ReadStatus.READ, at(5))

        assert updated.updated_at == at(10)

    def test_metadata_fills_only_missing_fields(self):
        book = Book.create(ISBN, T0).model_copy(update={"title": "Dune"})
        enriched = book.with_metadata(
            Metadata(title="Other", authors=["Frank Herbert"], cover="http://img/1.jpg"),
            at(1),
        )

        assert enriched.title == "Dune"
        assert enriched.authors == ["Frank Herbert"]
        assert enriched.cover == "http://img/1.jpg"
        assert enriched.updated_at == at(1)

    def test_metadata_with_nothing_to_fill_returns_same_book(self):
        book = Book.create(ISBN, T0).with_metadata(Metadata(title="Dune", authors=["Frank Herbert"]), T0)

        assert book.with_metadata(Metadata(title="Other"), at(1)) is book

    def test_new_photo_sorts_and_sets_share_id_once(self):
        book = Book.create(ISBN, T0)
        book = book.with_new_photo("23520065", at(1))
        book = book.with_new_photo("23510000", at(2))

        assert book.photos == ["23510000", "23520065"]
        assert book.share_id == 23520065
        assert book.updated_at == at(2)

    def test_non_numeric_photo_does_not_set_share_id(self):
        book = Book.create(ISBN, T0).with_new_photo("abc", at(1))

        assert book.photos == ["abc"]
        assert book.share_id is None

    def test_photo_urls(self):
        book = Book.create(ISBN, T0).with_new_photo("23520065", at(1))

        assert book.photo_urls("https://bookwormfood.com/", "owner-1") == [
            f"https://bookwormfood.com/photos/owner-1-{ISBN}-23520065.jpg"
        ]


class TestSerialization:

    def test_optional_fields_are_omitted(self):
        data = json.loads(Book.create(ISBN, T0).to_bytes())

        assert set(data) == {"isbn", "timestampUpdate"}

    def test_wire_names(self):
        book = Book.create(ISBN, T0).with_read_status(ReadStatus.TO_READ, T0).with_new_photo("1", T0).mark_synced(at(1))
        data = json.loads(book.to_bytes())

        assert data["readStatus"] == "ToRead"
        assert data["shareId"] == 1
        assert "timestampSync" in data

    def test_round_trip(self):
        book = Book.create(ISBN, T0).with_metadata(Metadata(title="Dune", authors=["Frank Herbert"]), T0)
        assert Book.from_bytes(book.to_bytes()) == book

    def test_numeric_isbn_on_the_wire(self):
        book = Book.from_bytes(b'{"isbn": 9780143107712, "timestampUpdate": "2024-09-01T12:00:00Z"}')

        assert book.isbn == ISBN
        assert book.updated_at == T0

    def test_malformed_bytes_raise_value_error(self):
        with pytest.raises(ValueError):
            Book.from_bytes(b"not json")


class TestBookList:

    def test_sorted_newest_first(self):
        older = Book.create(ISBN, at(1))
        newer = Book.create(OTHER_ISBN, at(2))

        assert BookList(books=[older, newer]).sorted().isbns() == [OTHER_ISBN, ISBN]

    def test_lean_copy_drops_display_fields(self):
        book = Book.create(ISBN, T0).with_new_photo("1", T0).mark_synced(T0)
        lean = BookList(books=[book]).lean_copy().books[0]

        assert lean.photos is None
        assert lean.synced_at is None
        assert lean.share_id == 1
