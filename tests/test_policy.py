"""Tests for the reconciliation policy."""

import pytest

from bookworm.sync.models import Book, ReadStatus
from bookworm.sync.policy import (
    has_local_changes,
    merge,
    needs_push,
    sync_projection,
)

from conftest import ISBN, T0, at


def make_book(**fields) -> Book:
    fields.setdefault("updated_at", T0)
    return Book(isbn=ISBN, **fields)


class TestNeedsPush:

    def test_fresh_book_needs_push(self):
        assert needs_push(Book.create(ISBN, T0))

    def test_synced_at_update_time_is_current(self):
        assert not needs_push(make_book(updated_at=T0, synced_at=T0))

    def test_synced_after_update_is_current(self):
        assert not needs_push(make_book(updated_at=T0, synced_at=at(1)))

    def test_update_after_sync_is_dirty(self):
        assert needs_push(make_book(updated_at=at(2), synced_at=at(1)))


class TestMerge:

    @pytest.fixture
    def local(self):
        return make_book(
            updated_at=at(10),
            synced_at=at(10),
            read_status=ReadStatus.READ,
            title="Local title",
            authors=["Local Author"],
            cover="http://covers/local.jpg",
            photos=["100"],
            share_id=100,
        )

    def test_merge_with_itself_is_identity(self, local):
        assert merge(local, local) == local

    def test_merge_is_idempotent(self, local):
        remote = make_book(updated_at=at(20), title="Remote", photos=["100", "200"], share_id=100)
        once = merge(local, remote)

        assert merge(once, remote) == once

    @pytest.mark.parametrize("remote_minutes", [0, 10, 20])
    def test_updated_at_is_the_later_one(self, local, remote_minutes):
        remote = make_book(updated_at=at(remote_minutes))
        merged = merge(local, remote)

        assert merged.updated_at == max(local.updated_at, remote.updated_at)

    @pytest.mark.parametrize("remote_status", [None, ReadStatus.TO_READ, ReadStatus.LIKED])
    def test_local_read_status_wins(self, local, remote_status):
        remote = make_book(updated_at=at(99), read_status=remote_status)

        assert merge(local, remote).read_status == ReadStatus.READ

    def test_unset_local_status_stays_unset(self):
        local = make_book(updated_at=at(1))
        remote = make_book(updated_at=at(2), read_status=ReadStatus.LIKED)

        assert merge(local, remote).read_status is None

    def test_title_and_authors_filled_only_when_missing(self, local):
        remote = make_book(updated_at=at(20), title="Remote", authors=["Remote Author"])
        merged = merge(local, remote)
        assert merged.title == "Local title"
        assert merged.authors == ["Local Author"]

        empty_local = make_book(updated_at=at(1))
        merged = merge(empty_local, remote)
        assert merged.title == "Remote"
        assert merged.authors == ["Remote Author"]

    @pytest.mark.parametrize("remote_photos", [None, [], ["100"], ["100", "200", "300"]])
    def test_photos_come_from_remote(self, local, remote_photos):
        remote = make_book(photos=remote_photos)

        assert merge(local, remote).photos == remote.photos

    def test_share_id_from_remote(self, local):
        remote = make_book(share_id=42)

        assert merge(local, remote).share_id == 42

    def test_share_id_kept_when_remote_has_none(self, local):
        assert merge(local, make_book()).share_id == 100

    def test_local_only_fields_kept(self, local):
        merged = merge(local, make_book(updated_at=at(20), cover="http://covers/remote.jpg"))

        assert merged.cover == "http://covers/local.jpg"
        assert merged.synced_at == local.synced_at

    def test_conflict_scenario(self):
        local = make_book(updated_at=at(2), read_status=ReadStatus.LIKED)
        remote = make_book(updated_at=at(3), title="Dune", read_status=ReadStatus.TO_READ)

        merged = merge(local, remote)

        assert merged.title == "Dune"
        assert merged.read_status == ReadStatus.LIKED
        assert merged.updated_at == at(3)

    def test_inputs_are_not_modified(self, local):
        remote = make_book(updated_at=at(20), photos=["1"])
        before = local.model_copy()

        merge(local, remote)

        assert local == before


class TestProjection:

    def test_drops_local_and_remote_owned_fields(self):
        book = make_book(
            synced_at=at(1),
            read_status=ReadStatus.LIKED,
            title="Dune",
            authors=["Frank Herbert"],
            cover="http://covers/1.jpg",
            photos=["1"],
            share_id=1,
        )
        projection = sync_projection(book)

        assert projection.cover is None
        assert projection.photos is None
        assert projection.share_id is None
        assert projection.synced_at is None
        assert projection.title == "Dune"
        assert projection.authors == ["Frank Herbert"]
        assert projection.read_status == ReadStatus.LIKED
        assert projection.updated_at == T0


def test_has_local_changes_ignores_synced_at():
    book = make_book(title="Dune")

    assert not has_local_changes(book, book.mark_synced(at(5)))
    assert has_local_changes(book, book.with_read_status(ReadStatus.READ, T0))
