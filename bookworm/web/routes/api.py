"""
API routes for Bookworm Sync.
"""

import asyncio
from typing import Optional

from flask import Blueprint, current_app, jsonify, request

from bookworm.api.remote import AUTH_HEADER
from bookworm.config import owner_from_config
from bookworm.db.database import get_db_session
from bookworm.db.models import SyncRun, SyncLog
from bookworm.sync.errors import ErrorKind, SyncError
from bookworm.sync.history import record_sync_run
from bookworm.sync.library import BookLibrary, photo_id_from_upload_url
from bookworm.sync.models import Book, Owner, ReadStatus

api_bp = Blueprint('api', __name__, url_prefix='/api')

ERROR_STATUS = {
    ErrorKind.INVALID: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.MALFORMED: 400,
    ErrorKind.TRANSIENT: 502,
}


def _library() -> BookLibrary:
    return current_app.extensions["bookworm.library"]


def _owner() -> Optional[Owner]:
    """The owner from the auth header, falling back to the configured one."""
    configured = owner_from_config(current_app.extensions["bookworm.config"])

    token = request.headers.get(AUTH_HEADER)
    if token:
        return Owner(
            id_token=token,
            owner_id=configured.owner_id if configured else None,
            email=configured.email if configured else None,
        )

    return configured


def _book_json(book: Book, owner: Optional[Owner] = None) -> dict:
    data = book.model_dump(mode="json", by_alias=True, exclude_none=True)

    if owner and owner.owner_id and book.photos:
        base_url = current_app.extensions["bookworm.config"].photos_base_url
        data["photos"] = book.photo_urls(base_url, owner.owner_id)

    return data


@api_bp.errorhandler(SyncError)
def handle_sync_error(error: SyncError):
    return jsonify({
        'success': False,
        'error': str(error),
        'kind': error.kind.value,
    }), ERROR_STATUS.get(error.kind, 500)


@api_bp.route('/books')
def list_books():
    """Get the cached books, optionally merged with the remote store first."""
    library = _library()
    books = library.list_books()

    if request.args.get('sync', 'false').lower() == 'true':
        refreshed = asyncio.run(library.refresh(_owner()))
        if refreshed is not None:
            books = refreshed

    return jsonify({
        'books': [_book_json(b) for b in books.lean_copy()],
    })


@api_bp.route('/books/<isbn>')
def get_book(isbn):
    """Get a book, looking it up if it is not cached yet."""
    owner = _owner()
    book = asyncio.run(_library().get_book(owner, isbn))
    return jsonify(_book_json(book, owner))


@api_bp.route('/books/<isbn>/status', methods=['PUT'])
def update_status(isbn):
    """Change the read status of a book."""
    data = request.get_json(silent=True) or {}
    value = data.get('status')

    try:
        status = ReadStatus(value) if value is not None else None
    except ValueError:
        return jsonify({
            'success': False,
            'error': f"Unknown status: {value}",
        }), 400

    owner = _owner()
    book = asyncio.run(_library().update_status(owner, isbn, status))
    return jsonify(_book_json(book, owner))


@api_bp.route('/books/<isbn>/photos', methods=['POST'])
def add_photo(isbn):
    """Record an uploaded photo, by ID or by its upload URL."""
    data = request.get_json(silent=True) or {}

    photo_id = data.get('photoId')
    if not photo_id and data.get('uploadUrl'):
        photo_id = photo_id_from_upload_url(data['uploadUrl'])

    if not photo_id:
        return jsonify({
            'success': False,
            'error': 'photoId or uploadUrl is required',
        }), 400

    book = _library().add_photo(isbn, str(photo_id))
    return jsonify(_book_json(book, _owner()))


@api_bp.route('/books/<isbn>', methods=['DELETE'])
def delete_book(isbn):
    """Delete a book locally and from the remote store."""
    remote_deleted = asyncio.run(_library().delete_book(_owner(), isbn))
    return jsonify({
        'success': True,
        'deleted': isbn,
        'remote_deleted': remote_deleted,
    })


@api_bp.route('/sync', methods=['POST'])
def trigger_sync():
    """Manually trigger a full sync."""
    owner = _owner()
    if owner is None:
        return jsonify({
            'success': False,
            'error': 'Not signed in'
        }), 401

    result = asyncio.run(_library().engine.sync(owner))
    record_sync_run(result)

    return jsonify({
        'success': result.success,
        'run_id': result.run_id,
        'pushed': result.books_pushed,
        'failed': result.books_failed,
        'pulled': result.books_pulled,
        'error': result.error_message,
    })


@api_bp.route('/status')
def status():
    """Get current sync status."""
    with get_db_session() as session:
        latest_run = session.query(SyncRun).order_by(
            SyncRun.started_at.desc()
        ).first()

        return jsonify({
            'last_sync': latest_run.started_at.isoformat() if latest_run else None,
            'last_sync_status': latest_run.status if latest_run else None,
            'books_pushed': latest_run.books_pushed if latest_run else 0,
            'books_pulled': latest_run.books_pulled if latest_run else 0,
            'books_cached': len(_library().list_books()),
        })


@api_bp.route('/runs')
def get_runs():
    """Get sync runs."""
    limit = request.args.get('limit', 20, type=int)

    with get_db_session() as session:
        runs = session.query(SyncRun).order_by(
            SyncRun.started_at.desc()
        ).limit(limit).all()

        return jsonify([{
            'run_id': r.run_id,
            'started_at': r.started_at.isoformat() if r.started_at else None,
            'completed_at': r.completed_at.isoformat() if r.completed_at else None,
            'status': r.status,
            'books_pushed': r.books_pushed,
            'books_failed': r.books_failed,
            'books_pulled': r.books_pulled,
            'error': r.error_message,
        } for r in runs])


@api_bp.route('/logs')
def get_logs():
    """Get recent logs."""
    limit = request.args.get('limit', 100, type=int)
    level = request.args.get('level')

    with get_db_session() as session:
        query = session.query(SyncLog)

        if level:
            query = query.filter(SyncLog.level == level.upper())

        logs = query.order_by(SyncLog.created_at.desc()).limit(limit).all()

        return jsonify([{
            'id': l.id,
            'level': l.level,
            'message': l.message,
            'sync_run_id': l.sync_run_id,
            'created_at': l.created_at.isoformat() if l.created_at else None,
        } for l in logs])
