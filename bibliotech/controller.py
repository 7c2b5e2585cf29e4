import asyncio
import logging
from typing import Any, Callable, List, Optional, Set, Tuple

from bibliotech.book import Book
from bibliotech.config import settings
from bibliotech.exceptions import SessionClosedError
from bibliotech.form import BookForm
from bibliotech.pipeline import ViewParams, process_books, summarize
from bibliotech.services.storage_service import HealthStatus, RecordStoreClient
from bibliotech.session import Session, open_session, register_session

logger = logging.getLogger(__name__)


class LibraryController:
    """Application root: session, record snapshot, view parameters, edit form.

    The snapshot is only ever replaced by invalidate_and_reload(); create,
    update and delete go to the store first and then reload.
    """

    def __init__(self, store: RecordStoreClient, session: Optional[Session] = None,
                 params: Optional[ViewParams] = None) -> None:
        self.store = store
        self.session = session
        self.params = params or ViewParams()
        self.form: Optional[BookForm] = None
        self.loading = False

        self._records: Tuple[Book, ...] = ()
        self._snapshot_version = 0
        self._reload_seq = 0
        self._applied_seq = 0
        self._visible_key: Optional[tuple] = None
        self._visible: List[Book] = []

    # ------------------------- Session ------------------------- #
    async def sign_in(self, email: str, password: str) -> Session:
        session = await open_session(self.store, email, password)
        await self._start(session)
        return session

    async def sign_up(self, email: str, password: str, username: Optional[str] = None) -> Session:
        session = await register_session(self.store, email, password, username)
        await self._start(session)
        return session

    async def _start(self, session: Session) -> None:
        self.logout()
        self.session = session
        await self.invalidate_and_reload()

    def logout(self) -> None:
        if self.session is not None:
            self.session.close()
        self.session = None
        self.form = None
        # reloads still in flight belong to the old session
        self._applied_seq = self._reload_seq
        self._replace_snapshot(())

    def _require_session(self) -> Session:
        if self.session is None or not self.session.active:
            raise SessionClosedError()
        return self.session

    # ------------------------- Snapshot ------------------------- #
    @property
    def records(self) -> Tuple[Book, ...]:
        return self._records

    def _replace_snapshot(self, books) -> None:
        self._records = tuple(books)
        self._snapshot_version += 1

    async def invalidate_and_reload(self) -> bool:
        """Reload the full record set.

        Returns False when the response was discarded because a newer reload
        had already been applied.
        """
        self._require_session()
        self._reload_seq += 1
        seq = self._reload_seq
        self.loading = True
        try:
            books = await self.store.list_books()
        finally:
            if seq == self._reload_seq:
                self.loading = False

        if seq <= self._applied_seq or self.session is None:
            logger.debug(f"Discarding stale book list (request {seq}, applied {self._applied_seq})")
            return False
        self._applied_seq = seq
        self._replace_snapshot(books)
        logger.info(f"Loaded {len(self._records)} books")
        return True

    # ------------------------- View ------------------------- #
    def set_view(self, **changes: Any) -> ViewParams:
        self.params = self.params.with_changes(**changes)
        return self.params

    def toggle_sort_order(self) -> ViewParams:
        self.params = self.params.toggled_order()
        return self.params

    @property
    def visible_books(self) -> List[Book]:
        """Pipeline output, recomputed only when records, params or user change."""
        user_id = self.session.user_id if self.session and self.session.active else None
        key = (self._snapshot_version, self.params, user_id)
        if key != self._visible_key:
            self._visible = process_books(self._records, self.params, user_id)
            self._visible_key = key
        return list(self._visible)

    def stats(self) -> dict:
        return summarize(self._records)

    def find_book(self, book_id: str) -> Optional[Book]:
        return next((b for b in self._records if b.id == book_id), None)

    # ------------------------- Mutations ------------------------- #
    def open_new_form(self) -> BookForm:
        """Start a create session, dropping any unsaved form."""
        self._require_session()
        self.form = BookForm.new()
        return self.form

    def open_edit_form(self, book: Book) -> BookForm:
        """Start an edit session for `book`, dropping any unsaved form."""
        self._require_session()
        self.form = BookForm.edit(book)
        return self.form

    def close_form(self) -> None:
        self.form = None

    async def save_form(self) -> bool:
        """Send the active form to the store and reload on success.

        Raises ValidationError before any request when the form is incomplete.
        Returns False when the store rejected the write or the form is already
        being submitted.
        """
        session = self._require_session()
        form = self.form
        if form is None or form.submitting:
            return False
        book = form.submit(session.user_id)

        form.submitting = True
        try:
            if form.is_new:
                ok = await self.store.create_book(book)
            else:
                ok = await self.store.update_book(book)
        finally:
            form.submitting = False

        if not ok:
            return False
        if self.form is form:
            self.form = None
        await self._reload_if_signed_in()
        return True

    async def delete_book(self, book_id: str) -> bool:
        self._require_session()
        ok = await self.store.delete_book(book_id)
        if ok:
            await self._reload_if_signed_in()
        return ok

    async def _reload_if_signed_in(self) -> None:
        # the write already landed; a logout during it only skips the reload
        if self.session is not None and self.session.active:
            await self.invalidate_and_reload()


class HealthMonitor:
    """Re-probes the backend on a fixed interval.

    Each probe runs as its own task with its own timeout, so a slow backend
    never delays the next probe. A result is applied only if it belongs to a
    newer probe than the last applied one.
    """

    def __init__(self, store: RecordStoreClient, interval: Optional[float] = None,
                 on_change: Optional[Callable[[HealthStatus], None]] = None) -> None:
        self.store = store
        self.interval = interval if interval is not None else settings.health_interval
        self.on_change = on_change
        self.status: Optional[HealthStatus] = None
        self._seq = 0
        self._applied = 0
        self._task: Optional[asyncio.Task] = None
        self._probes: Set[asyncio.Task] = set()

    async def probe(self) -> HealthStatus:
        self._seq += 1
        seq = self._seq
        result = await self.store.check_health()
        if seq > self._applied:
            self._applied = seq
            changed = result != self.status
            self.status = result
            if changed and self.on_change is not None:
                self.on_change(result)
        return result

    async def _run(self) -> None:
        while True:
            task = asyncio.create_task(self.probe())
            self._probes.add(task)
            task.add_done_callback(self._probes.discard)
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        tasks = [t for t in [self._task, *self._probes] if t is not None]
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._task = None
        self._probes.clear()
