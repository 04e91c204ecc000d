"""
Sequence numbers per (sales point, document kind).
Atomic per-pair counter in the database; callers in this process are also
serialized per pair so no two ever observe the same number.
"""

import logging
import threading

from django.db import DatabaseError, transaction
from django.db.utils import IntegrityError

from einvoice.exceptions import NumberingError
from einvoice.models import DocumentSequence

logger = logging.getLogger("einvoice")

_MAX_SEQUENCE_RETRIES = 5
CANCELLED_MESSAGE = "Numbering cancelled; no number issued"


def _is_cancelled(cancel) -> bool:
    return cancel is not None and cancel.is_set()


def _kind_key(document_kind) -> str:
    return str(getattr(document_kind, "value", document_kind) or "").strip().upper()


class DatabaseCounter:
    """DocumentSequence rows, incremented under select_for_update."""

    def next_value(self, sales_point: int, document_kind: str) -> int:
        """
        Return next number for the pair. Retries on concurrent create (IntegrityError).

        Raises:
            NumberingError: Database unavailable or persistent contention.
        """
        try:
            for _ in range(_MAX_SEQUENCE_RETRIES):
                with transaction.atomic():
                    seq = DocumentSequence.objects.select_for_update().filter(
                        sales_point=sales_point, document_kind=document_kind
                    ).first()
                    if seq:
                        seq.last_number += 1
                        seq.save(update_fields=["last_number", "updated_at"])
                        return seq.last_number
                    try:
                        with transaction.atomic():
                            DocumentSequence.objects.create(
                                sales_point=sales_point, document_kind=document_kind, last_number=1
                            )
                        return 1
                    except IntegrityError:
                        # Another process created the row; retry to lock and increment
                        pass
        except DatabaseError as e:
            raise NumberingError(f"Sequence counter unavailable: {e}") from e
        raise NumberingError(
            f"next_value({sales_point}, {document_kind}): too many retries (concurrent contention)"
        )

    def current_value(self, sales_point: int, document_kind: str) -> int:
        try:
            seq = DocumentSequence.objects.filter(
                sales_point=sales_point, document_kind=document_kind
            ).first()
        except DatabaseError as e:
            raise NumberingError(f"Sequence counter unavailable: {e}") from e
        return seq.last_number if seq else 0

    def raise_to(self, sales_point: int, document_kind: str, value: int) -> int:
        """Set the counter to value if it is currently lower. Never moves it backwards."""
        try:
            with transaction.atomic():
                seq, _ = DocumentSequence.objects.select_for_update().get_or_create(
                    sales_point=sales_point, document_kind=document_kind
                )
                if value > seq.last_number:
                    seq.last_number = value
                    seq.save(update_fields=["last_number", "updated_at"])
                return seq.last_number
        except DatabaseError as e:
            raise NumberingError(f"Sequence counter unavailable: {e}") from e


class NumberingService:
    """
    Issues sequence numbers. Callers for the same pair queue on a lock;
    timeout (seconds) bounds the wait, after which NumberingError is raised.
    """

    def __init__(self, counter=None):
        self.counter = counter or DatabaseCounter()
        self._guard = threading.Lock()
        self._locks: dict[tuple[int, str], threading.Lock] = {}

    def _lock_for(self, key: tuple[int, str]) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    def next_number(self, document_kind, sales_point: int, timeout: float | None = None, cancel=None) -> int:
        """
        cancel: threading.Event checked before waiting for the lock and again
        before the counter moves; when set, NumberingError and no number is issued.
        """
        kind = _kind_key(document_kind)
        if not kind:
            raise NumberingError("Document kind is required")
        if int(sales_point) <= 0:
            raise NumberingError(f"Invalid sales point {sales_point}")
        key = (int(sales_point), kind)
        if _is_cancelled(cancel):
            raise NumberingError(CANCELLED_MESSAGE)
        lock = self._lock_for(key)
        acquired = lock.acquire(timeout=timeout) if timeout is not None else lock.acquire()
        if not acquired:
            raise NumberingError(f"Timed out after {timeout}s waiting for {kind} numbering on sales point {sales_point}")
        try:
            if _is_cancelled(cancel):
                raise NumberingError(CANCELLED_MESSAGE)
            number = self.counter.next_value(*key)
        finally:
            lock.release()
        logger.info("Issued number %s for %s on sales point %s", number, kind, sales_point)
        return number

    def synchronize(self, document_kind, sales_point: int, last_authorized: int) -> int:
        """Align the counter with the Authority's last authorized number. Returns the counter value."""
        kind = _kind_key(document_kind)
        key = (int(sales_point), kind)
        with self._lock_for(key):
            value = self.counter.raise_to(*key, int(last_authorized))
        if value != last_authorized:
            logger.warning(
                "%s counter on sales point %s (%s) is ahead of the Authority (%s); gap documented",
                kind, sales_point, value, last_authorized,
            )
        return value
