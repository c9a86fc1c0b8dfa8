"""
Client-side autosave coordinator.

Used by API clients (scripts, the sync agent, tests) that edit an audit
draft and push it to ``/api/audits/<id>/autosave``.  Every
edit re-arms a debounce timer; when it fires, the content is saved
unless its hash equals the last successfully saved hash.  Only one save
runs at a time: an edit that lands while a save is in flight is saved
once that save returns.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from django.conf import settings

from core.services.drafts import content_hash

logger = logging.getLogger(__name__)


class AutosaveSession:

    def __init__(
        self,
        save: Callable[[Any], Any],
        delay: Optional[float] = None,
        timer_factory: Callable[..., Any] = threading.Timer,
        on_error: Optional[Callable[[BaseException], None]] = None,
        last_saved_hash: Optional[str] = None,
    ):
        self._save = save
        self.delay = delay if delay is not None else getattr(settings, 'AUTOSAVE_DEBOUNCE_SECONDS', 5.0)
        self._timer_factory = timer_factory
        self._on_error = on_error
        self._lock = threading.Lock()
        self._timer = None
        self._pending: Any = None
        self._has_pending = False
        self._in_flight = False
        self._rerun = False
        self.last_saved_hash = last_saved_hash

    @property
    def has_pending(self) -> bool:
        return self._has_pending

    @property
    def saving(self) -> bool:
        return self._in_flight

    def edit(self, content: Any) -> None:
        """Record new content and restart the debounce timer."""
        with self._lock:
            self._pending = content
            self._has_pending = True
            self._cancel_timer()
            self._timer = self._timer_factory(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> bool:
        """Save pending content now. Errors propagate to the caller."""
        with self._lock:
            self._cancel_timer()
        return self._run(raise_errors=True)

    def cancel(self) -> None:
        with self._lock:
            self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        self._run(raise_errors=False)

    def _run(self, raise_errors: bool) -> bool:
        with self._lock:
            if self._in_flight:
                self._rerun = True
                return False
            if not self._has_pending:
                return False
            content = self._pending
            digest = content_hash(content)
            if digest == self.last_saved_hash:
                self._has_pending = False
                return False
            self._in_flight = True

        ok = False
        try:
            self._save(content)
            ok = True
        except Exception as e:
            logger.warning('autosave failed: %s', e, extra={'operation': 'autosave'})
            if self._on_error is not None:
                self._on_error(e)
            if raise_errors:
                raise
        finally:
            with self._lock:
                self._in_flight = False
                if ok:
                    self.last_saved_hash = digest
                    if self._pending is content:
                        self._has_pending = False
                rerun, self._rerun = self._rerun, False
            if rerun:
                self._run(raise_errors=False)
        return ok
