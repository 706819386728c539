from __future__ import annotations

import threading


class CancellationToken:
    """Cooperative stop flag shared between the importer and its caller.

    cancel() may be called from any thread (or a signal handler); readers
    poll cancelled() between rows and never get interrupted mid-row.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def cancelled(self) -> bool:
        return self._event.is_set()
