from __future__ import annotations


class ImporterError(Exception):
    """Base class for failures that stay inside one import phase."""


class StoreOpenError(ImporterError):
    pass


class BackendInitError(ImporterError):
    pass


class PickleError(ImporterError):
    pass
