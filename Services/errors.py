# Services/errors.py
"""Exceptions raised by the storage, upload and auth collaborators.

The core layer (catalog feeds, saved reconcilers, inbox) catches ``StoreError``
at each call site and turns it into a logged, localized error string; routers
translate whatever reaches them into HTTP status codes.
"""


class StoreError(Exception):
    """A remote document-store call failed."""


class PermissionDenied(StoreError):
    pass


class DocumentNotFound(StoreError):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} does not exist")
        self.collection = collection
        self.doc_id = doc_id


class StoreUnavailable(StoreError):
    """The store is offline; the call was not queued."""


class IndexRequired(StoreError):
    """The query combines predicates the store cannot serve without a composite index."""


class UploadError(Exception):
    pass


class AuthError(Exception):
    pass
