"""
HalRest — Resource Backend Interface
======================================

What:  The contract RestController uses to reach business logic and storage,
       plus an in-memory implementation.
How:   Concrete backends inherit from ResourceBackend and implement the nine
       operations. Each operation may return a value, return an ApiProblem, or
       raise an exception (optionally carrying an HTTP ``code``).
Who:   Injected into RestController at construction time.

Return conventions understood by the controller:
    - fetch():       falsy → 404 "Resource not found."
    - delete():      falsy → 422 "Unable to delete resource."
    - delete_list(): falsy → 422 "Unable to delete collection."
    - fetch_all():   a list, or a Paginator to get paginated HAL output
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from halrest.exceptions import ConflictError, NotFoundError, UnprocessableError
from halrest.hal import is_path_segment
from halrest.pagination import Paginator

logger = logging.getLogger(__name__)


class ResourceBackend(ABC):
    """
    Abstract interface for the data behind one REST resource.

    ``data`` arguments are the decoded request body (a dict for item
    operations, a list of dicts for list operations). ``id`` is the raw
    identifier string taken from the URL.
    """

    @abstractmethod
    def create(self, data: Any) -> Any:
        """Create an entity and return it (including its identifier)."""

    @abstractmethod
    def fetch(self, id: str) -> Any:
        """Return the entity, or a falsy value when it does not exist."""

    @abstractmethod
    def fetch_all(self, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Return the collection. ``params`` are the request's query parameters."""

    @abstractmethod
    def update(self, id: str, data: Any) -> Any:
        """Replace the entity and return the new representation."""

    @abstractmethod
    def patch(self, id: str, data: Any) -> Any:
        """Partially update the entity and return the new representation."""

    @abstractmethod
    def delete(self, id: str) -> Any:
        """Delete the entity; a truthy return signals success."""

    @abstractmethod
    def delete_list(self) -> Any:
        """Delete the whole collection; a truthy return signals success."""

    @abstractmethod
    def patch_list(self, data: Any) -> Any:
        """Create and/or update several entities; returns the collection."""

    @abstractmethod
    def replace_list(self, data: Any) -> Any:
        """Replace the whole collection; returns the new collection."""


class InMemoryResource(ResourceBackend):
    """
    Dict-backed ResourceBackend.

    Entities are dicts keyed by ``identifier_name``. Missing identifiers on
    create are generated by ``id_factory``. A lock guards the store since one
    backend instance serves concurrent requests.
    """

    def __init__(
        self,
        identifier_name: str = "id",
        id_factory: Optional[Callable[[], str]] = None,
        initial: Optional[Iterable[Mapping[str, Any]]] = None,
    ):
        self.identifier_name = identifier_name
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex[:12])
        self._store: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        for entity in initial or []:
            self._insert(dict(entity))

    # ── Helpers ───────────────────────────────────────────────────────────

    def _require_mapping(self, data: Any) -> Dict[str, Any]:
        if not isinstance(data, Mapping):
            raise UnprocessableError("Request body must be a JSON object")
        return dict(data)

    def _require_entity(self, data: Any) -> Dict[str, Any]:
        """A body that may carry its own identifier; the identifier must route back."""
        entity = self._require_mapping(data)
        key = entity.get(self.identifier_name)
        if key not in (None, "") and not is_path_segment(key):
            raise UnprocessableError(
                f"Identifier '{key}' cannot be used in a URL",
                context={"identifier": key},
            )
        return entity

    def _require_list(self, data: Any) -> list:
        if not isinstance(data, (list, tuple)):
            raise UnprocessableError("Request body must be a JSON array of objects")
        return [self._require_entity(item) for item in data]

    def _insert(self, entity: Dict[str, Any]) -> Dict[str, Any]:
        key = entity.get(self.identifier_name)
        if key in (None, ""):
            key = self._id_factory()
        key = str(key)
        entity[self.identifier_name] = key
        self._store[key] = entity
        return entity

    # ── Operations ────────────────────────────────────────────────────────

    def create(self, data: Any) -> Dict[str, Any]:
        entity = self._require_entity(data)
        with self._lock:
            key = entity.get(self.identifier_name)
            if key not in (None, "") and str(key) in self._store:
                raise ConflictError(f"Entity with ID '{key}' already exists")
            created = self._insert(entity)
        logger.debug("Created entity %s", created[self.identifier_name])
        return dict(created)

    def fetch(self, id: str) -> Optional[Dict[str, Any]]:
        entity = self._store.get(str(id))
        return dict(entity) if entity is not None else None

    def fetch_all(self, params: Optional[Mapping[str, Any]] = None) -> Paginator:
        with self._lock:
            entities = [dict(entity) for entity in self._store.values()]
        return Paginator(entities)

    def update(self, id: str, data: Any) -> Dict[str, Any]:
        entity = self._require_mapping(data)
        with self._lock:
            if str(id) not in self._store:
                raise NotFoundError(resource="entity", resource_id=str(id))
            entity[self.identifier_name] = str(id)
            self._store[str(id)] = entity
        return dict(entity)

    def patch(self, id: str, data: Any) -> Dict[str, Any]:
        changes = self._require_mapping(data)
        changes.pop(self.identifier_name, None)
        with self._lock:
            entity = self._store.get(str(id))
            if entity is None:
                raise NotFoundError(resource="entity", resource_id=str(id))
            entity.update(changes)
            return dict(entity)

    def delete(self, id: str) -> bool:
        with self._lock:
            return self._store.pop(str(id), None) is not None

    def delete_list(self) -> bool:
        with self._lock:
            self._store.clear()
        return True

    def patch_list(self, data: Any) -> Paginator:
        entities = self._require_list(data)
        with self._lock:
            for entity in entities:
                key = entity.get(self.identifier_name)
                if key not in (None, "") and str(key) in self._store:
                    self._store[str(key)].update(entity)
                else:
                    self._insert(entity)
        return self.fetch_all()

    def replace_list(self, data: Any) -> Paginator:
        entities = self._require_list(data)
        with self._lock:
            self._store.clear()
            for entity in entities:
                self._insert(entity)
        return self.fetch_all()
