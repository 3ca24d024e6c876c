"""Base class for the local preference stores."""

import asyncio
import copy
import logging
from typing import Any, Callable, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from yearsync.database import get_preference, set_preference
from yearsync.utils.tasks import create_background_task

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

ChangeListener = Callable[[], None]


def decode_model_list(raw: Any, model: type[M]) -> list[M]:
    """Decode a stored JSON list into models, skipping unreadable entries."""
    if not isinstance(raw, list):
        return []

    decoded = []
    for item in raw:
        try:
            decoded.append(model.model_validate(item))
        except ValidationError:
            logger.debug(f"Skipping unreadable stored {model.__name__}")
    return decoded


class PreferenceStore(Generic[T]):
    """
    In-memory preference value with optional SQLite persistence.

    ``set`` replaces the value without telling anyone; it is what the sync
    engine uses when applying a remote document. ``update`` is the user-facing
    mutation path: it sets the value and then notifies change listeners so
    the change can be pushed to the cloud.
    """

    key: str = ""

    def __init__(self) -> None:
        self._value: T = self.normalize(self.default())
        self._listeners: list[ChangeListener] = []
        self._bound = False

    def default(self) -> T:
        raise NotImplementedError

    def normalize(self, value: T) -> T:
        return value

    def encode(self, value: T) -> Any:
        return value

    def decode(self, raw: Any) -> T:
        return raw

    def get(self) -> T:
        return copy.deepcopy(self._value)

    def set(self, value: T) -> T:
        self._value = self.normalize(value)
        self._persist()
        return self.get()

    def update(self, value: T) -> T:
        result = self.set(value)
        self._notify()
        return result

    def reset(self) -> T:
        return self.set(self.default())

    def subscribe(self, listener: ChangeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    def _persist(self) -> None:
        if not self._bound:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, preference '{self.key}' not persisted")
            return
        create_background_task(self.save(), f"save_preference_{self.key}")

    async def load(self) -> T:
        """Hydrate from the database and persist future changes."""
        raw = await get_preference(self.key)
        if raw is not None:
            self._value = self.normalize(self.decode(raw))
        self._bound = True
        return self.get()

    async def save(self) -> None:
        await set_preference(self.key, self.encode(self._value))
