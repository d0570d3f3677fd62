"""Abstract base for message dump backends.

Defines the interface the retrieval loop uses to persist one message at a
time. Implementations (PersistFile, PersistSQLite) provide concrete storage.
"""

from abc import ABC, abstractmethod

from amqp_dump.message_model_dto import Message


class PersistBase(ABC):
    """Abstract base class for dump persistence.

    A backend is opened once per run, receives every fetched message with its
    counter, and is closed when the run ends. Usable as a context manager.
    """

    @abstractmethod
    def save(self, message: Message, counter: int) -> list[str]:
        """Persist one message. Returns the locations written (paths or row ids)."""
        pass

    def close(self) -> None:
        """Release any resources held by the backend."""
        return None

    def __enter__(self) -> "PersistBase":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
