import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence, TypeVar

T = TypeVar('T')


def ensure(value: Optional[T]) -> T:
    """Ensure a value is not None, raising RuntimeError if it is.

    Args:
        value: The value to check

    Returns:
        The value if it is not None

    Raises:
        RuntimeError: If the value is None
    """
    if value is None:
        raise RuntimeError("Value is None")
    return value


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """Split items into consecutive lists of at most size elements."""
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def normalize_body(body: Optional[str]) -> str:
    """Normalize a PR body for comparison."""
    return (body or "").replace("\r\n", "\n").strip()


class OutboundLimiter:
    """Caps how many outbound network calls may be in flight at once.

    GitHub treats bursts of parallel requests as abuse, so every push,
    ls-remote and GraphQL request takes a slot from the same semaphore.
    """

    def __init__(self, max_workers: int = 6):
        self.max_workers = max_workers
        self._semaphore = threading.BoundedSemaphore(max_workers)

    @contextmanager
    def slot(self) -> Iterator[None]:
        with self._semaphore:
            yield
