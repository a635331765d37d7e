"""
llmbridge - Stream Sources

Event and payload sources may be plain iterables (lists in tests, sync
generators) or async iterables (decoders reading from httpx).
"""

from typing import AsyncIterable, AsyncIterator, Iterable, TypeVar, Union

T = TypeVar("T")

Source = Union[Iterable[T], AsyncIterable[T]]


def is_async_source(source: object) -> bool:
    return hasattr(source, "__aiter__")


async def aiterate(source: Source) -> AsyncIterator[T]:
    """Iterate a sync or async source asynchronously."""
    if is_async_source(source):
        async for item in source:
            yield item
    else:
        for item in source:
            yield item
