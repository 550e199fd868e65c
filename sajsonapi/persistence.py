"""
Persistence contracts

The serializer and the actions only talk to the persistence layer through these interfaces,
`sajsonapi.db` implements them with SQLAlchemy (asyncio).
Every call that hits the database is a coroutine and takes the transaction token explicitly.
"""
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Protocol, Sequence, TypeVar, Union

# detach(..., ALL) removes every item from a relationship
ALL = "all"

T = TypeVar("T")
QueryFn = Callable[[Any], Any]


class QueryBuilder(Protocol):
    def where(self, column: str, operator: str, value: Any) -> "QueryBuilder": ...

    def order_by(self, column: str, direction: str = "asc") -> "QueryBuilder": ...

    def offset(self, offset: int) -> "QueryBuilder": ...

    def limit(self, limit: int) -> "QueryBuilder": ...


class ModelHandle(Protocol):
    id_column: str

    def dump(self, instance: Any) -> dict[str, Any]: ...

    def identity(self, instance: Any) -> Any: ...

    def has_identity(self, instance: Any) -> bool: ...

    def get(self, instance: Any, column: str) -> Any: ...

    def is_loaded(self, instance: Any, rel: str) -> bool: ...

    async def related(self, instance: Any, rel: str) -> Any: ...

    async def fetch(
        self, id: Any, tx: Any, query: Optional[QueryFn] = None, with_related: Optional[Mapping[str, Any]] = None
    ) -> Optional[Any]: ...

    async def fetch_all(
        self, tx: Any, query: Optional[QueryFn] = None, with_related: Optional[Mapping[str, Any]] = None
    ) -> list[Any]: ...

    async def fetch_related(
        self,
        instance: Any,
        rel: str,
        tx: Any,
        query: Optional[QueryFn] = None,
        with_related: Optional[Mapping[str, Any]] = None,
    ) -> list[Any]: ...

    async def create(self, attributes: Mapping[str, Any], tx: Any, instance: Any = None) -> Any: ...

    async def patch(self, instance: Any, attributes: Mapping[str, Any], tx: Any) -> Any: ...

    async def delete(self, instance: Any, tx: Any) -> None: ...

    async def attach(self, instance: Any, rel: str, ids: Sequence[Any], tx: Any) -> None: ...

    async def detach(self, instance: Any, rel: str, ids: Union[Iterable[Any], str], tx: Any) -> None: ...


class TransactionProvider(Protocol):
    async def run(self, work: Callable[[Any], Awaitable[T]]) -> T:
        """
        open a transaction, pass its token to `work`, commit on success and roll back on failure
        """
        ...
