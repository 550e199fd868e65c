"""
In-memory query builder and model handle used by the unit tests
"""
from types import SimpleNamespace
from typing import Any, Optional


class FakeQueryBuilder:
    """records the calls made by Query / Paginate"""

    def __init__(self, columns: Optional[set[str]] = None) -> None:
        self.columns = columns
        self.calls: list[tuple] = []

    def _check(self, column: str) -> None:
        if self.columns is not None and column not in self.columns:
            raise ValueError(f"Unknown column {column}")

    def where(self, column: str, operator: str = "=", value: Any = None) -> "FakeQueryBuilder":
        self._check(column)
        self.calls.append(("where", column, operator, value))
        return self

    def order_by(self, column: str, direction: str = "asc") -> "FakeQueryBuilder":
        self._check(column)
        self.calls.append(("order_by", column, direction))
        return self

    def offset(self, offset: int) -> "FakeQueryBuilder":
        self.calls.append(("offset", offset))
        return self

    def limit(self, limit: int) -> "FakeQueryBuilder":
        self.calls.append(("limit", limit))
        return self


class FakeModel:
    """
    Model handle for SimpleNamespace instances:
    relationships that aren't set as attributes are "lazy", they're loaded from `instance.lazy`
    """

    def __init__(self, columns: list[str], id_column: str = "id") -> None:
        self.columns = columns
        self.id_column = id_column
        self.loads: list[str] = []
        self.calls: list[tuple] = []
        self.fail_on: Optional[str] = None

    def dump(self, instance: Any) -> dict:
        return {column: getattr(instance, column) for column in self.columns if hasattr(instance, column)}

    def identity(self, instance: Any) -> Any:
        return instance.id

    def has_identity(self, instance: Any) -> bool:
        return getattr(instance, "id", None) is not None

    def get(self, instance: Any, column: str) -> Any:
        return getattr(instance, column, None)

    def is_loaded(self, instance: Any, rel: str) -> bool:
        return rel in vars(instance)

    async def related(self, instance: Any, rel: str) -> Any:
        if not self.is_loaded(instance, rel):
            self.loads.append(rel)
            setattr(instance, rel, getattr(instance, "lazy", {}).get(rel))
        return getattr(instance, rel)

    def _record(self, *call: Any) -> None:
        self.calls.append(call)
        if self.fail_on == call[0]:
            raise RuntimeError(f"{call[0]} failed")

    async def create(self, attributes: dict, tx: Any, instance: Any = None) -> Any:
        self._record("create", dict(attributes), tx)
        return SimpleNamespace(id=100, **attributes)

    async def patch(self, instance: Any, attributes: dict, tx: Any) -> Any:
        self._record("patch", dict(attributes), tx)
        for key, val in attributes.items():
            setattr(instance, key, val)
        return instance

    async def attach(self, instance: Any, rel: str, ids: list, tx: Any) -> None:
        self._record("attach", rel, list(ids), tx)

    async def detach(self, instance: Any, rel: str, ids: Any, tx: Any) -> None:
        self._record("detach", rel, ids, tx)
