# -*- coding: utf-8 -*-
"""
    db.py: SQLAlchemy (asyncio) implementation of the persistence contracts

    - SAQueryBuilder: builds the select statement for a mapped class
    - SAModel: model handle, wraps a mapped class
    - SATransaction: transaction provider, the transaction token is the AsyncSession

    The AsyncSession must be created with expire_on_commit=False, cfr.
    https://docs.sqlalchemy.org/en/20/orm/extensions/asyncio.html#preventing-implicit-io-when-using-asyncsession
"""
import operator
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Sequence, TypeVar, Union
from sqlalchemy import select
from sqlalchemy import inspect as sqla_inspect
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_object_session, async_sessionmaker
from sqlalchemy.orm import Mapper, selectinload, with_parent
import sajsonapi
from .attr_parse import parse_attr
from .errors import NotFoundError
from .persistence import ALL

T = TypeVar("T")

# instance attribute holding the optional (meta) column values selected with the instance
EXTRA_ATTR = "_sajsonapi_extra"


def _in(column, value):
    if not isinstance(value, list):
        raise ValueError(f"Expected a list, got {value}")
    return column.in_(value)


def _not_in(column, value):
    if not isinstance(value, list):
        raise ValueError(f"Expected a list, got {value}")
    return column.not_in(value)


OPERATORS = {
    "=": operator.eq,
    "==": operator.eq,
    "!=": operator.ne,
    "<>": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "like": lambda column, value: column.like(value),
    "ilike": lambda column, value: column.ilike(value),
    "not like": lambda column, value: column.not_like(value),
    "in": _in,
    "not in": _not_in,
    "is": lambda column, value: column.is_(value),
    "is not": lambda column, value: column.is_not(value),
}


def _pk_attr(mapper: Mapper) -> str:
    """
    :return: name of the (first) primary key attribute
    """
    return mapper.get_property_by_column(mapper.primary_key[0]).key


def _coerce_id(mapper: Mapper, value: Any) -> Any:
    """
    convert a jsonapi id (string) to the primary key type
    raises ValueError if the id can't be converted
    """
    column = mapper.primary_key[0]
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    if isinstance(value, python_type):
        return value
    try:
        return python_type(value)
    except TypeError as exc:
        raise ValueError(str(exc))


class SAQueryBuilder:
    """
    Query builder for a mapped class, the query directives (filter, sort, pagination)
    are applied to it before the statement is executed
    """

    def __init__(self, cls: type) -> None:
        self.cls = cls
        self.mapper = sqla_inspect(cls)
        self.criteria: list = []
        self.ordering: list = []
        self.columns: dict = {}
        self._offset: Optional[int] = None
        self._limit: Optional[int] = None

    def column(self, name: str):
        """
        :param name: column attribute name or the name of an added column
        :return: column expression, raises ValueError for unknown columns
        """
        if name in self.columns:
            return self.columns[name]
        if name not in self.mapper.column_attrs:
            raise ValueError(f"Unknown column {self.cls.__name__}.{name}")
        return getattr(self.cls, name)

    def where(self, column: str, operator: str = "=", value: Any = None) -> "SAQueryBuilder":
        op = OPERATORS.get(str(operator).lower())
        if op is None:
            raise ValueError(f"Unknown operator {operator}")
        self.criteria.append(op(self.column(column), value))
        return self

    def filter(self, *expressions) -> "SAQueryBuilder":
        """
        add SQLAlchemy filter expressions
        """
        self.criteria += expressions
        return self

    def order_by(self, column: str, direction: str = "asc") -> "SAQueryBuilder":
        attr = self.column(column)
        self.ordering.append(attr.desc() if direction == "desc" else attr.asc())
        return self

    def offset(self, offset: int) -> "SAQueryBuilder":
        self._offset = offset
        return self

    def limit(self, limit: int) -> "SAQueryBuilder":
        self._limit = limit
        return self

    def add_column(self, name: str, expression) -> "SAQueryBuilder":
        """
        select an extra column with the instances, the value will be available in `SAModel.dump`
        """
        self.columns[name] = expression
        return self

    def statement(self):
        stmt = select(self.cls, *[expression.label(name) for name, expression in self.columns.items()])
        if self.criteria:
            stmt = stmt.where(*self.criteria)
        if self.ordering:
            stmt = stmt.order_by(*self.ordering)
        if self._offset:
            stmt = stmt.offset(self._offset)
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        return stmt


def loader_options(cls: type, with_related: Optional[Mapping[str, Any]]) -> list:
    """
    Create the loader options for the relationship paths in `with_related`
    See: https://docs.sqlalchemy.org/en/20/orm/queryguide/relationships.html

    :param cls: class we want to query
    :param with_related: dotted relationship path -> relationship filter (called with a query builder) or None
    :return: list of selectinload options
    """
    with_related = with_related or {}
    options = []
    for path in with_related:
        option = None
        current_cls = cls
        names = path.split(".")
        for i, rel_name in enumerate(names):
            mapper = sqla_inspect(current_cls)
            if rel_name not in mapper.relationships:
                sajsonapi.log.warning(f"Invalid relationship : {current_cls.__name__}.{rel_name}")
                option = None
                break
            target = mapper.relationships[rel_name].mapper.class_
            attr = getattr(current_cls, rel_name)
            rel_filter = with_related.get(".".join(names[: i + 1]))
            if rel_filter:
                builder = SAQueryBuilder(target)
                rel_filter(builder)
                if builder.criteria:
                    attr = attr.and_(*builder.criteria)
            option = option.selectinload(attr) if option is not None else selectinload(attr)
            current_cls = target
        if option is not None:
            options.append(option)
    return options


class SAModel:
    """
    Model handle for a SQLAlchemy mapped class
    """

    def __init__(self, cls: type, allow_client_generated_ids: bool = False) -> None:
        """
        :param cls: mapped class
        :param allow_client_generated_ids: accept the primary key in the attributes of a new instance
        """
        self.cls = cls
        self.mapper = sqla_inspect(cls)
        self.id_column = _pk_attr(self.mapper)
        self.allow_client_generated_ids = allow_client_generated_ids

    def __repr__(self) -> str:
        return f"<SAModel {self.cls.__name__}>"

    def query(self) -> SAQueryBuilder:
        return SAQueryBuilder(self.cls)

    def _relationship(self, rel: str):
        if rel not in self.mapper.relationships:
            raise ValueError(f"Unknown relationship {self.cls.__name__}.{rel}")
        return self.mapper.relationships[rel]

    def dump(self, instance: Any) -> dict[str, Any]:
        """
        :return: the loaded column values of `instance` (and the selected optional columns)
        """
        unloaded = sqla_inspect(instance).unloaded
        result = {attr.key: getattr(instance, attr.key) for attr in self.mapper.column_attrs if attr.key not in unloaded}
        result.update(instance.__dict__.get(EXTRA_ATTR, {}))
        return result

    def identity(self, instance: Any) -> Any:
        return getattr(instance, self.id_column)

    def has_identity(self, instance: Any) -> bool:
        return sqla_inspect(instance).has_identity

    def get(self, instance: Any, column: str) -> Any:
        return getattr(instance, column)

    def is_loaded(self, instance: Any, rel: str) -> bool:
        return rel not in sqla_inspect(instance).unloaded

    async def related(self, instance: Any, rel: str) -> Any:
        """
        :return: the related instance(s), they're loaded if that didn't happen yet
        """
        if not self.is_loaded(instance, rel):
            session = async_object_session(instance)
            if session is None:
                raise RuntimeError(f"Can't load {self.cls.__name__}.{rel}: the instance is detached")
            await session.refresh(instance, attribute_names=[rel])
        return getattr(instance, rel)

    def _values(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        """
        :return: the column values parsed from the jsonapi attributes, unknown attributes are ignored
        """
        result = {}
        for attr_name, attr_val in attributes.items():
            if attr_name not in self.mapper.column_attrs:
                sajsonapi.log.warning(f"Invalid attribute {self.cls.__name__}.{attr_name}")
                continue
            if attr_name == self.id_column and not self.allow_client_generated_ids:
                sajsonapi.log.warning(f"Client generated IDs are not allowed for {self.cls.__name__}")
                continue
            column = self.mapper.column_attrs[attr_name].columns[0]
            result[attr_name] = parse_attr(column, attr_val)
        return result

    async def _execute(self, builder: SAQueryBuilder, tx: AsyncSession, with_related: Optional[Mapping[str, Any]]) -> list:
        stmt = builder.statement().options(*loader_options(builder.cls, with_related))
        # refresh instances that are already in the identity map
        stmt = stmt.execution_options(populate_existing=True)
        result = await tx.execute(stmt)
        if not builder.columns:
            instances = list(result.scalars().all())
            # optional columns selected by an earlier query of this session
            for instance in instances:
                instance.__dict__.pop(EXTRA_ATTR, None)
            return instances

        instances = []
        for row in result.all():
            instance = row[0]
            instance.__dict__[EXTRA_ATTR] = dict(zip(builder.columns, row[1:]))
            instances.append(instance)
        return instances

    async def fetch(
        self,
        id: Any,
        tx: AsyncSession,
        query: Optional[Callable] = None,
        with_related: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Any]:
        """
        :return: the instance with the given id or None
        """
        try:
            id = _coerce_id(self.mapper, id)
        except ValueError:
            return None
        builder = self.query().where(self.id_column, "=", id)
        if query is not None:
            query(builder)
        instances = await self._execute(builder, tx, with_related)
        return instances[0] if instances else None

    async def fetch_all(
        self,
        tx: AsyncSession,
        query: Optional[Callable] = None,
        with_related: Optional[Mapping[str, Any]] = None,
    ) -> list:
        builder = self.query()
        if query is not None:
            query(builder)
        return await self._execute(builder, tx, with_related)

    async def fetch_related(
        self,
        instance: Any,
        rel: str,
        tx: AsyncSession,
        query: Optional[Callable] = None,
        with_related: Optional[Mapping[str, Any]] = None,
    ) -> list:
        """
        :return: the instances related to `instance` through `rel`, queried with `query`
        """
        target = self._relationship(rel).mapper.class_
        builder = SAQueryBuilder(target).filter(with_parent(instance, getattr(self.cls, rel)))
        if query is not None:
            query(builder)
        return await self._execute(builder, tx, with_related)

    async def create(self, attributes: Mapping[str, Any], tx: AsyncSession, instance: Any = None) -> Any:
        if instance is None:
            instance = self.cls()
        for attr_name, attr_val in self._values(attributes).items():
            setattr(instance, attr_name, attr_val)
        tx.add(instance)
        await tx.flush()
        await tx.refresh(instance)
        return instance

    async def patch(self, instance: Any, attributes: Mapping[str, Any], tx: AsyncSession) -> Any:
        for attr_name, attr_val in self._values(attributes).items():
            setattr(instance, attr_name, attr_val)
        await tx.flush()
        # relationships are expired as well, they'll be reloaded when needed
        await tx.refresh(instance)
        return instance

    async def delete(self, instance: Any, tx: AsyncSession) -> None:
        await tx.delete(instance)
        await tx.flush()

    async def attach(self, instance: Any, rel: str, ids: Sequence[Any], tx: AsyncSession) -> None:
        """
        add the instances with the given ids to the relationship
        raises NotFoundError if one of the ids doesn't exist
        """
        if not ids:
            return
        target_mapper = self._relationship(rel).mapper
        target = target_mapper.class_
        target_pk = _pk_attr(target_mapper)
        keys = []
        for rel_id in ids:
            try:
                keys.append(_coerce_id(target_mapper, rel_id))
            except ValueError:
                raise NotFoundError(f"{target.__name__} {rel_id} not found")

        result = await tx.execute(select(target).where(getattr(target, target_pk).in_(keys)))
        found = {str(getattr(item, target_pk)): item for item in result.scalars().all()}
        collection = await self.related(instance, rel)
        for rel_id in ids:
            item = found.get(str(rel_id))
            if item is None:
                raise NotFoundError(f"{target.__name__} {rel_id} not found")
            if item not in collection:
                collection.append(item)
        await tx.flush()

    async def detach(self, instance: Any, rel: str, ids: Union[Iterable[Any], str], tx: AsyncSession) -> None:
        """
        remove the instances with the given ids from the relationship, `ALL` removes everything
        """
        target_pk = _pk_attr(self._relationship(rel).mapper)
        collection = await self.related(instance, rel)
        if ids == ALL:
            collection.clear()
        else:
            remove = {str(rel_id) for rel_id in ids}
            for item in list(collection):
                if str(getattr(item, target_pk)) in remove:
                    collection.remove(item)
        await tx.flush()


class SATransaction:
    """
    Transaction provider: every unit of work runs in its own session and transaction
    """

    def __init__(self, sessionmaker: async_sessionmaker) -> None:
        self.sessionmaker = sessionmaker

    @classmethod
    def from_engine(cls, engine: AsyncEngine) -> "SATransaction":
        return cls(async_sessionmaker(engine, expire_on_commit=False))

    async def run(self, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """
        :param work: coroutine function called with the transaction token (the session)
        :return: the result of `work`, the transaction is committed
        """
        async with self.sessionmaker() as session:
            try:
                async with session.begin():
                    return await work(session)
            except Exception as exc:
                sajsonapi.log.debug(f"Transaction rolled back: {exc!r}")
                raise
