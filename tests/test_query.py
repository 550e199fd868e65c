from types import SimpleNamespace

import pytest

from sajsonapi import BadRequest, Query, Registry, SortField

from fakes import FakeModel, FakeQueryBuilder


def _query(registry: Registry, type_name: str = "Books", **params: str) -> Query:
    return Query(registry, registry.get_res(type_name), params)


@pytest.mark.parametrize(
    "raw, clauses",
    [
        ('[["title", "like", "D%"]]', [("title", "like", "D%")]),
        ('[["title", "Dune"]]', [("title", "=", "Dune")]),
        ('[[{"title": "Dune", "id": 1}]]', [("title", "=", "Dune"), ("id", "=", 1)]),
        ('[["id", "in", [1, 2]], ["title", "!=", null]]', [("id", "in", [1, 2]), ("title", "!=", None)]),
    ],
)
def test_filter_clauses(fake_registry: Registry, raw: str, clauses: list) -> None:
    query = _query(fake_registry, filter=raw)
    qb = FakeQueryBuilder()

    query.apply(qb)

    assert qb.calls == [("where", *clause) for clause in clauses]


@pytest.mark.parametrize("raw", ["not-json", '{"title": "x"}', "[[]]", '[["a", "b", "c", "d"]]', "[1]"])
def test_bad_filter(fake_registry: Registry, raw: str) -> None:
    with pytest.raises(BadRequest) as exc_info:
        _query(fake_registry, filter=raw)

    assert raw in exc_info.value.detail
    assert exc_info.value.status_code == 400


def test_filter_on_unknown_column(fake_registry: Registry) -> None:
    query = _query(fake_registry, filter='[["nope", 1]]')

    with pytest.raises(BadRequest):
        query.apply(FakeQueryBuilder(columns={"id", "title"}))


def test_relationship_filters(fake_registry: Registry) -> None:
    query = _query(fake_registry, include="tags", **{"filter[tags]": '[["label", "python"]]'})

    assert list(query.rel_filters) == ["tags"]
    rel_filter = query.with_related["tags"]
    qb = FakeQueryBuilder()
    rel_filter(qb)
    assert qb.calls == [("where", "label", "=", "python")]


def test_include_paths_are_independent(fake_registry: Registry) -> None:
    query = _query(fake_registry, "Users", include="books,books.author")

    assert query.included == {"books": True, "books.author": True}
    assert query.is_included("books")
    assert query.is_included("author", ["books"])
    assert not query.is_included("tags", ["books"])
    assert query.is_included("books.author")

    query = _query(fake_registry, "Users", include="books")
    assert not query.is_included("books.author")
    assert not query.is_included("author", ["books"])

    query = _query(fake_registry, "Users", include="books.author")
    assert not query.is_included("books")
    assert query.is_included("author", ["books"])


def test_invalid_include_is_skipped(fake_registry: Registry) -> None:
    query = _query(fake_registry, include="author,nope,author.nope")

    assert query.included == {"author": True}


def test_default_include(fake_registry: Registry) -> None:
    # relationships flagged "included" are included unless the include parameter is sent
    assert _query(fake_registry, "Covers").included == {"book": True}
    assert _query(fake_registry, "Covers", include="").included == {}
    assert _query(fake_registry, "Covers", include="book.tags").included == {"book.tags": True}


def test_with_related(fake_registry: Registry) -> None:
    query = _query(fake_registry, include="author")

    assert query.with_related == {"cover": None, "author": None}


def test_sort(fake_registry: Registry) -> None:
    query = _query(fake_registry, "Users", sort="-name, email")

    assert query.sort == [SortField("name", "desc"), SortField("email", "asc")]
    qb = FakeQueryBuilder()
    query.apply(qb)
    assert qb.calls == [("order_by", "name", "desc"), ("order_by", "email", "asc")]


def test_sort_on_relationship(fake_registry: Registry) -> None:
    with pytest.raises(BadRequest) as exc_info:
        _query(fake_registry, sort="author.name")

    assert "author.name" in exc_info.value.detail


def test_sort_on_unknown_column(fake_registry: Registry) -> None:
    query = _query(fake_registry, sort="nope")

    with pytest.raises(BadRequest) as exc_info:
        query.apply(FakeQueryBuilder(columns={"title"}))

    assert exc_info.value.detail == "Cannot sort on nope"


def test_fields(fake_registry: Registry) -> None:
    query = _query(fake_registry, **{"fields[Books]": "title, author", "fields[Nope]": "x"})

    assert query.fields == {"Books": ["title", "author"]}
    data = {
        "type": "Books",
        "id": "1",
        "attributes": {"title": "Dune", "isbn": "123"},
        "relationships": {"author": {}, "tags": {}},
        "meta": {"created": "2020"},
    }
    trimmed = query.trim_fields(fake_registry.get_res("Books"), data)
    assert trimmed == {"type": "Books", "id": "1", "attributes": {"title": "Dune"}, "relationships": {"author": {}}}


def test_fields_for_other_type_are_untouched(fake_registry: Registry) -> None:
    query = _query(fake_registry, **{"fields[Users]": "name"})
    data = {"type": "Books", "id": "1", "attributes": {"title": "Dune"}, "relationships": {}}

    assert query.trim_fields(fake_registry.get_res("Books"), dict(data)) == data


def test_meta() -> None:
    registry = Registry(
        {
            "Books": {
                "model": FakeModel(["id", "title"]),
                "special_columns": {"optional": {"votes": lambda qb: qb.where("votes_table", "=", "joined")}},
            }
        }
    )
    params = {"meta": "votes", "filter[votes]": '[["votes", ">", 3]]', "filter": '[["title", "Dune"]]', "sort": "-votes"}
    query = Query(registry, registry.get_res("Books"), params)

    assert query.meta == ["votes"]
    qb = FakeQueryBuilder()
    query.apply(qb)
    assert qb.calls == [
        ("where", "title", "=", "Dune"),
        ("where", "votes_table", "=", "joined"),
        ("where", "votes", ">", 3),
        ("order_by", "votes", "desc"),
    ]

    with pytest.raises(BadRequest) as exc_info:
        Query(registry, registry.get_res("Books"), {"meta": "likes"})
    assert "likes" in exc_info.value.detail


def test_apply_order() -> None:
    """
    filter -> hook -> resource query -> sort
    """

    def hook(qb, query, context):
        qb.calls.append(("hook", query.action, context.user))
        return qb

    def resource_query(qb):
        qb.calls.append(("resource",))
        return qb

    registry = Registry(
        {"Books": {"model": FakeModel(["id", "title"]), "query": resource_query, "hooks": {"index": hook}}}
    )
    context = SimpleNamespace(user="alice")
    params = {"filter": '[["title", "Dune"]]', "sort": "title"}
    qb = FakeQueryBuilder()

    Query(registry, registry.get_res("Books"), params, "index", context).apply(qb)

    assert qb.calls == [("where", "title", "=", "Dune"), ("hook", "index", "alice"), ("resource",), ("order_by", "title", "asc")]

    # the hook only runs for its own action
    qb = FakeQueryBuilder()
    Query(registry, registry.get_res("Books"), {}, "fetch", context).apply(qb)
    assert qb.calls == [("resource",)]
