from sajsonapi import Included, jsonapi_format_response


def _obj(type_name: str, id: str, **attributes) -> dict:
    return {"type": type_name, "id": id, "attributes": attributes, "relationships": {}}


def test_push_dedupes_by_type_and_id() -> None:
    included = Included()
    included.push(_obj("Users", "1", name="alice"))
    included.push(_obj("Books", "1", title="Dune"))
    included.push(_obj("Users", "2", name="bob"))
    included.push(_obj("Users", "1", name="alice v2"))

    assert len(included) == 3
    # the type and id order is the first-seen order, the last pushed object wins
    assert included.to_output_list() == [
        _obj("Users", "1", name="alice v2"),
        _obj("Users", "2", name="bob"),
        _obj("Books", "1", title="Dune"),
    ]
    assert [data["id"] for data in included] == ["1", "2", "1"]


def test_empty() -> None:
    included = Included()

    assert not included
    assert included.to_output_list() == []


def test_format_response() -> None:
    included = Included()
    assert jsonapi_format_response([]) == {"data": [], "jsonapi": {"version": "1.0"}}
    assert jsonapi_format_response(None, included, {}) == {"data": None, "jsonapi": {"version": "1.0"}}

    included.push(_obj("Users", "1"))
    result = jsonapi_format_response([], included, {"self": "/books"}, {"count": 0})
    assert result["included"] == [_obj("Users", "1")]
    assert result["links"] == {"self": "/books"}
    assert result["meta"] == {"count": 0}
