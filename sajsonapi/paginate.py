"""
http://jsonapi.org/format/#fetching-pagination

We use page[offset] and page[limit], where
offset is the number of records to offset by prior to returning resources.

Pagination links MUST appear in the links object that corresponds to a collection:
- first: the first page of data
- prev: the previous page of data
- next: the next page of data

The "next" link is a heuristic: it's added whenever a full page was returned
(counting may take > 1s for a table with millions of records)
"""
from typing import Any, Mapping, Optional, Sized
from urllib.parse import urlencode
from .config import get_config
from .errors import BadRequest

OFFSET_PARAM = "page[offset]"
LIMIT_PARAM = "page[limit]"


class Paginate:
    """
    Offset/limit pagination of a single request
    """

    def __init__(
        self,
        params: Mapping[str, str],
        base_path: str,
        default_limit: Optional[int] = None,
        max_limit: Optional[int] = None,
    ) -> None:
        """
        :param params: raw request query parameters
        :param base_path: path of the paginated collection, used to build the links
        :param default_limit: limit used when no page[limit] was requested
        :param max_limit: maximum page[limit], None means no maximum
        """
        self.params = dict(params)
        self.base_path = base_path
        self.raw_offset = self.params.get(OFFSET_PARAM)
        self.raw_limit = self.params.get(LIMIT_PARAM)

        if default_limit is None:
            default_limit = get_config("DEFAULT_PAGE_LIMIT")
        if max_limit is None:
            max_limit = get_config("MAX_PAGE_LIMIT")
        self.max_limit = None if max_limit is None else self._parse_int(max_limit)

        self.offset = 0
        if self.raw_offset:
            self.offset = max(self._parse_int(self.raw_offset), 0)
        self.limit = self._resolve_limit(default_limit)

    @staticmethod
    def _parse_int(value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise BadRequest(f"Pagination Value Error: {value}")

    def _resolve_limit(self, default_limit: Any) -> Optional[int]:
        """
        :return: the page limit, None when the client may fetch everything
        """
        if self.raw_limit == get_config("PAGE_UNLIMITED"):
            # "none" is only honored when there's no maximum
            return self.max_limit

        raw_limit = self.raw_limit if self.raw_limit else default_limit
        limit = None if raw_limit is None else self._parse_int(raw_limit)
        if limit is not None and limit <= 0:
            # same as a missing page[limit]
            limit = None if default_limit is None else self._parse_int(default_limit)
        if self.max_limit is not None and (limit is None or limit > self.max_limit):
            limit = self.max_limit
        return limit

    def query(self, qb: Any) -> Any:
        """
        :param qb: query builder
        :return: the query builder with offset and limit applied
        """
        if self.offset:
            qb.offset(self.offset)
        if self.limit is not None:
            qb.limit(self.limit)
        return qb

    def get_links(self, collection: Sized) -> dict[str, str]:
        """
        :param collection: the fetched page
        :return: pagination links
        """
        links = {
            # self reproduces the request as-is, including the raw page[limit]
            "self": self._get_link(self.params),
            "first": self._get_link_at(0),
        }
        if self.limit is not None and len(collection) >= self.limit:
            links["next"] = self._get_link_at(self.offset + self.limit)
        if self.offset > 0:
            links["prev"] = self._get_link_at(max(self.offset - (self.limit or self.offset), 0))
        return links

    def _get_link_at(self, offset: int) -> str:
        params = dict(self.params)
        if offset == 0:
            params.pop(OFFSET_PARAM, None)
        else:
            params[OFFSET_PARAM] = str(offset)
        return self._get_link(params)

    def _get_link(self, params: Mapping[str, str]) -> str:
        query_string = urlencode(params, safe="[],")
        if query_string:
            return f"{self.base_path}?{query_string}"
        return self.base_path
