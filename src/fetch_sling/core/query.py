"""
Query aggregation: merges the URL's own query with every query source.
"""
import re
from typing import Any, Iterable, Mapping, Optional, Sequence, Union
from urllib.parse import quote_plus, unquote_plus

import httpx

from ..errors import QueryEncodeError, URLParseError
from ..types import MultiMap, QueryEncoder

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

RawQuery = Union[httpx.QueryParams, Mapping[str, Any], Sequence[Any], str]


def parse_query(raw_query: str) -> MultiMap:
    """Parse a raw query string into an ordered multi-map."""
    values: MultiMap = {}
    for part in raw_query.split("&"):
        if not part:
            continue
        if ";" in part:
            raise URLParseError(raw_query, "invalid semicolon separator in query")
        key, _, value = part.partition("=")
        values.setdefault(_unescape(raw_query, key), []).append(_unescape(raw_query, value))
    return values


def encode_query(values: Mapping[str, Sequence[str]]) -> str:
    """Encode a multi-map as ``k=v&...`` with keys sorted and values in order."""
    parts = []
    for key in sorted(values):
        escaped_key = quote_plus(key)
        for value in values[key]:
            parts.append(f"{escaped_key}={quote_plus(value)}")
    return "&".join(parts)


def to_query_params(values: RawQuery) -> httpx.QueryParams:
    """Snapshot a raw key/value source as immutable QueryParams."""
    if isinstance(values, httpx.QueryParams):
        return values
    return httpx.QueryParams(values)


def query_params_to_multimap(params: httpx.QueryParams) -> MultiMap:
    values: MultiMap = {}
    for key, value in params.multi_items():
        values.setdefault(key, []).append(value)
    return values


def merge_query(
    raw_query: str,
    sources: Iterable[Any],
    encoder: QueryEncoder,
) -> str:
    """
    Merge the existing raw query and each source into one encoded query.

    QueryParams sources are used verbatim; every other source goes through
    `encoder`. Values are appended per key and never overwritten.
    """
    merged = parse_query(raw_query)
    for source in sources:
        for key, values in source_values(source, encoder).items():
            merged.setdefault(key, []).extend(values)
    return encode_query(merged)


def source_values(source: Any, encoder: Optional[QueryEncoder]) -> MultiMap:
    """Multi-map for a single query or form source."""
    if isinstance(source, httpx.QueryParams):
        return query_params_to_multimap(source)
    if encoder is None:
        raise QueryEncodeError(f"no encoder configured for {type(source).__name__}")
    try:
        encoded = encoder.encode(source)
    except QueryEncodeError:
        raise
    except Exception as e:
        raise QueryEncodeError(f"failed to encode {type(source).__name__}: {e}") from e
    return {str(key): [str(v) for v in vals] for key, vals in encoded.items()}


def _unescape(raw_query: str, text: str) -> str:
    if _BAD_ESCAPE.search(text):
        raise URLParseError(raw_query, f"invalid URL escape in {text!r}")
    try:
        return unquote_plus(text, errors="strict")
    except UnicodeDecodeError as e:
        raise URLParseError(raw_query, e) from e
