"""
Tests for query aggregation and the structured encoder.
"""
import datetime
import enum
from dataclasses import dataclass
from typing import List, Optional

import httpx
import pytest
from pydantic import BaseModel, Field

from fetch_sling.core.encoding import StructEncoder
from fetch_sling.core.query import encode_query, merge_query, parse_query, source_values
from fetch_sling.errors import QueryEncodeError, URLParseError


class Color(enum.Enum):
    RED = "red"


class Paging(BaseModel):
    limit: int = 10
    after: Optional[str] = None


class IssueFilter(BaseModel):
    state: str = "open"
    labels: List[str] = Field(default_factory=list)
    per_page: int = Field(default=30, alias="perPage")
    paging: Paging = Field(default_factory=Paging)

    model_config = {"populate_by_name": True}


@dataclass
class Point:
    x: int
    y: int
    label: Optional[str] = None


class TestParseQuery:

    def test_parse_query(self):
        assert parse_query("a=1&b=x+y&a=2&c=%2F") == {"a": ["1", "2"], "b": ["x y"], "c": ["/"]}

    def test_empty(self):
        assert parse_query("") == {}

    def test_key_without_value(self):
        assert parse_query("flag") == {"flag": [""]}

    def test_semicolon_rejected(self):
        with pytest.raises(URLParseError):
            parse_query("a=1;b=2")

    def test_bad_escape_rejected(self):
        with pytest.raises(URLParseError):
            parse_query("a=%4")


class TestEncodeQuery:

    def test_sorted_keys_values_in_order(self):
        assert encode_query({"b": ["2", "1"], "a": ["x y"]}) == "a=x+y&b=2&b=1"

    def test_escaping(self):
        assert encode_query({"q": ["a&b=c/d"]}) == "q=a%26b%3Dc%2Fd"

    def test_empty(self):
        assert encode_query({}) == ""


class TestMergeQuery:

    def test_merge_appends(self):
        sources = [httpx.QueryParams({"a": "1"}), {"a": "2", "b": "3"}]
        assert merge_query("a=0", sources, StructEncoder()) == "a=0&a=1&a=2&b=3"

    def test_raw_source_bypasses_encoder(self):
        class FailingEncoder:
            def encode(self, value):
                raise AssertionError("encoder must not be called")

        sources = [httpx.QueryParams([("k", "v")])]
        assert merge_query("", sources, FailingEncoder()) == "k=v"

    def test_encoder_failure_is_wrapped(self):
        class BrokenEncoder:
            def encode(self, value):
                raise RuntimeError("boom")

        with pytest.raises(QueryEncodeError, match="boom"):
            merge_query("", [{"a": "1"}], BrokenEncoder())

    def test_source_values_without_encoder(self):
        with pytest.raises(QueryEncodeError):
            source_values({"a": "1"}, None)


class TestStructEncoder:

    def test_model_uses_aliases_and_skips_none(self):
        values = StructEncoder().encode(IssueFilter(labels=["bug", "ui"]))
        assert values == {
            "state": ["open"],
            "labels": ["bug", "ui"],
            "perPage": ["30"],
            "paging[limit]": ["10"],
        }

    def test_dataclass(self):
        assert StructEncoder().encode(Point(1, 2)) == {"x": ["1"], "y": ["2"]}

    def test_mapping_scalars(self):
        values = StructEncoder().encode(
            {
                "flag": True,
                "off": False,
                "color": Color.RED,
                "day": datetime.date(2024, 1, 2),
                "ratio": 0.5,
                "ids": {3, 1},
            }
        )
        assert values == {
            "flag": ["true"],
            "off": ["false"],
            "color": ["red"],
            "day": ["2024-01-02"],
            "ratio": ["0.5"],
            "ids": ["1", "3"],
        }

    def test_nested_mapping(self):
        assert StructEncoder().encode({"f": {"a": "1", "b": None}}) == {"f[a]": ["1"]}

    def test_rejects_non_struct(self):
        with pytest.raises(QueryEncodeError):
            StructEncoder().encode(["a", "b"])

    def test_rejects_unsupported_value(self):
        with pytest.raises(QueryEncodeError, match="'blob'"):
            StructEncoder().encode({"blob": object()})
