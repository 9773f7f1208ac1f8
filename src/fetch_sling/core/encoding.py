"""
Structured value encoder for query strings and form bodies.
"""
import dataclasses
import datetime
import enum
import logging
from typing import Any, Iterable, Mapping, Tuple

from pydantic import BaseModel

from ..errors import QueryEncodeError
from ..types import MultiMap

logger = logging.getLogger(__name__)

LOG_PREFIX = "[FetchSling:encoding]"

_SCALARS = (str, int, float)


class StructEncoder:
    """
    Encodes pydantic models, dataclasses and mappings into a multi-map.

    Model field aliases act as parameter names, None values are omitted,
    sequences become repeated parameters and nested structures are
    flattened as ``parent[child]``.
    """

    def encode(self, value: Any) -> MultiMap:
        result: MultiMap = {}
        for key, item in self._root_items(value):
            self._add(result, str(key), item)
        return result

    def _root_items(self, value: Any) -> Iterable[Tuple[Any, Any]]:
        if isinstance(value, BaseModel):
            return value.model_dump(mode="json", by_alias=True, exclude_none=True).items()
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return dataclasses.asdict(value).items()
        if isinstance(value, Mapping):
            return value.items()
        raise QueryEncodeError(
            f"cannot encode {type(value).__name__} as query values: "
            "expected a pydantic model, dataclass or mapping"
        )

    def _add(self, result: MultiMap, key: str, value: Any) -> None:
        if value is None:
            return
        if isinstance(value, (BaseModel, Mapping)) or (
            dataclasses.is_dataclass(value) and not isinstance(value, type)
        ):
            for child_key, child in self._root_items(value):
                self._add(result, f"{key}[{child_key}]", child)
            return
        if isinstance(value, (list, tuple, set, frozenset)):
            items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else value
            for item in items:
                self._add(result, key, item)
            return
        result.setdefault(key, []).append(self._scalar(key, value))

    def _scalar(self, key: str, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, enum.Enum):
            return self._scalar(key, value.value)
        if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
            return value.isoformat()
        if isinstance(value, _SCALARS):
            return str(value)
        logger.debug(f"{LOG_PREFIX} unsupported value for {key!r}: {type(value).__name__}")
        raise QueryEncodeError(
            f"cannot encode field {key!r} of type {type(value).__name__}"
        )
