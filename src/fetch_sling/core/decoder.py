"""
Response decoders: turn a completed response into a destination value.
"""
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from ..errors import DecodeError


class ResponseDecoder(ABC):
    """Response decoder interface."""

    @abstractmethod
    async def decode(self, response: httpx.Response, destination: Any) -> Any:
        """
        Decode the response body into an instance of `destination`.

        `destination` is a type or annotation (dict, a pydantic model,
        list[Model], ...). The caller owns closing the response.
        """
        ...


class JsonResponseDecoder(ResponseDecoder):
    """Reads the full body and validates it as JSON against the destination type."""

    async def decode(self, response: httpx.Response, destination: Any) -> Any:
        body = bytearray()
        try:
            async for chunk in response.aiter_bytes():
                body.extend(chunk)
        except httpx.HTTPError as e:
            raise DecodeError(response.status_code, bytes(body), e) from e

        try:
            return TypeAdapter(destination).validate_json(bytes(body))
        except ValidationError as e:
            raise DecodeError(response.status_code, bytes(body), e) from e
