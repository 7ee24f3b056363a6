"""
The shapes a decoded payload can take: a single object, or a sequence of objects.

A shape carries the caller's capabilities for its item type: how to decode one
JSON object into an item, and how to compare two items. The pipeline uses
`accepts` to check a JSON document before decoding it, `decode` to build the
payload, `equal` to suppress a live value identical to the cached one, and
`empty` for a successful response without a body.
"""

from abc import ABC, abstractmethod
import operator
from typing import Any, Callable, Generic, List, Optional, TypeVar

from .util import is_json_array, is_json_object


T = TypeVar('T')

Decoder = Callable[[dict], T]
Equality = Callable[[T, T], bool]


def _identity(document):
    return document


class Shape(ABC, Generic[T]):
    def __init__(self, decode: Optional[Decoder] = None, equal: Optional[Equality] = None) -> None:
        """
        @param decode
          Turns one JSON object into an item. May raise on a malformed object. Defaults to returning the object.
        @param equal
          Compares two items. Defaults to `==`.
        """
        self._decode_item = decode or _identity
        self._equal_items = equal or operator.eq

    @abstractmethod
    def accepts(self, document: Any) -> bool:
        """
        Whether a parsed JSON document has this shape.
        """

    @abstractmethod
    def decode(self, document: Any) -> Any:
        """
        Decode a JSON document for which `accepts()` is true.
        """

    @abstractmethod
    def equal(self, left: Any, right: Any) -> bool:
        pass

    @abstractmethod
    def empty(self) -> Any:
        """
        The payload of a successful response with no content.
        """

    @abstractmethod
    def empty_document(self) -> Any:
        """
        The JSON document cached for a successful response with no content.
        """


class Single(Shape[T]):
    def __init__(self, decode: Optional[Decoder] = None, equal: Optional[Equality] = None,
                 empty: Optional[Callable[[], T]] = None) -> None:
        super().__init__(decode, equal)
        self.__empty = empty

    def accepts(self, document: Any) -> bool:
        return is_json_object(document)

    def decode(self, document: Any) -> T:
        return self._decode_item(document)

    def equal(self, left: T, right: T) -> bool:
        return self._equal_items(left, right)

    def empty(self) -> T:
        if self.__empty is not None:
            return self.__empty()
        return self._decode_item({})

    def empty_document(self) -> dict:
        return {}

    def __repr__(self) -> str:
        return 'Single()'


class Many(Shape[T]):
    def accepts(self, document: Any) -> bool:
        return is_json_array(document)

    def decode(self, document: Any) -> List[T]:
        return [self._decode_item(item) for item in document]

    def equal(self, left: List[T], right: List[T]) -> bool:
        if len(left) != len(right):
            return False
        return all(self._equal_items(a, b) for a, b in zip(left, right))

    def empty(self) -> List[T]:
        return []

    def empty_document(self) -> list:
        return []

    def __repr__(self) -> str:
        return 'Many()'
