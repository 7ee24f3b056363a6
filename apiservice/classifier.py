import logging
from typing import Any, Callable, List, Optional

from .config import LogOptions
from .errors import DomainError, InvalidResponseShape, UnknownStatus
from .model import RawResult
from .shape import Shape
from .util import is_json_array, is_json_object, parse_json


logger = logging.getLogger(__name__)


ErrorMapper = Callable[[int, Optional[dict], Optional[List[dict]], bytes], Optional[Exception]]
"""
Called as `mapper(status_code, json_object, json_array, body)` for a non-2xx response. At most one of `json_object` and
`json_array` is set, depending on what the body parsed to. Returns the error to raise, or `None` when the body is not
recognized.
"""


def code_error_mapper(field: str = 'code') -> ErrorMapper:
    """
    Build an error mapper for APIs that report errors as an object with a code, e.g. `{"code": "NOT_FOUND"}`.
    """
    def mapper(status_code, json_object, json_array, body):
        if json_object is not None and field in json_object:
            return DomainError(json_object[field], json_object, status_code)
        return None
    return mapper


class Classifier:
    """
    Turns a raw result into either a decoded payload or a typed error.
    """

    def __init__(self, error_mapper: Optional[ErrorMapper] = None,
                 log_options: LogOptions = LogOptions.DEFAULT) -> None:
        self.__error_mapper = error_mapper
        self.__log_options = log_options

    def classify(self, result: RawResult, shape: Shape) -> Any:
        """
        Classify a raw result.

        @param result
          The response to classify.
        @param shape
          The expected shape of a successful response.
        @return
          The decoded payload of a 2xx response. A 2xx response without a parseable body gives `shape.empty()`.
        @throws InvalidResponseShape
          If a 2xx body is JSON of the wrong shape or fails to decode.
        @throws Exception
          Whatever the error mapper returns for a non-2xx response, or `UnknownStatus` if it returns nothing.
        """
        return self.decode(self.check(result), shape)

    def check(self, result: RawResult) -> Any:
        """
        The status half of `classify()`: return the parsed body of a 2xx response, or raise the mapped error.

        @return
          The parsed JSON document, or `None` if the body is empty or not JSON.
        """
        document = parse_json(result.body)

        if 200 <= result.status_code < 300:
            self._log_response(result, document, succeeded=True)
            return document

        error = self._map_error(result, document)
        self._log_response(result, document, succeeded=False)
        raise error

    def decode(self, document: Any, shape: Shape) -> Any:
        """
        The shape half of `classify()`.
        """
        try:
            if document is None:
                return shape.empty()
            if not shape.accepts(document):
                raise InvalidResponseShape('Expected {}, got {}'.format(shape, type(document).__name__))
            return shape.decode(document)
        except InvalidResponseShape:
            raise
        except Exception as e:
            raise InvalidResponseShape('Could not decode response as {}: {}'.format(shape, e)) from e

    def _map_error(self, result: RawResult, document: Any) -> Exception:
        if self.__error_mapper is not None:
            json_object = document if is_json_object(document) else None
            json_array = document if is_json_array(document) else None
            error = self.__error_mapper(result.status_code, json_object, json_array, result.body)
            if error is not None:
                return error
        return UnknownStatus(result.status_code)

    def _log_response(self, result: RawResult, document: Any, succeeded: bool) -> None:
        options = self.__log_options
        level = logging.INFO if succeeded else logging.WARNING

        if LogOptions.RESPONSE_STATUS in options:
            logger.log(level, '[{}] {}'.format(result.status_code, result.url))

        if LogOptions.URL_RESPONSE in options:
            logger.log(level, '{} {}'.format(result.status_code, dict(result.headers)))

        if LogOptions.RESPONSE_DATA in options or (not succeeded and LogOptions.ERROR in options):
            logger.log(level, '[RESPONSE DATA] {}'.format(document if document is not None else result.body))
