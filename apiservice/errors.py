from typing import Any, Optional


class APIError(Exception):
    """
    Base class of every error a pipeline run can end with.
    """


class TransportError(APIError):
    """
    The request did not produce a response: DNS, connection, TLS or timeout failure.

    The underlying `requests` exception is available as `__cause__`.
    """


class RequestCancelled(TransportError):
    pass


class InvalidResponseShape(APIError):
    """
    A 2xx response whose body could not be decoded into the expected shape.
    """


class UnknownStatus(APIError):
    def __init__(self, status_code: int) -> None:
        super().__init__('Unexpected status code {}'.format(status_code))
        self.__status_code = status_code

    @property
    def status_code(self) -> int:
        return self.__status_code


class DomainError(APIError):
    """
    A non-2xx response carrying an error body that the caller's error mapper recognized.
    """

    def __init__(self, code: Any, payload: Any, status_code: Optional[int] = None) -> None:
        super().__init__('{} ({})'.format(code, status_code) if status_code is not None else str(code))
        self.__code = code
        self.__payload = payload
        self.__status_code = status_code

    @property
    def code(self) -> Any:
        return self.__code

    @property
    def payload(self) -> Any:
        return self.__payload

    @property
    def status_code(self) -> Optional[int]:
        return self.__status_code
