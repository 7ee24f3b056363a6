from dataclasses import dataclass
from enum import Flag
from typing import Tuple


class LogOptions(Flag):
    """
    Independent switches, one per category of diagnostic output.
    """

    NONE = 0
    REQUEST = 1 << 0
    REQUEST_PARAMETERS = 1 << 1
    RAW_REQUEST = 1 << 2
    RESPONSE_STATUS = 1 << 3
    URL_RESPONSE = 1 << 4
    RESPONSE_DATA = 1 << 5
    ERROR = 1 << 6
    CACHE = 1 << 7

    DEFAULT = REQUEST | RESPONSE_STATUS | ERROR
    ALL = (REQUEST | REQUEST_PARAMETERS | RAW_REQUEST | RESPONSE_STATUS | URL_RESPONSE | RESPONSE_DATA | ERROR
           | CACHE)


@dataclass
class Config:
    connect_timeout: float = 60
    """
    Seconds to wait for a connection.
    """

    read_timeout: float = 60
    """
    Seconds to wait between bytes of the response.
    """

    log_options: LogOptions = LogOptions.DEFAULT

    max_workers: int = 4
    """
    Size of the thread pool running live requests.
    """

    cache_workers: int = 2
    """
    Size of the separate thread pool running cache reads and writes.
    """

    chunk_size: int = 8192
    """
    Response bodies are read in chunks of this size so that a run can be cancelled mid-download.
    """

    @property
    def timeout(self) -> Tuple[float, float]:
        return self.connect_timeout, self.read_timeout
