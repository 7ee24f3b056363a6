"""
Defines the values that flow through a request pipeline.

These types are passive: they perform no validation and no I/O. Whoever builds
a descriptor is responsible for its contents.
"""

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

from .util import canonical_url


logger = logging.getLogger(__name__)


class Encoding(Enum):
    """
    How `RequestDescriptor.parameters` are put on the wire.
    """

    URL = 'url'
    """
    Query string for GET, HEAD and DELETE; form-encoded body for everything else.
    """

    QUERY_STRING = 'query_string'
    """
    Always the query string.
    """

    JSON = 'json'
    """
    A JSON body.
    """


QUERY_METHODS = frozenset({'GET', 'HEAD', 'DELETE'})


@dataclass(frozen=True)
class UploadPart:
    """
    One file of a multipart upload.
    """

    data: bytes = field(repr=False)
    name: str
    file_name: str
    mime_type: str


@dataclass(frozen=True)
class RequestDescriptor:
    """
    Describes one outbound call.
    """

    method: str
    """
    The HTTP method of the request. E.g., "GET".
    """

    url: str
    """
    The absolute URL of the endpoint.
    """

    parameters: Mapping[str, Any] = field(default_factory=dict)
    """
    Request parameters, placed according to `encoding`.
    """

    headers: Mapping[str, str] = field(default_factory=dict)

    encoding: Encoding = Encoding.URL

    user: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)

    upload_parts: Sequence[UploadPart] = ()
    """
    Files to send. When non-empty the request is sent as a multipart upload.
    """

    use_cache: bool = False
    """
    Whether the pipeline offers the last cached response before the live one, and caches the live one.
    """

    @property
    def is_upload(self) -> bool:
        return len(self.upload_parts) > 0

    @property
    def basic_auth(self) -> Optional[Tuple[str, str]]:
        if self.user is None or self.password is None:
            return None
        return self.user, self.password

    @property
    def cache_key(self) -> str:
        return canonical_url(self.method, self.url, self.parameters)

    def description(self, include_parameters: bool = False) -> str:
        """
        A single log line for this request.

        @param include_parameters
          Render parameter values. When false only the parameter names are shown.
        """
        line = '[{}] {}'.format(self.method.upper(), self.url)
        if not self.parameters:
            return line
        if include_parameters:
            return '{} {}'.format(line, dict(self.parameters))
        return '{} ({})'.format(line, ', '.join('{}=<redacted>'.format(key) for key in self.parameters))


@dataclass
class RawResult:
    """
    What the transport got back, before any interpretation.
    """

    status_code: int
    headers: Mapping[str, str]
    body: bytes = field(repr=False)
    url: str = ''


@dataclass
class Hooks:
    """
    Callbacks run around each network call, e.g. to toggle an activity indicator.

    Hooks are called synchronously on the thread performing the call. An exception raised by a hook is logged and
    otherwise ignored.
    """

    before_send: Optional[Callable[[RequestDescriptor], None]] = None
    on_success: Optional[Callable[[RequestDescriptor, RawResult], None]] = None
    on_error: Optional[Callable[[RequestDescriptor, Exception], None]] = None

    def call(self, name: str, *args) -> None:
        hook = getattr(self, name)
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            logger.exception('Hook {} failed'.format(name))
