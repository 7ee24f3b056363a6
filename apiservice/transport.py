import logging
import threading
from typing import Optional, Tuple

import requests
from requests.auth import HTTPBasicAuth

from .config import LogOptions
from .errors import RequestCancelled, TransportError
from .model import Encoding, QUERY_METHODS, RawResult, RequestDescriptor


logger = logging.getLogger(__name__)


class Transport:
    """
    Sends a `RequestDescriptor` over a `requests.Session` and collects the raw response.

    Connection pooling, TLS and proxies are left to the session and its mounted adapters.
    """

    def __init__(self,
                 session: Optional[requests.Session] = None,
                 timeout: Tuple[float, float] = (60, 60),
                 log_options: LogOptions = LogOptions.DEFAULT,
                 chunk_size: int = 8192) -> None:
        self.__session = session if session is not None else requests.Session()
        self.__timeout = timeout
        self.__log_options = log_options
        self.__chunk_size = chunk_size

    @property
    def session(self) -> requests.Session:
        return self.__session

    def execute(self, descriptor: RequestDescriptor, cancelled: Optional[threading.Event] = None) -> RawResult:
        """
        Send a request, as a multipart upload if the descriptor has upload parts.

        @param descriptor
          The call to make.
        @param cancelled
          When set, the call is abandoned at the next opportunity: before sending, or between chunks of the body.
        @return
          The status, headers and full body of the response, whatever the status.
        @throws TransportError
          If no response could be obtained.
        @throws RequestCancelled
          If `cancelled` was set.
        """
        if descriptor.is_upload:
            return self.execute_upload(descriptor, cancelled)

        request = requests.Request(method=descriptor.method.upper(),
                                   url=descriptor.url,
                                   headers=dict(descriptor.headers),
                                   auth=self._auth(descriptor))
        parameters = dict(descriptor.parameters)
        if parameters:
            if descriptor.encoding is Encoding.JSON:
                request.json = parameters
            elif descriptor.encoding is Encoding.QUERY_STRING or request.method in QUERY_METHODS:
                request.params = parameters
            else:
                request.data = parameters
        return self._send(request, cancelled)

    def execute_upload(self, descriptor: RequestDescriptor,
                       cancelled: Optional[threading.Event] = None) -> RawResult:
        fields = {key: str(value) for key, value in descriptor.parameters.items()}
        files = [(part.name, (part.file_name, part.data, part.mime_type)) for part in descriptor.upload_parts]
        request = requests.Request(method=descriptor.method.upper(),
                                   url=descriptor.url,
                                   headers=dict(descriptor.headers),
                                   data=fields,
                                   files=files,
                                   auth=self._auth(descriptor))
        return self._send(request, cancelled)

    def close(self) -> None:
        self.__session.close()

    def _auth(self, descriptor: RequestDescriptor) -> Optional[HTTPBasicAuth]:
        credentials = descriptor.basic_auth
        if credentials is None:
            return None
        return HTTPBasicAuth(*credentials)

    def _send(self, request: requests.Request, cancelled: Optional[threading.Event]) -> RawResult:
        prepared = self.__session.prepare_request(request)
        if LogOptions.RAW_REQUEST in self.__log_options:
            logger.info('{} {} {}'.format(prepared.method, prepared.url, dict(prepared.headers)))

        self._check(cancelled)
        try:
            response = self.__session.send(prepared, stream=True, timeout=self.__timeout)
        except requests.RequestException as e:
            raise TransportError('{} {} failed: {}'.format(prepared.method, prepared.url, e)) from e

        try:
            chunks = []
            for chunk in response.iter_content(chunk_size=self.__chunk_size):
                self._check(cancelled)
                chunks.append(chunk)
            return RawResult(status_code=response.status_code,
                             headers=dict(response.headers),
                             body=b''.join(chunks),
                             url=response.url or prepared.url)
        except requests.RequestException as e:
            raise TransportError('Reading the response of {} {} failed: {}'.format(
                prepared.method, prepared.url, e)) from e
        finally:
            response.close()

    def _check(self, cancelled: Optional[threading.Event]) -> None:
        if cancelled is not None and cancelled.is_set():
            raise RequestCancelled('The request was cancelled')
