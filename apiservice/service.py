from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
import logging
from pathlib import Path
import threading
from typing import Any, List, Optional, Tuple

from .cache import Cache, FileCache
from .classifier import Classifier
from .config import Config, LogOptions
from .errors import RequestCancelled
from .model import Hooks, RawResult, RequestDescriptor
from .shape import Shape
from .transport import Transport


logger = logging.getLogger(__name__)

_MISS = object()


class PipelineRun:
    """
    The values produced by one call to `APIService.request()`.

    Iterating yields the cached payload first, if there is one, then the live payload unless it equals the cached one.
    A failed live request is raised from the iteration after any cached payload has been yielded.

    The live request and the cache read are already running when the run is created.
    """

    def __init__(self, descriptor: RequestDescriptor, shape: Shape, live: Future, cached: Optional[Future],
                 cancelled: threading.Event) -> None:
        self.__descriptor = descriptor
        self.__shape = shape
        self.__live = live
        self.__cached = cached
        self.__cancelled = cancelled
        self.__emissions = self._emissions()

    @property
    def descriptor(self) -> RequestDescriptor:
        return self.__descriptor

    @property
    def cancelled(self) -> bool:
        return self.__cancelled.is_set()

    def cancel(self) -> None:
        """
        Abandon the run. Returns immediately; an in-flight request stops at its next chunk.
        """
        self.__cancelled.set()
        self.__live.cancel()
        if self.__cached is not None:
            self.__cached.cancel()

    def __iter__(self):
        return self

    def __next__(self) -> Any:
        if self.__cancelled.is_set():
            raise StopIteration
        return next(self.__emissions)

    def close(self) -> None:
        """
        Cancel the run and release its iterator. Safe to call while another thread is iterating.
        """
        self.cancel()
        if not self.__emissions.gi_running:
            self.__emissions.close()

    def __enter__(self) -> 'PipelineRun':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def _emissions(self):
        try:
            last = _MISS
            if self.__cached is not None:
                value = self.__cached.result()
                if value is not _MISS:
                    last = value
                    yield value

            value = self.__live.result()
            if last is _MISS or not self.__shape.equal(last, value):
                yield value
        except (CancelledError, RequestCancelled):
            if not self.__cancelled.is_set():
                raise
        finally:
            if not self.__live.done():
                self.cancel()


class APIService:
    """
    Issues requests and offers their responses, optionally preceded by the last cached response for the same call.
    """

    def __init__(self,
                 transport: Optional[Transport] = None,
                 cache: Optional[Cache] = None,
                 classifier: Optional[Classifier] = None,
                 hooks: Optional[Hooks] = None,
                 config: Optional[Config] = None) -> None:
        self.config = config if config is not None else Config()
        self.transport = transport if transport is not None else Transport(timeout=self.config.timeout,
                                                                           log_options=self.config.log_options,
                                                                           chunk_size=self.config.chunk_size)
        self.cache = cache
        self.classifier = classifier if classifier is not None else Classifier(self.handle_response_error,
                                                                               self.config.log_options)
        self.hooks = hooks if hooks is not None else Hooks()
        self.__network = ThreadPoolExecutor(max_workers=self.config.max_workers,
                                            thread_name_prefix='apiservice-network')
        # Cache reads and writes never wait behind network calls.
        self.__storage = ThreadPoolExecutor(max_workers=self.config.cache_workers,
                                            thread_name_prefix='apiservice-cache')

    @property
    def log_options(self) -> LogOptions:
        return self.config.log_options

    def request(self, descriptor: RequestDescriptor, shape: Shape) -> PipelineRun:
        """
        Start a request.

        @param descriptor
          The call to make. With `use_cache` set the cache is read alongside the request, and a successful response is
          written back to it.
        @param shape
          The expected shape of the response, with the caller's decode and equality capabilities.
        @return
          A run yielding one or two decoded payloads. See `PipelineRun`.
        """
        cancelled = threading.Event()
        use_cache = descriptor.use_cache and self.cache is not None
        cached = self.__storage.submit(self._read_cache, descriptor, shape) if use_cache else None
        live = self.__network.submit(self._live, descriptor, shape, cancelled, use_cache)
        return PipelineRun(descriptor, shape, live, cached, cancelled)

    def request_one(self, descriptor: RequestDescriptor, shape: Shape) -> Any:
        """
        Run a request to completion and return the freshest payload.
        """
        values: List[Any] = list(self.request(descriptor, shape))
        if not values:
            raise RequestCancelled('The request was cancelled')
        return values[-1]

    # region Extension points

    def preprocess(self, descriptor: RequestDescriptor) -> RequestDescriptor:
        """
        Adjust a descriptor just before it is sent, e.g. to add an access token. Runs on a worker thread.
        """
        return descriptor

    def handle_request_error(self, error: Exception, descriptor: RequestDescriptor) -> Optional[RawResult]:
        """
        Called with every error of the live request, except cancellation. By default re-raises `error`.

        @param error
          The transport or classification error.
        @param descriptor
          The call that failed, as sent.
        @return
          A response to use instead, e.g. the result of retrying with a refreshed token. It is classified like the
          original response, then deduplicated against the cached value and cached. Returning `None` keeps `error`.
        """
        raise error

    def handle_response_error(self, status_code: int, json_object: Optional[dict],
                              json_array: Optional[List[dict]], body: bytes) -> Optional[Exception]:
        """
        The error mapper used when no classifier is given. Returns nothing, so every non-2xx response is an
        `UnknownStatus`.
        """
        return None

    # endregion

    def close(self) -> None:
        """
        Wait for in-flight requests and the cache writes they dispatch, then release the transport and the cache.
        """
        self.__network.shutdown(wait=True)
        self.__storage.shutdown(wait=True)
        self.transport.close()
        if self.cache is not None:
            self.cache.close()

    def __enter__(self) -> 'APIService':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def _live(self, descriptor: RequestDescriptor, shape: Shape, cancelled: threading.Event, use_cache: bool) -> Any:
        try:
            descriptor = self.preprocess(descriptor)
            if LogOptions.REQUEST in self.log_options:
                logger.info(descriptor.description(LogOptions.REQUEST_PARAMETERS in self.log_options))

            self.hooks.call('before_send', descriptor)
            try:
                result = self.transport.execute(descriptor, cancelled)
            except Exception as e:
                self.hooks.call('on_error', descriptor, e)
                raise
            self.hooks.call('on_success', descriptor, result)

            document, value = self._classify(result, shape)
        except RequestCancelled:
            raise
        except Exception as e:
            if LogOptions.ERROR in self.log_options:
                logger.error('{} failed: {!r}'.format(descriptor.description(), e))
            recovered = self.handle_request_error(e, descriptor)
            if recovered is None:
                raise
            logger.info('{} recovered with status {}'.format(descriptor.description(), recovered.status_code))
            document, value = self._classify(recovered, shape)

        if use_cache:
            if document is None:
                document = shape.empty_document()
            # The storage pool outlives every live request: close() drains the network pool first.
            self.__storage.submit(self._write_cache, descriptor.cache_key, document)
        return value

    def _classify(self, result: RawResult, shape: Shape) -> Tuple[Any, Any]:
        document = self.classifier.check(result)
        return document, self.classifier.decode(document, shape)

    def _read_cache(self, descriptor: RequestDescriptor, shape: Shape) -> Any:
        try:
            document = self.cache.read(descriptor.cache_key)
        except Exception:
            if LogOptions.ERROR in self.log_options:
                logger.exception('Reading the cache for {} failed'.format(descriptor.cache_key))
            return _MISS

        if document is None:
            return _MISS
        if not shape.accepts(document):
            logger.warning('Ignoring cached entry for {}: it is not a {}'.format(descriptor.cache_key, shape))
            return _MISS
        try:
            value = shape.decode(document)
        except Exception:
            logger.warning('Ignoring cached entry for {}: it could not be decoded'.format(descriptor.cache_key),
                           exc_info=True)
            return _MISS

        if LogOptions.CACHE in self.log_options:
            logger.info('[CACHE] {}'.format(document))
        return value

    def _write_cache(self, key: str, document: Any) -> None:
        try:
            self.cache.write(key, document)
        except Exception:
            if LogOptions.ERROR in self.log_options:
                logger.exception('Writing the cache for {} failed'.format(key))


def create(directory: Path, config: Optional[Config] = None) -> APIService:
    return APIService(cache=FileCache(directory, 5), config=config)
