from .cache import Cache, FileCache, MemoryCache
from .classifier import Classifier, code_error_mapper
from .config import Config, LogOptions
from .errors import APIError, DomainError, InvalidResponseShape, RequestCancelled, TransportError, UnknownStatus
from .model import Encoding, Hooks, RawResult, RequestDescriptor, UploadPart
from .service import APIService, PipelineRun, create
from .shape import Many, Shape, Single
from .transport import Transport
