from abc import ABC, abstractmethod
import hashlib
import json
import logging
import os
from pathlib import Path
import tempfile
from typing import Any, Dict, Optional
from .util import clamp


logger = logging.getLogger(__name__)


class Cache(ABC):
    """
    An abstraction of a response cache.

    A response cache has a relatively narrow scope: to remember the last successful response document for a cache key
    so that it can be offered again later. There is no expiry and no explicit deletion; a newer write simply replaces
    the older one. Implementations may raise on failure. The service treats every failure as a miss.
    """

    @abstractmethod
    def read(self, key: str) -> Optional[Any]:
        """
        Retrieve the document stored under `key`.

        @param key
          The cache key of a request.
        @return
          The stored JSON document, or `None` if there is none.
        """

    @abstractmethod
    def write(self, key: str, document: Any) -> None:
        """
        Store a JSON document under `key`, replacing whatever was there.

        @param key
          The cache key of a request.
        @param document
          A JSON-serializable object or list of objects.
        """

    def close(self):
        """
        Close any resources associated with the cache.
        """


class MemoryCache(Cache):
    """
    A process-local cache. Documents are copied through JSON so callers cannot mutate stored entries.
    """

    def __init__(self) -> None:
        self.__entries: Dict[str, str] = {}

    def read(self, key: str) -> Optional[Any]:
        serialized = self.__entries.get(key)
        if serialized is None:
            return None
        return json.loads(serialized)

    def write(self, key: str, document: Any) -> None:
        self.__entries[key] = json.dumps(document)


class CorruptEntry(Exception):
    def __init__(self, entry_path: Path):
        super().__init__()
        self.__entry_path = entry_path

    @property
    def entry_path(self) -> Path:
        return self.__entry_path


class FileCache(Cache):
    def __init__(self, directory: Path, cache_directory_levels: int) -> None:
        """
        Initialize the file cache.

        @param directory
          The path to the root directory of the cache.
        @param cache_directory_levels
          The number of subdirectory levels to use in the cache directory. This
          will be clamped to be between 0 and 20, respectively.
        """
        self.__directory = Path(directory)
        self.__entry_directory = self.__directory / 'entries'
        self.__cache_directory_levels = clamp(cache_directory_levels, 0, 20)

    def _get_path(self, key: str) -> Path:
        hashed = hashlib.sha256(key.encode('utf-8')).hexdigest()
        return self._split_path(hashed)

    def _split_path(self, path: str) -> Path:
        subdirectories = (list(path[:self.__cache_directory_levels])
                          + [path[self.__cache_directory_levels:]])
        return Path(*subdirectories)

    def _load_entry(self, entry_path: Path) -> Dict[str, Any]:
        """
        Read an entry file.

        @throws FileNotFoundError
            If there is no entry file.
        @throws CorruptEntry
            If the entry file could not be parsed.
        """
        try:
            with open(entry_path, 'r') as f:
                entry = json.load(f)
            return {'key': entry['key'], 'data': entry['data']}
        except (KeyError, TypeError, json.JSONDecodeError):
            raise CorruptEntry(entry_path)

    def read(self, key: str) -> Optional[Any]:
        entry_path = self.__entry_directory / self._get_path(key)
        try:
            logger.debug('Looking at the file system for a cache entry for {}'.format(key))
            entry = self._load_entry(entry_path)
        except CorruptEntry as e:
            logger.warning('Found a corrupt cache entry. Deleting the entry file {}'.format(e.entry_path))
            e.entry_path.unlink()
            return None
        except FileNotFoundError:
            logger.debug('No matching cache entry found.')
            return None

        if entry['key'] != key:
            logger.warning('Cache entry {} belongs to a different key: {}'.format(entry_path, entry['key']))
            return None
        return entry['data']

    def write(self, key: str, document: Any) -> None:
        entry_path = self.__entry_directory / self._get_path(key)
        entry_path.parent.mkdir(parents=True, exist_ok=True)

        # The entry is only ever replaced as a whole, so concurrent readers see either the old or the new document.
        fd, temp_path = tempfile.mkstemp(dir=str(entry_path.parent), suffix='.tmp')
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump({'key': key, 'data': document}, f)
            os.replace(temp_path, str(entry_path))
        except BaseException:
            os.unlink(temp_path)
            raise
        logger.debug('Wrote cache entry {} for {}'.format(entry_path, key))
