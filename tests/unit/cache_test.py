from ddt import ddt, data, unpack
import json
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest import TestCase

from apiservice.cache import FileCache, MemoryCache


KEY = 'GET https://example.com/users?page=1'


@ddt
class TestFileCache(TestCase):
    def setUp(self):
        self.__directory = TemporaryDirectory()
        self.directory = Path(self.__directory.name)
        self.cache = FileCache(self.directory, 5)

    def tearDown(self):
        self.cache.close()
        self.__directory.cleanup()

    def _entry_path(self, key: str) -> Path:
        return self.directory / 'entries' / self.cache._get_path(key)

    @data(
        {'id': 1, 'name': 'Ada'},
        [{'id': 1}, {'id': 2}],
        [],
        {},
    )
    def test_write_then_read(self, document):
        self.cache.write(KEY, document)
        self.assertEqual(document, self.cache.read(KEY))

    def test_read_missing_entry(self):
        self.assertIsNone(self.cache.read(KEY))

    def test_write_overwrites(self):
        self.cache.write(KEY, {'version': 1})
        self.cache.write(KEY, {'version': 2})

        self.assertEqual({'version': 2}, self.cache.read(KEY))
        # Only the entry itself remains, no temporary files.
        self.assertEqual([self._entry_path(KEY).name], [p.name for p in self._entry_path(KEY).parent.iterdir()])

    def test_keys_do_not_collide(self):
        self.cache.write(KEY, {'page': 1})
        self.cache.write('GET https://example.com/users?page=2', {'page': 2})

        self.assertEqual({'page': 1}, self.cache.read(KEY))
        self.assertEqual({'page': 2}, self.cache.read('GET https://example.com/users?page=2'))

    def test_entry_layout(self):
        self.cache.write(KEY, {'id': 1})

        path = self._entry_path(KEY)
        relative = path.relative_to(self.directory / 'entries')
        self.assertEqual(6, len(relative.parts), 'Five single character levels and the file')
        self.assertTrue(all(len(part) == 1 for part in relative.parts[:5]))
        with open(path, 'r') as f:
            self.assertEqual({'key': KEY, 'data': {'id': 1}}, json.load(f))

    @data(
        'not json at all',
        json.dumps({'data': {'id': 1}}),
        json.dumps([1, 2, 3]),
    )
    def test_corrupt_entry_is_deleted(self, contents):
        path = self._entry_path(KEY)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            f.write(contents)

        self.assertIsNone(self.cache.read(KEY))
        self.assertFalse(path.exists(), 'A corrupt entry file should be deleted')

    def test_entry_for_another_key_is_a_miss(self):
        path = self._entry_path(KEY)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump({'key': 'GET https://example.com/other', 'data': {'id': 1}}, f)

        self.assertIsNone(self.cache.read(KEY))

    @data(
        (-3, 0),
        (0, 0),
        (2, 2),
        (64, 20),
    )
    @unpack
    def test_directory_levels_are_clamped(self, levels, expected):
        cache = FileCache(self.directory, levels)
        self.assertEqual(expected + 1, len(cache._get_path(KEY).parts))


class TestMemoryCache(TestCase):
    def test_write_then_read(self):
        cache = MemoryCache()
        cache.write(KEY, [{'id': 1}])
        self.assertEqual([{'id': 1}], cache.read(KEY))

    def test_read_missing_entry(self):
        self.assertIsNone(MemoryCache().read(KEY))

    def test_last_write_wins(self):
        cache = MemoryCache()
        cache.write(KEY, {'version': 1})
        cache.write(KEY, {'version': 2})
        self.assertEqual({'version': 2}, cache.read(KEY))

    def test_stored_documents_are_copies(self):
        cache = MemoryCache()
        document = {'tags': ['a']}
        cache.write(KEY, document)
        document['tags'].append('b')

        read = cache.read(KEY)
        read['tags'].append('c')

        self.assertEqual({'tags': ['a']}, cache.read(KEY))
