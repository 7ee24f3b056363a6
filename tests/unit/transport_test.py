from io import BytesIO
import json
import threading
from unittest import TestCase

from ddt import ddt, data, unpack
import requests
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict

from apiservice.config import LogOptions
from apiservice.errors import RequestCancelled, TransportError
from apiservice.model import Encoding, RequestDescriptor, UploadPart
from apiservice.transport import Transport


class StubAdapter(HTTPAdapter):
    """
    Answers every request with a canned response instead of going to the network.
    """

    def __init__(self, status=200, body=b'', headers=None, error=None) -> None:
        super().__init__()
        self.status = status
        self.body = body
        self.headers = headers or {}
        self.error = error
        self.sent = []

    def send(self, request: requests.PreparedRequest, **kw) -> requests.Response:
        self.sent.append((request, kw))
        if self.error is not None:
            raise self.error

        response = requests.Response()
        response.status_code = self.status
        response.reason = 'OK'
        response.headers = CaseInsensitiveDict(self.headers)
        response.raw = BytesIO(self.body)
        response.url = request.url
        response.request = request
        return response


def transport_with(adapter: StubAdapter, **kw) -> Transport:
    session = requests.Session()
    session.mount('https://', adapter)
    return Transport(session=session, **kw)


@ddt
class TestTransport(TestCase):
    def test_returns_raw_result(self):
        adapter = StubAdapter(status=201, body=b'{"id": 1}', headers={'Content-Type': 'application/json'})
        transport = transport_with(adapter)

        result = transport.execute(RequestDescriptor('POST', 'https://example.com/users'))

        self.assertEqual(201, result.status_code)
        self.assertEqual(b'{"id": 1}', result.body)
        self.assertEqual('application/json', result.headers['Content-Type'])
        self.assertEqual('https://example.com/users', result.url)

    def test_reads_body_in_chunks(self):
        body = b'x' * 1000
        transport = transport_with(StubAdapter(body=body), chunk_size=7)

        self.assertEqual(body, transport.execute(RequestDescriptor('GET', 'https://example.com/big')).body)

    def test_non_2xx_is_not_an_error(self):
        transport = transport_with(StubAdapter(status=500, body=b'oops'))

        result = transport.execute(RequestDescriptor('GET', 'https://example.com/users'))

        self.assertEqual(500, result.status_code)

    def test_passes_timeout_and_streams(self):
        adapter = StubAdapter()
        transport = transport_with(adapter, timeout=(3, 9))

        transport.execute(RequestDescriptor('GET', 'https://example.com/users'))

        _, kw = adapter.sent[0]
        self.assertEqual((3, 9), kw['timeout'])
        self.assertTrue(kw['stream'])

    @data(
        ('GET', Encoding.URL, 'https://example.com/users?page=2', None),
        ('DELETE', Encoding.URL, 'https://example.com/users?page=2', None),
        ('POST', Encoding.URL, 'https://example.com/users', 'page=2'),
        ('POST', Encoding.QUERY_STRING, 'https://example.com/users?page=2', None),
        ('PUT', Encoding.JSON, 'https://example.com/users', b'{"page": 2}'),
    )
    @unpack
    def test_encoding(self, method, encoding, expected_url, expected_body):
        adapter = StubAdapter()
        transport = transport_with(adapter)

        transport.execute(RequestDescriptor(method, 'https://example.com/users', parameters={'page': 2},
                                            encoding=encoding))

        request, _ = adapter.sent[0]
        self.assertEqual(method, request.method)
        self.assertEqual(expected_url, request.url)
        self.assertEqual(expected_body, request.body)

    def test_json_content_type(self):
        adapter = StubAdapter()
        transport_with(adapter).execute(RequestDescriptor('POST', 'https://example.com/users',
                                                          parameters={'name': 'Ada'}, encoding=Encoding.JSON))

        request, _ = adapter.sent[0]
        self.assertEqual('application/json', request.headers['Content-Type'])
        self.assertEqual({'name': 'Ada'}, json.loads(request.body))

    def test_sends_headers(self):
        adapter = StubAdapter()
        transport_with(adapter).execute(RequestDescriptor('GET', 'https://example.com/users',
                                                          headers={'X-Api-Key': 'k'}))

        request, _ = adapter.sent[0]
        self.assertEqual('k', request.headers['X-Api-Key'])

    def test_basic_auth(self):
        adapter = StubAdapter()
        transport_with(adapter).execute(RequestDescriptor('GET', 'https://example.com/me',
                                                          user='user', password='pass'))

        request, _ = adapter.sent[0]
        self.assertEqual('Basic dXNlcjpwYXNz', request.headers['Authorization'])

    def test_no_auth_without_credentials(self):
        adapter = StubAdapter()
        transport_with(adapter).execute(RequestDescriptor('GET', 'https://example.com/me', user='user'))

        request, _ = adapter.sent[0]
        self.assertNotIn('Authorization', request.headers)

    def test_upload(self):
        adapter = StubAdapter()
        descriptor = RequestDescriptor(
            'POST', 'https://example.com/avatar',
            parameters={'title': 'Me', 'public': True},
            upload_parts=[UploadPart(data=b'PNGDATA', name='avatar', file_name='me.png', mime_type='image/png')])

        transport_with(adapter).execute(descriptor)

        request, _ = adapter.sent[0]
        self.assertTrue(request.headers['Content-Type'].startswith('multipart/form-data; boundary='))
        self.assertIn(b'name="title"', request.body)
        self.assertIn(b'Me', request.body)
        self.assertIn(b'name="public"', request.body)
        self.assertIn(b'True', request.body)
        self.assertIn(b'name="avatar"; filename="me.png"', request.body)
        self.assertIn(b'Content-Type: image/png', request.body)
        self.assertIn(b'PNGDATA', request.body)
        self.assertNotIn('?', request.url)

    @data(
        requests.ConnectionError('DNS lookup failed'),
        requests.Timeout('timed out'),
        requests.exceptions.SSLError('bad certificate'),
    )
    def test_transport_error(self, error):
        transport = transport_with(StubAdapter(error=error))

        with self.assertRaises(TransportError) as context:
            transport.execute(RequestDescriptor('GET', 'https://example.com/users'))

        self.assertIs(error, context.exception.__cause__)

    def test_cancelled_before_send(self):
        adapter = StubAdapter()
        cancelled = threading.Event()
        cancelled.set()

        with self.assertRaises(RequestCancelled):
            transport_with(adapter).execute(RequestDescriptor('GET', 'https://example.com/users'), cancelled)

        self.assertEqual([], adapter.sent)

    def test_logs_raw_request(self):
        transport = transport_with(StubAdapter(), log_options=LogOptions.RAW_REQUEST)

        with self.assertLogs('apiservice.transport', level='INFO') as logs:
            transport.execute(RequestDescriptor('GET', 'https://example.com/users'))

        self.assertTrue(logs.output[0].startswith('INFO:apiservice.transport:GET https://example.com/users {'))
