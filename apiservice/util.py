import json
from typing import Any, Iterable, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def clamp(value, min, max):
    return sorted((min, value, max))[1]


def canonical_url(method: str, url: str, parameters: Optional[Mapping[str, Any]] = None) -> str:
    """
    Build the canonical form of a request, used to key cached responses.

    The query string of `url` is merged with `parameters` and the pairs are sorted so that the same call always maps to
    the same string, however the parameters were ordered or where they were written.

    @param method
      The HTTP method, e.g. "GET". Upper-cased in the result.
    @param url
      The request URL, which may already carry a query string.
    @param parameters
      Extra request parameters.
    @return
      A string of the form "GET https://host/path?a=1&b=2".
    """
    parts = urlsplit(url)
    pairs = parse_qsl(parts.query, keep_blank_values=True)
    pairs.extend(_flatten(parameters or {}))
    query = urlencode(sorted(pairs))
    location = urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path or '/', query, ''))
    return '{} {}'.format(method.upper(), location)


def _flatten(parameters: Mapping[str, Any]) -> Iterable[Tuple[str, str]]:
    for key, value in parameters.items():
        if isinstance(value, (list, tuple)):
            for item in value:
                yield str(key), _stringify(item)
        else:
            yield str(key), _stringify(value)


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, separators=(',', ':'))
    return str(value)


def parse_json(body: bytes) -> Any:
    """
    Parse a response body as JSON, returning `None` for an empty or unparseable body.
    """
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


def is_json_object(document: Any) -> bool:
    return isinstance(document, dict)


def is_json_array(document: Any) -> bool:
    return isinstance(document, list) and all(isinstance(item, dict) for item in document)
