"""Canned HTTP responses for exercising remote fetches."""

import json


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, payload=None, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self._payload, str):
            return json.loads(self._payload)
        return self._payload


class FakeSession:
    """
    Replays queued responses in order and records every request.

    Exceptions in the queue are raised instead of returned. With
    repeat_last=True the final response is served for all later requests.
    """

    def __init__(self, *responses, repeat_last=False):
        self.responses = list(responses)
        self.repeat_last = repeat_last
        self.calls = []

    def push(self, payload=None, status_code=200):
        self.responses.append(FakeResponse(payload, status_code))
        return self

    def _next(self, method, url, **kwargs):
        self.calls.append({'method': method, 'url': url, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")

        if self.repeat_last and len(self.responses) == 1:
            response = self.responses[0]
        else:
            response = self.responses.pop(0)

        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next('GET', url, **kwargs)

    def post(self, url, **kwargs):
        return self._next('POST', url, **kwargs)

    @property
    def pages_requested(self):
        return [call['params']['page'] for call in self.calls]


def envelope(records, current_page=1, last_page=1, per_page=15, total=None):
    return {
        'total': len(records) if total is None else total,
        'per_page': per_page,
        'current_page': current_page,
        'last_page': last_page,
        'data': records,
    }


class AppSession:
    """Forwards fetcher requests to a Flask test client, dropping the domain."""

    def __init__(self, client, domain):
        self.client = client
        self.domain = domain.rstrip('/')
        self.calls = []

    def _path(self, url):
        assert url.startswith(self.domain), url
        return url[len(self.domain):]

    def post(self, url, params=None, json=None, timeout=None):
        self.calls.append({'method': 'POST', 'url': url, 'params': params, 'json': json})
        response = self.client.post(self._path(url), query_string=params, json=json)
        return FakeResponse(response.get_json(), response.status_code)

    def get(self, url, params=None, timeout=None):
        self.calls.append({'method': 'GET', 'url': url, 'params': params})
        response = self.client.get(self._path(url), query_string=params)
        return FakeResponse(response.get_json(), response.status_code)
