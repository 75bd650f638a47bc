from unittest import mock
from urllib.parse import parse_qs, urlsplit

import requests

ALLOWED_DOMAIN = "example.com"
JWT_SECRET = "test-jwt-secret-not-for-production"


def fake_response(status_code=200, payload=None, invalid_json=False):
    resp = mock.Mock(spec=requests.Response)
    resp.status_code = status_code
    if invalid_json:
        resp.json.side_effect = ValueError("not json")
    else:
        resp.json.return_value = payload
    return resp


def query_of(url):
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}
