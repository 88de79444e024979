import io

import pytest


class RecordingLog:
    """A log sink that keeps every message in memory."""

    def __init__(self):
        self.errors = []
        self.flushed = 0

    def error(self, msg):
        self.errors.append(msg)

    def flush(self):
        self.flushed += 1


@pytest.fixture
def log():
    return RecordingLog()


@pytest.fixture
def make_environ():
    def factory(**overrides):
        environ = {
            "REQUEST_METHOD": "GET",
            "REQUEST_URI": "/",
            "QUERY_STRING": "",
            "SCRIPT_NAME": "",
            "PATH_INFO": "/",
            "SERVER_NAME": "example.com",
            "SERVER_PORT": "80",
            "SERVER_PROTOCOL": "HTTP/1.1",
            "REMOTE_ADDR": "192.0.2.10",
            "wsgi.url_scheme": "http",
            "wsgi.input": io.BytesIO(),
        }
        environ.update(overrides)
        return environ

    return factory
