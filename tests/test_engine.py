import io

import pytest

from slowgate import engine, framework
from slowgate.engine import Engine, Exchange, escape_path, header_field
from slowgate.uri import HTTPSURI, HTTPURI


def build_request(environ):
    exchange = Exchange(environ)
    request = framework.Request()
    exchange.prepare_connection(request)
    exchange.prepare_query_parameters(request)
    exchange.prepare_headers(request)
    exchange.prepare_path(request)
    return request


# connection


def test_connection_fields(make_environ):
    request = build_request(
        make_environ(
            REMOTE_ADDR="198.51.100.7",
            REMOTE_HOST="client.example.net",
            REMOTE_USER="alice",
            REQUEST_METHOD="POST",
            SERVER_PROTOCOL="HTTP/1.0",
        )
    )
    assert request.address == "198.51.100.7"
    assert request.hostname == "client.example.net"
    assert request.protocol == "HTTP/1.0"
    assert request.method == "POST"
    assert request.user == "alice"
    assert request.remote_user == "alice"


def test_hostname_is_optional(make_environ):
    request = build_request(make_environ())
    assert request.hostname is None
    assert request.user is None
    assert request.remote_user is None


@pytest.mark.parametrize(
    "scheme, secure", [("http", False), ("https", True), ("HTTP", False)]
)
def test_secure_flag_follows_url_scheme(make_environ, scheme, secure):
    request = build_request(make_environ(**{"wsgi.url_scheme": scheme}))
    assert request.secure is secure


# headers


@pytest.mark.parametrize(
    "key, field",
    [
        ("HTTP_HOST", "HOST"),
        ("HTTP_ACCEPT_LANGUAGE", "ACCEPT-LANGUAGE"),
        ("HTTP_X_FORWARDED_FOR", "X-FORWARDED-FOR"),
        ("HTTPS_X_CLIENT_CERT", "X-CLIENT-CERT"),
        ("CONTENT_TYPE", "CONTENT-TYPE"),
        ("CONTENT_LENGTH", "CONTENT-LENGTH"),
        ("COOKIE", "COOKIE"),
        ("COOKIE_JAR", "COOKIE-JAR"),
        ("HTTPS", "HTTPS"),
        ("http_x_lower", "http-x-lower"),
        ("Content_Md5", "Content-Md5"),
    ],
)
def test_header_field_normalization(key, field):
    assert header_field(key) == field


@pytest.mark.parametrize(
    "key",
    [
        "REQUEST_METHOD",
        "SERVER_NAME",
        "REMOTE_ADDR",
        "QUERY_STRING",
        "PATH_INFO",
        "wsgi.input",
        "wsgi.url_scheme",
        "X_HTTP_FOO",
    ],
)
def test_non_header_keys_are_ignored(key):
    assert header_field(key) is None


def test_prepare_headers(make_environ):
    request = build_request(
        make_environ(
            HTTP_HOST="example.com",
            HTTP_USER_AGENT="pytest",
            CONTENT_TYPE="text/plain",
            HTTP_COOKIE="a=1",
        )
    )
    headers = request.headers
    assert headers["Host"] == "example.com"
    assert headers["user-agent"] == "pytest"
    assert headers["Content-Type"] == "text/plain"
    assert headers["Cookie"] == "a=1"
    assert "SERVER-NAME" not in headers
    assert "REQUEST-METHOD" not in headers
    for name in headers:
        assert "_" not in name


# query parameters


def test_query_parameters_are_parsed(make_environ):
    request = build_request(
        make_environ(REQUEST_URI="/?a=1&b=2&b=3", QUERY_STRING="a=1&b=2&b=3")
    )
    assert request.query_parameters == {"a": "1", "b": ["2", "3"]}


def test_query_string_is_parsed_only_when_present(make_environ):
    class Recorder:
        def __init__(self):
            self.calls = []

        def parse_query_parameters(self, query_string):
            self.calls.append(query_string)

    request = Recorder()
    Exchange(make_environ(QUERY_STRING="")).prepare_query_parameters(request)
    environ = make_environ()
    del environ["QUERY_STRING"]
    Exchange(environ).prepare_query_parameters(request)
    assert request.calls == []
    Exchange(make_environ(QUERY_STRING="a=1")).prepare_query_parameters(
        request
    )
    assert request.calls == ["a=1"]


# request URI and base URI


def test_encoded_slash_is_preserved(make_environ):
    request = build_request(
        make_environ(
            SERVER_NAME="example.com",
            SERVER_PORT="80",
            SCRIPT_NAME="/app",
            REQUEST_URI="/app/foo%2Fbar?x=1",
            QUERY_STRING="x=1",
        )
    )
    assert str(request.uri) == "http://example.com/app/foo%2Fbar?x=1"
    assert str(request.base) == "http://example.com/app/"
    assert isinstance(request.uri, HTTPURI)
    assert request.uri.path == "/app/foo%2Fbar"
    assert request.uri.query == "x=1"


def test_unreserved_escapes_are_normalized(make_environ):
    request = build_request(make_environ(REQUEST_URI="/%7euser/a%20b/%41"))
    assert str(request.uri) == "http://example.com/~user/a%20b/A"


def test_reserved_escapes_round_trip(make_environ):
    request = build_request(make_environ(REQUEST_URI="/a%26b%3Dc%3Fd%40e"))
    assert str(request.uri) == "http://example.com/a%26b%3Dc%3Fd%40e"


def test_non_uri_characters_are_escaped(make_environ):
    request = build_request(make_environ(REQUEST_URI='/a b/"c"/%23'))
    assert str(request.uri) == "http://example.com/a%20b/%22c%22/%23"


def test_literal_question_mark_is_escaped():
    assert escape_path(b"a?b") == b"a%3Fb"
    assert escape_path(b"a/b c") == b"a/b%20c"


def test_leading_slashes_are_collapsed(make_environ):
    request = build_request(make_environ(REQUEST_URI="///foo/bar"))
    assert str(request.uri) == "http://example.com/foo/bar"


def test_query_string_is_appended_verbatim(make_environ):
    request = build_request(
        make_environ(REQUEST_URI="/s?q=a%20b+c", QUERY_STRING="q=a%20b+c")
    )
    assert str(request.uri) == "http://example.com/s?q=a%20b+c"


def test_host_header_wins_over_server_name(make_environ):
    request = build_request(
        make_environ(HTTP_HOST="www.example.org", SERVER_NAME="internal")
    )
    assert request.uri.host == "www.example.org"


def test_missing_server_port_defaults_to_80(make_environ):
    environ = make_environ()
    del environ["SERVER_PORT"]
    request = build_request(environ)
    assert str(request.uri) == "http://example.com/"


@pytest.mark.parametrize(
    "scheme, host, port, expected",
    [
        ("http", "example.com", "8080", "http://example.com:8080/"),
        ("http", "example.com", "80", "http://example.com/"),
        ("https", "example.com", "443", "https://example.com/"),
        ("https", "example.com:443", "443", "https://example.com/"),
        ("http", "example.com:80", "80", "http://example.com/"),
        ("http", "example.com:8000", "8080", "http://example.com:8000/"),
        ("https", "example.com", "8443", "https://example.com:8443/"),
        ("http", "example.com:443", "8080", "http://example.com:8080/"),
    ],
)
def test_port_suffix(make_environ, scheme, host, port, expected):
    request = build_request(
        make_environ(
            HTTP_HOST=host, SERVER_PORT=port, **{"wsgi.url_scheme": scheme}
        )
    )
    assert str(request.uri) == expected


def test_secure_request_builds_https_uris(make_environ):
    request = build_request(
        make_environ(SERVER_PORT="443", **{"wsgi.url_scheme": "https"})
    )
    assert isinstance(request.uri, HTTPSURI)
    assert isinstance(request.base, HTTPSURI)
    assert str(request.base) == "https://example.com/"


@pytest.mark.parametrize(
    "script_name, base",
    [
        ("", "http://example.com/"),
        ("/", "http://example.com/"),
        ("/app", "http://example.com/app/"),
        ("/app/", "http://example.com/app/"),
    ],
)
def test_base_uri_ends_with_slash(make_environ, script_name, base):
    request = build_request(make_environ(SCRIPT_NAME=script_name))
    assert str(request.base) == base


# body bridge


def test_read_chunk_forwards_to_input_stream(make_environ):
    exchange = Exchange(make_environ(**{"wsgi.input": io.BytesIO(b"abcdef")}))
    assert exchange.read_chunk(4) == b"abcd"
    assert exchange.read_chunk(4) == b"ef"
    assert exchange.read_chunk(4) == b""


def test_read_chunk_propagates_stream_errors(make_environ):
    class Broken:
        def read(self, *args):
            raise OSError("connection reset")

    exchange = Exchange(make_environ(**{"wsgi.input": Broken()}))
    with pytest.raises(OSError):
        exchange.read_chunk(10)


def test_write_accumulates_fragments(make_environ):
    exchange = Exchange(make_environ())
    exchange.write(b"Hello, ")
    exchange.write("world")
    assert exchange.buffer == [b"Hello, ", b"world"]


@pytest.mark.parametrize("value", [None, "", b""])
def test_empty_write_is_a_no_op(make_environ, value):
    exchange = Exchange(make_environ())
    exchange.write(b"data")
    exchange.write(value)
    assert exchange.buffer == [b"data"]


def test_finalize_body_leaves_buffer_alone(make_environ):
    exchange = Exchange(make_environ())
    exchange.write(b"data")
    exchange.finalize_body()
    assert exchange.buffer == [b"data"]


# response normalizer


def normalize(body, writes=()):
    exchange = Exchange({})
    c = framework.Context(framework.Application(), exchange)
    c.response.status = 201
    c.response.headers["Content-Type"] = "text/plain"
    c.response.headers.add("Set-Cookie", "a=1")
    c.response.headers.add("Set-Cookie", "b=2")
    c.response.body = body
    for data in writes:
        c.response.write(data)
    return exchange.response(c)


def test_buffered_writes_replace_empty_body():
    status, headers, body = normalize(b"", writes=[b"chunk1", "chunk2"])
    assert status == 201
    assert body == [b"chunk1chunk2"]


def test_empty_body_without_writes():
    assert normalize(b"")[2] == [b""]
    assert normalize("")[2] == [""]
    assert normalize(None)[2] == [b""]


def test_streaming_body_is_passed_through():
    stream = io.BytesIO(b"line1\nline2\n")
    status, headers, body = normalize(stream, writes=[b"ignored"])
    assert body is stream


def test_scalar_body_is_wrapped():
    assert normalize(b"payload")[2] == [b"payload"]
    assert normalize("payload", writes=[b"ignored"])[2] == ["payload"]


def test_chunk_list_body_is_kept():
    assert normalize([b"a", b"b"])[2] == [b"a", b"b"]
    assert normalize((b"a", b"b"))[2] == [b"a", b"b"]


def test_headers_are_drained_in_order():
    status, headers, body = normalize(b"x")
    assert headers == [
        ("Content-Type", "text/plain"),
        ("Set-Cookie", "a=1"),
        ("Set-Cookie", "b=2"),
    ]


# request cycle


class Hello(framework.Application):
    def handler(self, c):
        c.response.headers["Content-Type"] = "text/plain"
        c.response.body = f"Hello, {c.request.address}!"


class Writer(framework.Application):
    def handler(self, c):
        c.response.headers["Content-Type"] = "text/plain"
        c.response.write("part1,")
        c.response.write(b"part2")


class Broken(framework.Application):
    def handler(self, c):
        raise RuntimeError("database is gone\n")


def test_successful_cycle(make_environ, log):
    status, headers, body = Engine(Hello(log=log))(make_environ())
    assert status == 200
    assert headers == [
        ("Content-Type", "text/plain"),
        ("Content-Length", "18"),
    ]
    assert body == ["Hello, 192.0.2.10!"]
    assert log.errors == []
    assert log.flushed == 1


def test_cycle_with_buffered_writes(make_environ, log):
    status, headers, body = Engine(Writer(log=log))(make_environ())
    assert status == 200
    assert headers == [("Content-Type", "text/plain")]
    assert body == [b"part1,part2"]


def test_dispatch_failure_returns_fallback(make_environ, log):
    result = Engine(Broken(log=log))(make_environ())
    assert result == (
        500,
        [("Content-Type", "text/plain"), ("Content-Length", "11")],
        [b"Bad request"],
    )
    assert log.errors == ['Caught exception in engine "database is gone"']
    assert log.flushed == 1


def test_logged_error_loses_one_trailing_newline(make_environ, log):
    class Multiline(Hello):
        def handler(self, c):
            raise RuntimeError("first line\nsecond line\n\n")

    Engine(Multiline(log=log))(make_environ())
    assert log.errors == [
        'Caught exception in engine "first line\nsecond line\n"'
    ]


@pytest.mark.parametrize(
    "s, expected",
    [("a\n", "a"), ("a\n\n", "a\n"), ("a", "a"), ("", ""), ("\n", "")],
)
def test_chomp(s, expected):
    assert engine.chomp(s) == expected


def test_prepare_failure_returns_fallback(make_environ, log):
    environ = make_environ()
    del environ["SERVER_NAME"]
    status, headers, body = Engine(Hello(log=log))(environ)
    assert status == 500
    assert body == [b"Bad request"]
    assert len(log.errors) == 1


def test_finalize_failure_returns_fallback(make_environ, log):
    class BadFinalize(Hello):
        def finalize(self, c):
            raise ValueError("cannot finalize")

    status, headers, body = Engine(BadFinalize(log=log))(make_environ())
    assert status == 500
    assert log.errors == ['Caught exception in engine "cannot finalize"']


def test_log_without_flush_is_supported(make_environ):
    class ErrorOnly:
        def __init__(self):
            self.errors = []

        def error(self, msg):
            self.errors.append(msg)

    sink = ErrorOnly()
    status, headers, body = Engine(Broken(log=sink))(make_environ())
    assert status == 500
    assert len(sink.errors) == 1


def test_fallback_is_a_fresh_value(make_environ, log):
    first = Engine(Broken(log=log))(make_environ())
    first[1].append(("X-Extra", "1"))
    first[2].append(b"more")
    assert engine.bad_request_response() == (
        500,
        [("Content-Type", "text/plain"), ("Content-Length", "11")],
        [b"Bad request"],
    )


def test_buffers_do_not_leak_between_requests(make_environ, log):
    class WriteOnce(framework.Application):
        def handler(self, c):
            c.response.write(c.request.query_parameters["n"])

    app = Engine(WriteOnce(log=log))
    first = app(make_environ(REQUEST_URI="/?n=1", QUERY_STRING="n=1"))
    second = app(make_environ(REQUEST_URI="/?n=2", QUERY_STRING="n=2"))
    assert first[2] == [b"1"]
    assert second[2] == [b"2"]
