# Copyright (c) 2020 Wilhelm Shen. See LICENSE for details.

"""\
============================================
:mod:`slowgate.engine` -- The gateway engine
============================================

This module adapts an application of :mod:`slowgate.framework` to the
gateway protocol. The gateway server calls the :class:`Engine` with the
environment of a request and receives a tuple of three elements:

================= =======================================================
 **status**        integer status code
 **headers**       list of ``(name, value)`` tuples
 **body**          a list of chunks, or an object with ``readline()``
================= =======================================================

Every call creates a new :class:`Exchange` , which holds the environment
and the output buffer of that request only. So one engine can serve
concurrent requests.

Example::

    import slowgate.engine
    import slowgate.framework

    engine = slowgate.engine.Engine(slowgate.framework.Application())
    status, headers, body = \\
        engine(
            {
                   'REQUEST_METHOD': 'GET',
                      'REQUEST_URI': '/index.html',
                     'QUERY_STRING': '',
                      'SERVER_NAME': 'localhost',
                      'SERVER_PORT': '8080',
                  'SERVER_PROTOCOL': 'HTTP/1.1',
                      'REMOTE_ADDR': '127.0.0.1',
                  'wsgi.url_scheme': 'http',
                       'wsgi.input': io.BytesIO()
            }
        )

If the application fails, the error is written to ``application.log``
and the fixed response ``500 Bad request`` is returned instead.
"""

import re

from . import framework
from . import uri
from . import urlencode

__all__ = ['Engine', 'Exchange', 'bad_request_response', 'escape_path',
           'header_field']

#: environment keys starting with one of these prefixes carry a header
header_prefixes = ('HTTP', 'CONTENT', 'COOKIE')

#: the encoding of the native strings in the environment
environ_encoding = 'iso8859-1'

class Engine(object):

    (   "Engine("
            "application:slowgate.framework.Application"
        ")"
    )

    __slots__ = ['application']

    def __init__(self, application):
        self.application = application

    def __call__(self, environ):
        (   "__call__("
                "environ:dict"
            ") -> Tuple[int, List[Tuple[str, str]], Any]"
        )
        exchange = Exchange(environ)
        result   = self.application.handle_request(exchange)
        log      = self.application.log
        if isinstance(result, framework.Failure):
            error = chomp(str(result.error))
            log.error(f'Caught exception in engine "{error}"')
        flush = getattr(log, 'flush', None)
        if callable(flush):
            flush()
        if isinstance(result, framework.Failure):
            return bad_request_response()
        return exchange.response(result.context)

class Exchange(object):

    (   "Exchange("
            "environ:dict"
        ")" """

    The state of one request: the environment and the output buffer.
    """)

    __slots__ = ['buffer', 'environ']

    def __init__(self, environ):
        self.environ = environ
        self.buffer  = []

    def prepare_connection(self, request):
        (   "prepare_connection("
                "request:slowgate.framework.Request"
            ") -> None"
        )
        environ = self.environ
        request.address = environ['REMOTE_ADDR']
        if 'REMOTE_HOST' in environ:
            request.hostname = environ['REMOTE_HOST']
        request.protocol    = environ.get('SERVER_PROTOCOL')
        request.user        = environ.get('REMOTE_USER')
        request.remote_user = environ.get('REMOTE_USER')
        request.method      = environ.get('REQUEST_METHOD')
        request.secure      = 'https' == environ.get('wsgi.url_scheme')

    def prepare_headers(self, request):
        (   "prepare_headers("
                "request:slowgate.framework.Request"
            ") -> None"
        )
        headers = request.headers
        for key, value in self.environ.items():
            field = header_field(key)
            if field is not None:
                headers[field] = value

    def prepare_query_parameters(self, request):
        (   "prepare_query_parameters("
                "request:slowgate.framework.Request"
            ") -> None"
        )
        query_string = self.environ.get('QUERY_STRING')
        if query_string:
            request.parse_query_parameters(query_string)

    def prepare_path(self, request):
        (   "prepare_path("
                "request:slowgate.framework.Request"
            ") -> None" """

        Set the request URI and the base URI.

        The path comes from *REQUEST_URI* rather than *PATH_INFO* .
        Escaped reserved characters such as ``%2F`` are kept escaped,
        other escapes are decoded and then re-escaped.
        """)
        environ   = self.environ
        scheme    = 'https' if request.secure else 'http'
        host      = environ.get('HTTP_HOST') or environ.get('SERVER_NAME')
        port      = str(environ.get('SERVER_PORT') or 80)
        base_path = environ.get('SCRIPT_NAME') or '/'

        req_uri = environ['REQUEST_URI'].split('?', 1)[0]
        b_path  = \
            urlencode.safe_unquote(
                urlencode.as_bytes(req_uri, environ_encoding)
            ).lstrip(b'/')
        path    = escape_path(b_path).decode('ascii')

        # HTTP_HOST may include the default port
        host = regx_default_port.sub('', host)
        if port not in default_ports and ':' not in host:
            host = f'{host}:{port}'

        query_string = environ.get('QUERY_STRING')
        if query_string:
            request.uri = \
                uri.URI.new(f'{scheme}://{host}/{path}?{query_string}',
                            scheme)
        else:
            request.uri = uri.URI.new(f'{scheme}://{host}/{path}', scheme)

        if not base_path.endswith('/'):
            base_path += '/'
        request.base = uri.URI.new(f'{scheme}://{host}{base_path}', scheme)

    def read_chunk(self, *args):
        (   "read_chunk("
                "*args"
            ") -> bytes" """

        Read from the input stream of the request. Arguments, return
        value and errors are those of ``environ['wsgi.input'].read`` .
        """)
        return self.environ['wsgi.input'].read(*args)

    def write(self, data):
        (   "write("
                "data:Union[str, bytes]"
            ") -> None"
        )
        if data:
            self.buffer.append(
                urlencode.as_bytes(data, framework.http_content_encoding)
            )

    def finalize_body(self):
        """
        Does nothing, the body is sent by the gateway server.
        """

    def response(self, c):
        (   "response("
                "c:slowgate.framework.Context"
            ") -> Tuple[int, List[Tuple[str, str]], Any]"
        )
        response = c.response
        body     = response.representation
        if framework.EMPTY == body.kind and self.buffer:
            content = [b''.join(self.buffer)]
        elif framework.STREAMING == body.kind:
            content = body.value
        elif framework.CHUNKS == body.kind:
            content = list(body.value)
        elif body.value is None:
            content = [b'']
        else:
            content = [body.value]
        return response.status, response.headers.items(), content

def header_field(key):
    (   "header_field("
            "key:str"
        ") -> Optional[str]" """

    Return the header field name carried by the environment key `key` ,
    or `None` if the key is not a header.

        >>> header_field('HTTP_ACCEPT_LANGUAGE')
        'ACCEPT-LANGUAGE'
        >>> header_field('CONTENT_TYPE')
        'CONTENT-TYPE'
        >>> header_field('SERVER_NAME') is None
        True
    """)
    if not key.upper().startswith(header_prefixes):
        return None
    return regx_scheme_prefix.sub('', key, 1).replace('_', '-')

def escape_path(b_path):
    (   "escape_path("
            "b_path:bytes"
        ") -> bytes" """

    Escape the bytes of a path that are not URI characters. A literal
    ``?`` always becomes ``%3F`` , it must not start a query string.
    """)
    return urlencode.quote_uric(b_path).replace(b'?', b'%3F')

def chomp(s):
    (   "chomp("
            "s:str"
        ") -> str" """

    Remove one trailing newline from `s` .
    """)
    if s.endswith('\n'):
        return s[:-1]
    return s

def bad_request_response():
    (   "bad_request_response("
        ") -> Tuple[int, List[Tuple[str, str]], List[bytes]]"
    )
    return \
        (
            500,
            [('Content-Type', 'text/plain'), ('Content-Length', '11')],
            [b'Bad request']
        )

default_ports      = ('80', '443')
regx_default_port  = re.compile(r':(?:80|443)$')
regx_scheme_prefix = re.compile(r'^HTTPS?_')
