# Copyright (c) 2020 Wilhelm Shen. See LICENSE for details.

"""\
===============================================
:mod:`slowgate.wsgi` -- Hosting on WSGI servers
===============================================

:class:`WSGIApplication` turns an :class:`slowgate.engine.Engine` into a
standard WSGI application, so it can be served by `gevent.pywsgi` or any
other WSGI server.

Example::

    import gevent.pywsgi
    import slowgate.engine
    import slowgate.framework
    import slowgate.wsgi

    app = \\
        slowgate.wsgi.WSGIApplication(
            slowgate.engine.Engine(slowgate.framework.Application())
        )
    gevent.pywsgi.WSGIServer(
        ('127.0.0.1', 8080),
        app,
        handler_class=slowgate.wsgi.RequestURIHandler
    ).serve_forever()

With :class:`RequestURIHandler` the engine sees the request target as it
was sent. Without it *REQUEST_URI* is rebuilt from the decoded
*PATH_INFO* , see :func:`request_uri` .
"""

import gevent.pywsgi
import http.client

from . import framework
from . import urlencode

__all__ = ['RequestURIHandler', 'StreamIterator', 'WSGIApplication',
           'request_uri', 'status_line']

class WSGIApplication(object):

    (   "WSGIApplication("
            "engine:slowgate.engine.Engine"
        ")"
    )

    __slots__ = ['engine']

    def __init__(self, engine):
        self.engine = engine

    def __call__(self, environ, start_response):
        if 'REQUEST_URI' not in environ:
            environ = dict(environ, REQUEST_URI=request_uri(environ))
        status, headers, body = self.engine(environ)
        start_response(
            status_line(status),
            [(str(name), str(value)) for name, value in headers]
        )
        if isinstance(body, (list, tuple)):
            return [as_chunk(chunk) for chunk in body]
        return StreamIterator(body)

class RequestURIHandler(gevent.pywsgi.WSGIHandler):

    """
    The request handler of `gevent.pywsgi.WSGIServer` used by the
    startup script. It keeps the request target as received in
    *REQUEST_URI* , *PATH_INFO* is already percent-decoded and can not
    tell ``%2F`` from ``/`` .
    """

    def get_environ(self):
        environ = super().get_environ()
        environ['REQUEST_URI'] = self.path
        return environ

class StreamIterator(object):

    (   "StreamIterator("
            "stream:Any"
        ")" """

    Iterate over an object with a ``readline()`` method until it returns
    an empty value, then close it.
    """)

    __slots__ = ['stream']

    def __init__(self, stream):
        self.stream = stream

    def __iter__(self):
        return self

    def __next__(self):
        data = self.stream.readline()
        if not data:
            raise StopIteration
        return as_chunk(data)

    def close(self):
        close = getattr(self.stream, 'close', None)
        if callable(close):
            close()

def request_uri(environ):
    (   "request_uri("
            "environ:dict"
        ") -> str" """

    The original request target. Servers that do not provide
    *REQUEST_URI* often keep it in *RAW_URI* , otherwise it is rebuilt
    from *SCRIPT_NAME* , *PATH_INFO* and *QUERY_STRING* .
    """)
    raw_uri = environ.get('RAW_URI')
    if raw_uri:
        return raw_uri
    path = environ.get('SCRIPT_NAME', '') + environ.get('PATH_INFO', '')
    uri  = \
        urlencode.quote(
            path or '/',
            encoding='iso8859-1'
        ).decode('ascii')
    query_string = environ.get('QUERY_STRING')
    if query_string:
        return f'{uri}?{query_string}'
    return uri

def as_chunk(chunk):
    (   "as_chunk("
            "chunk:Any"
        ") -> bytes"
    )
    if not isinstance(chunk, (str, bytes)):
        chunk = str(chunk)
    return urlencode.as_bytes(chunk, framework.http_content_encoding)

def status_line(status):
    (   "status_line("
            "status:int"
        ") -> str"
    )
    return f'{status} {http.client.responses.get(status, "Unknown")}'
