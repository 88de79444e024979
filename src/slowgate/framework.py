# Copyright (c) 2020 Wilhelm Shen. See LICENSE for details.

"""\
===========================================================
:mod:`slowgate.framework` -- The request/response framework
===========================================================

The application side of the gateway engine. An application subclasses
:class:`Application` and implements :meth:`Application.handler`, which
receives a :class:`Context` holding the populated :class:`Request` and
an empty :class:`Response` .

Example::

    import slowgate.engine
    import slowgate.framework

    class Hello(slowgate.framework.Application):

        def handler(self, c):
            c.response.headers['Content-Type'] = 'text/plain'
            c.response.body = f'Hello, {c.request.address}!'

    app = slowgate.engine.Engine(Hello())
    status, headers, body = app(environ)

Output can also be produced incrementally with ``c.response.write(data)``
while ``c.response.body`` is left empty. The engine buffers such writes
until the handler returns.

To stream a large body, assign an object with a ``readline()`` method to
``c.response.body`` ; the gateway server reads it line by line until an
empty value is returned.
"""

import collections

from . import exceptions
from . import gvars
from . import urlencode

__all__ = ['Application', 'Body', 'Context', 'Failure', 'Headers',
           'Request', 'Response', 'Success', 'classify_body']

default_max_body_size = 0x200000
default_chunk_size    = 8192
http_content_encoding = 'utf-8'
default_key_encoding   = 'utf-8'
default_value_encoding = 'utf-8'

class Headers(object):

    (   "Headers("
            "items:Iterable[Tuple[str, str]]=None"
        ")" """

    An ordered collection of header fields. Field names are matched
    case-insensitively, the name used when a field is first stored is
    the one returned by :meth:`items` .
    """)

    __slots__ = ['_items']

    def __init__(self, items=None):
        self._items = []
        if items is not None:
            for name, value in items:
                self.add(name, value)

    def add(self, name, value):
        (   "add("
                "name:str, "
                "value:str"
            ") -> None" """

        Append a field, keeping existing fields of the same name.
        """)
        self._items.append((name, value))

    def get(self, name, default=None):
        key = name.lower()
        for name_, value in self._items:
            if name_.lower() == key:
                return value
        return default

    def get_all(self, name):
        (   "get_all("
                "name:str"
            ") -> List[str]"
        )
        key = name.lower()
        return [value for name_, value in self._items
                      if name_.lower() == key]

    def items(self):
        (   "items("
            ") -> List[Tuple[str, str]]"
        )
        return list(self._items)

    def __getitem__(self, name):
        key = name.lower()
        for name_, value in self._items:
            if name_.lower() == key:
                return value
        raise KeyError(name)

    def __setitem__(self, name, value):
        key = name.lower()
        items = []
        found = False
        for item in self._items:
            if item[0].lower() != key:
                items.append(item)
            elif not found:
                items.append((item[0], value))
                found = True
        if not found:
            items.append((name, value))
        self._items = items

    def __delitem__(self, name):
        key = name.lower()
        items = [item for item in self._items if item[0].lower() != key]
        if len(items) == len(self._items):
            raise KeyError(name)
        self._items = items

    def __contains__(self, name):
        key = name.lower()
        for name_, value in self._items:
            if name_.lower() == key:
                return True
        return False

    def __iter__(self):
        return iter([name for name, value in self._items])

    def __len__(self):
        return len(self._items)

    def __repr__(self):
        return f'Headers({self._items!r})'

class Request(object):

    """
    The request record. Fields are populated by the gateway engine.
    """

    __slots__ = ['address',
                 'base',
                 'body',
                 'headers',
                 'hostname',
                 'method',
                 'protocol',
                 'query_parameters',
                 'remote_user',
                 'secure',
                 'uri',
                 'user']

    def __init__(self):
        self.address     = None
        self.hostname    = None
        self.protocol    = None
        self.user        = None  #: deprecated, same as `remote_user`
        self.remote_user = None
        self.method      = None
        self.secure      = False
        self.headers     = Headers()
        self.uri         = None  #: `slowgate.uri.URI` object
        self.base        = None  #: `slowgate.uri.URI` object
        self.body        = b''
        self.query_parameters = {}

    def parse_query_parameters(self, query_string,
                                 key_encoding=default_key_encoding,
                               value_encoding=default_value_encoding):
        (   "parse_query_parameters("
                "query_string:str, "
                "key_encoding:str='utf-8', "
                "value_encoding:str='utf-8'"
            ") -> None" """

        Parse `query_string` into :attr:`query_parameters` . A name that
        comes more than once is mapped to a list of its values.
        """)
        b_query_string = urlencode.as_bytes(query_string, 'iso8859-1')
        parameters = self.query_parameters
        for item in b_query_string.split(b'&'):
            kv = item.split(b'=', 1)
            if len(kv) != 2:
                continue
            b_k, b_v = kv
            k = urlencode.unquote_plus(b_k, key_encoding) \
                         .decode(key_encoding)
            v = urlencode.unquote_plus(b_v, value_encoding) \
                         .decode(value_encoding)
            value = parameters.get(k)
            if value is None:
                parameters[k] = v
            elif isinstance(value, str):
                parameters[k] = [value, v]
            else:
                value.append(v)

class Response(object):

    (   "Response("
            "exchange:slowgate.engine.Exchange"
        ")"
    )

    __slots__ = ['body', 'exchange', 'headers', 'status']

    def __init__(self, exchange):
        self.exchange = exchange
        self.status   = 200
        self.headers  = Headers()
        self.body     = b''

    @property
    def representation(self):
        (   "representation -> Body" """

        The tagged body value, see :func:`classify_body` .
        """)
        return classify_body(self.body)

    def write(self, data):
        (   "write("
                "data:Union[str, bytes]"
            ") -> None" """

        Append `data` to the output of the current request.
        """)
        self.exchange.write(data)

class Context(object):

    """
    Everything the framework knows about one request.
    """

    __slots__ = ['application', 'exchange', 'request', 'response', 'stash']

    def __init__(self, application, exchange):
        self.application = application
        self.exchange    = exchange
        self.request     = Request()
        self.response    = Response(exchange)
        self.stash       = {}  #: per-request storage of the application

EMPTY     = 'empty'
SCALAR    = 'scalar'
STREAMING = 'streaming'
CHUNKS    = 'chunks'

Body    = collections.namedtuple('Body', ['kind', 'value'])
Success = collections.namedtuple('Success', ['context'])
Failure = collections.namedtuple('Failure', ['error'])

def classify_body(value):
    (   "classify_body("
            "value:Any"
        ") -> Body" """

    - **EMPTY**     ``None``, ``''`` or ``b''``
    - **SCALAR**    a non-empty string or any other single value
    - **STREAMING** an object with a ``readline()`` method
    - **CHUNKS**    a list or a tuple of chunks
    """)
    if value is None:
        return Body(EMPTY, value)
    if isinstance(value, (str, bytes)):
        if value:
            return Body(SCALAR, value)
        return Body(EMPTY, value)
    if callable(getattr(value, 'readline', None)):
        return Body(STREAMING, value)
    if isinstance(value, (list, tuple)):
        return Body(CHUNKS, value)
    return Body(SCALAR, value)

class Application(object):

    (   "Application("
            "log:slowgate.logging.Logger=None, "
            "max_body_size:int=None, "
            "chunk_size:int=None"
        ")" """

    The base class of applications served by the gateway engine.
    """)

    def __init__(self, log=None, max_body_size=None, chunk_size=None):
        if log is None:
            self.log = gvars.logger
        else:
            self.log = log
        if max_body_size is None:
            self.max_body_size = default_max_body_size
        else:
            self.max_body_size = max_body_size
        if chunk_size is None:
            self.chunk_size = default_chunk_size
        else:
            self.chunk_size = chunk_size

    def handle_request(self, exchange):
        (   "handle_request("
                "exchange:slowgate.engine.Exchange"
            ") -> Union[Success, Failure]" """

        Prepare, dispatch and finalize one request. Errors never escape
        from this method, they are returned as a :class:`Failure` .
        """)
        try:
            c = self.prepare(exchange)
            self.dispatch(c)
            self.finalize(c)
        except Exception as err:
            return Failure(err)
        return Success(c)

    def prepare(self, exchange):
        (   "prepare("
                "exchange:slowgate.engine.Exchange"
            ") -> Context"
        )
        c = Context(self, exchange)
        exchange.prepare_connection(c.request)
        exchange.prepare_query_parameters(c.request)
        exchange.prepare_headers(c.request)
        exchange.prepare_path(c.request)
        self.prepare_body(c)
        return c

    def prepare_body(self, c):
        (   "prepare_body("
                "c:Context"
            ") -> None" """

        Read the request content declared by *CONTENT_LENGTH* .
        """)
        length = c.exchange.environ.get('CONTENT_LENGTH', '').strip()
        if not length:
            return
        left = int(length)
        if left > self.max_body_size:
            raise \
                exceptions.BadRequest(
                    'request body (Content-Length) is larger than the '
                    f'configured limit ({self.max_body_size})'
                )
        chunks = []
        while left > 0:
            data = c.exchange.read_chunk(min(left, self.chunk_size))
            if not data:
                break
            chunks.append(data)
            left -= len(data)
        c.request.body = b''.join(chunks)

    def dispatch(self, c):
        self.handler(c)

    def handler(self, c):
        (   "handler("
                "c:Context"
            ") -> None" """

        Override this method to handle requests. The default handler
        responds with an `It works!` page.
        """)
        c.response.headers['Content-Type'] = 'text/html'
        c.response.body = itworks_content

    def finalize(self, c):
        (   "finalize("
                "c:Context"
            ") -> int"
        )
        self.finalize_headers(c)
        c.exchange.finalize_body()
        return c.response.status

    def finalize_headers(self, c):
        response = c.response
        body = response.representation
        if SCALAR == body.kind and \
           isinstance(body.value, (str, bytes)) and \
           'Content-Length' not in response.headers:
            response.headers['Content-Length'] = \
                str(len(urlencode.as_bytes(body.value,
                                           http_content_encoding)))

itworks_content = '''\
<html><head><title>200 OK</title></head><body><h1>It works!</h1><hr />
<address>slowgate</address></body></html>'''
