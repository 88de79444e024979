# Copyright (c) 2020 Wilhelm Shen. See LICENSE for details.

"""\
==================================
:mod:`slowgate.uri` -- URI objects
==================================

Scheme-qualified URI values. The engine assembles the request URI and
the base URI as strings and wraps them here, so that the application can
read the components later without parsing the string again.

    >>> uri = URI.new('http://example.com:8080/app/?x=1', 'http')
    >>> uri.host, uri.port, uri.path, uri.query
    ('example.com', 8080, '/app/', 'x=1')
    >>> str(uri.with_query(''))
    'http://example.com:8080/app/'
"""

import urllib.parse

__all__ = ['HTTPSURI', 'HTTPURI', 'URI']

class URI(object):

    (   "URI("
            "string:str"
        ")"
    )

    __slots__ = ['_parts', 'string']

    default_port = None

    def __init__(self, string):
        self.string = string
        self._parts = None

    @classmethod
    def new(cls, string, scheme=None):
        (   "new("
                "string:str, "
                "scheme:str=None"
            ") -> URI" """

        Create a URI object of the class registered for `scheme` . The
        scheme is taken from `string` when it is not given.
        """)
        if scheme is None:
            scheme = urllib.parse.urlsplit(string).scheme
        return schemes.get(scheme.lower(), cls)(string)

    @property
    def parts(self):
        if self._parts is None:
            self._parts = urllib.parse.urlsplit(self.string)
        return self._parts

    @property
    def scheme(self):
        return self.parts.scheme

    @property
    def authority(self):
        return self.parts.netloc

    @property
    def host(self):
        return self.parts.hostname

    @property
    def port(self):
        port = self.parts.port
        if port is None:
            return self.default_port
        return port

    @property
    def path(self):
        return self.parts.path

    @property
    def query(self):
        return self.parts.query

    @property
    def fragment(self):
        return self.parts.fragment

    @property
    def path_query(self):
        path = self.path or '/'
        if self.query:
            return f'{path}?{self.query}'
        return path

    def with_path(self, path):
        (   "with_path("
                "path:str"
            ") -> URI"
        )
        if not path.startswith('/'):
            path = '/' + path
        return self.__class__(self.parts._replace(path=path).geturl())

    def with_query(self, query):
        (   "with_query("
                "query:str"
            ") -> URI"
        )
        return self.__class__(self.parts._replace(query=query).geturl())

    def __str__(self):
        return self.string

    def __repr__(self):
        return f'{self.__class__.__name__}({self.string!r})'

    def __eq__(self, other):
        if isinstance(other, URI):
            return self.string == other.string
        if isinstance(other, str):
            return self.string == other
        return NotImplemented

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash(self.string)

class HTTPURI(URI):

    __slots__ = []

    default_port = 80

class HTTPSURI(HTTPURI):

    __slots__ = []

    default_port = 443

schemes = {'http': HTTPURI, 'https': HTTPSURI}
