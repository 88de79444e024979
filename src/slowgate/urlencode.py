# Copyright (c) 2020 Wilhelm Shen. See LICENSE for details.

"""\
=================================================
:mod:`slowgate.urlencode` -- URL escaping helpers
=================================================

Besides thin bytes-returning wrappers of :mod:`urllib.parse`, this module
implements the path escaping convention of the engine:

- :func:`safe_unquote` decodes ``%XX`` sequences except those standing
  for a reserved character, so ``%2F`` stays ``%2F`` while ``%41`` becomes
  ``A``;
- :func:`quote_uric` escapes every byte that is not a legal URI
  character.

    >>> safe_unquote(b'/foo%2Fbar%20baz')
    b'/foo%2Fbar baz'
    >>> quote_uric(b'foo bar#')
    b'foo%20bar%23'
"""

import re
import string
import sys
import urllib.parse

__all__ = ['as_bytes', 'quote', 'quote_uric', 'safe_unquote',
           'unquote_plus']

reserved   = ';/?:@&=+$,[]'
unreserved = string.ascii_letters + string.digits + "-_.!~*'()"
uric       = reserved + unreserved + '%'

def quote(string, safe='/', encoding=None, errors=None):
    (   "quote("
            "string:Union[str,bytes]"
        ") -> bytes"
    )
    return \
        as_bytes(
            urllib.parse.quote(string, safe, encoding, errors)
        )

def unquote_plus(string, encoding='utf-8', errors='replace'):
    (   "unquote_plus("
            "string:bytes"
        ") -> bytes"
    )
    return \
        as_bytes(
            urllib.parse.unquote_plus(
                string.decode(encoding, errors),
                encoding,
                errors
            ),
            encoding
        )

def safe_unquote(string):
    (   "safe_unquote("
            "string:bytes"
        ") -> bytes" """

    Decode the percent-escapes of `string` unless the escaped byte is
    one of the reserved characters.
    """)
    return regx_escape.sub(unquote_unreserved, string)

def quote_uric(string):
    (   "quote_uric("
            "string:bytes"
        ") -> bytes" """

    Percent-encode every byte of `string` that is not a URI character.
    Existing escapes and reserved characters are kept as they are.
    """)
    return b''.join([uric_escapes[byte] for byte in string])

def unquote_unreserved(match):
    byte = int(match.group(1), 16)
    if byte in reserved_bytes:
        return match.group(0)
    return bytes((byte,))

def as_bytes(string, encoding=None):
    (   "as_bytes("
            "string:Union[str,bytes], "
            "encoding:str=None"
        ") -> bytes"
    )
    if   isinstance(string, str):
        return \
            string.encode(
                sys.getdefaultencoding() if encoding is None else encoding
            )
    elif isinstance(string, bytes):
        return string
    else:
        raise \
            TypeError(
                f'expected binary or unicode string, got {repr(string)}'
            )

regx_escape    = re.compile(br'%([0-9A-Fa-f]{2})')
reserved_bytes = frozenset(reserved.encode('ascii'))
uric_escapes   = \
    [
        bytes((byte,)) if chr(byte) in uric else b'%%%02X' % byte
        for byte in range(256)
    ]
