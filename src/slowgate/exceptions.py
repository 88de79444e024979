# Copyright (c) 2020 Wilhelm Shen. See LICENSE for details.

"""\
========================================
:mod:`slowgate.exceptions` -- Exceptions
========================================
"""

import urllib.error

__all__ = ['BadRequest', 'Exceptions']

class Exceptions(Exception):

    """
    Raised when more than one exception occurs.
    """

    def __init__(self, exceptions=None):
        if exceptions is None:
            self.exceptions = []
        else:
            self.exceptions = exceptions

class BadRequest(urllib.error.HTTPError):

    """
    Raised by the framework when the incoming request can not be
    accepted, such as a request body larger than the configured limit.
    """

    def __init__(self, msg='Bad Request'):
        urllib.error.HTTPError.__init__(self, None, 400, msg, None, None)
