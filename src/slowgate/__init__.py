# Copyright (c) 2020 Wilhelm Shen. See LICENSE for details.

"""\
Slowgate: a gateway engine that adapts request/response applications to
WSGI-style gateway servers.
"""

__version__ = '0.1.0'
