# Copyright (c) 2020 Wilhelm Shen. See LICENSE for details.

"""\
=========================================
:mod:`slowgate.gvars` -- Global variables
=========================================

Process-wide state shared by the startup script and the applications
that are not given a log of their own.
"""

from . import logging

__all__ = ['levels', 'logger', 'set_verbose']

#: log level by verbosity, 0 is ``-q`` , 2 is ``-vv``
levels = [logging.DISABLED, logging.INFO, logging.DEBUG]

#: the default log of `slowgate.framework.Application`
logger = logging.Logger()

def set_verbose(verbose):
    (   "set_verbose("
            "verbose:int"
        ") -> None" """

    Set the level of :data:`logger` , out of range values are clamped.
    """)
    logger.level = levels[max(0, min(verbose, len(levels) - 1))]
