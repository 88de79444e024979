# Copyright (c) 2020 Wilhelm Shen. See LICENSE for details.

"""\
=========================================================
:mod:`slowgate.logging` -- Cooperative and simple logging
=========================================================

This module provides the log sink used by the gateway engine. The
:class:`Logger` writes formatted lines to a file-like object, and
:class:`File` is a cooperative log file which performs the writes in a
background greenlet.

A logger created with ``immediately=False`` keeps its messages in the
underlying file until :meth:`Logger.flush` is called. The engine calls
``flush()`` once at the end of every request.

Example:

    >>> file = File('/PATH/TO/error.log')
    >>> logger = Logger(file, level=DEBUG, immediately=False)
    >>> logger.debug('debug msg')
    >>> logger.error('error msg')
    >>> logger.flush()
    >>> logger.level = ERROR
    >>> logger.critical('fatal msg')
    >>> file.close()
"""

import gevent
import gevent.fileobject
import gevent.queue
import sys
import time
import weakref

from logging import CRITICAL, DEBUG, ERROR, FATAL, INFO, NOTSET, WARNING

default_file_queue_maxsize = 2048

__all__ = ['File', 'Logger']

DISABLED  = 0xffff
assert DISABLED > CRITICAL
levelcode = \
    {
        'DISABLED': DISABLED,
        'CRITICAL': CRITICAL,
           'FATAL': FATAL,
           'ERROR': ERROR,
         'WARNING': WARNING,
            'INFO': INFO,
           'DEBUG': DEBUG,
          'NOTSET': NOTSET
    }
default_strftime_fmt  = '%Y-%m-%d %H:%M:%S'
default_errorlog_fmt  = '{time} {level} {msg}'
default_accesslog_fmt = '{time} {msg}'

class Logger(object):

    (   "Logger("
            "file:File=None, "
            "level:int=NOTSET, "
            "immediately:bool=True, "
            "accesslog_fmt:str=None, "
            "errorlog_fmt:str=None, "
            "strftime_fmt:str=None"
        ")"
    )
    __slots__ = ['accesslog_fmt',
                 'errorlog_fmt',
                 'file',
                 'immediately',
                 'level',
                 'strftime_fmt']

    def __init__(self, file=None, level=NOTSET, immediately=True,
                 accesslog_fmt=None, errorlog_fmt=None,
                                     strftime_fmt=None):
        if file is None:
            self.file = sys.stdout
        else:
            self.file = file
        self.level = level
        self.immediately = immediately
        self.accesslog_fmt = \
            line_format(
                default_accesslog_fmt if accesslog_fmt is None
                                      else accesslog_fmt
            )
        self.errorlog_fmt = \
            line_format(
                default_errorlog_fmt if errorlog_fmt is None
                                     else errorlog_fmt
            )
        if strftime_fmt is None:
            self.strftime_fmt = default_strftime_fmt
        else:
            self.strftime_fmt = strftime_fmt

    def access(self, msg):
        (   "access("
                "msg:str"
            ") -> None" """

        Log a message on the access log.
        """)
        self.file.write(
            self.accesslog_fmt.format(
                time=time.strftime(self.strftime_fmt),
                msg=msg
            )
        )
        if self.immediately:
            self.file.flush()

    def critical(self, msg):
        (   "critical("
                "msg:str"
            ") -> None" """

        Log a message with severity 'CRITICAL' on the error log.
        """)
        if CRITICAL >= self.level:
            self._log_error(CRITICAL, msg)

    def fatal(self, msg):
        (   "fatal("
                "msg:str"
            ") -> None" """

        Log a message with severity 'FATAL' on the error log.
        """)
        if FATAL >= self.level:
            self._log_error(FATAL, msg)

    def error(self, msg):
        (   "error("
                "msg:str"
            ") -> None" """

        Log a message with severity 'ERROR' on the error log.
        """)
        if ERROR >= self.level:
            self._log_error(ERROR, msg)

    def warning(self, msg):
        (   "warning("
                "msg:str"
            ") -> None" """

        Log a message with severity 'WARNING' on the error log.
        """)
        if WARNING >= self.level:
            self._log_error(WARNING, msg)

    warn = warning

    def info(self, msg):
        (   "info("
                "msg:str"
            ") -> None" """

        Log a message with severity 'INFO' on the error log.
        """)
        if INFO >= self.level:
            self._log_error(INFO, msg)

    def debug(self, msg):
        (   "debug("
                "msg:str"
            ") -> None" """

        Log a message with severity 'DEBUG' on the error log.
        """)
        if DEBUG >= self.level:
            self._log_error(DEBUG, msg)

    def flush(self):
        (   "flush("
            ") -> None" """

        Push the pending messages to the underlying file.
        """)
        self.file.flush()

    def _log_error(self, level, msg):
        self.file.write(
            self.errorlog_fmt.format(
                time=time.strftime(self.strftime_fmt),
                level=level_names[level],
                msg=msg
            )
        )
        if self.immediately:
            self.file.flush()

class File(object):

    (   "File("
            "filename:str, "
            "maxsize:int=-1, "
            "encoding:str='utf-8'"
        ")" """

    A log file opened in append mode. Data written to this object is
    queued and stored to disk by a background greenlet, so the caller
    never blocks on the disk.
    """)

    __slots__ = ['closed',
                 'encoding',
                 'file',
                 'filename',
                 'queue',
                 'syncer',
                 '__weakref__']

    def __init__(self, filename, maxsize=-1, encoding='utf-8'):
        if -1 == maxsize:
            maxsize = default_file_queue_maxsize
        self.file = gevent.fileobject.FileObject(filename, 'ab')
        self.queue = gevent.queue.Queue(maxsize)
        self.encoding = encoding
        self.filename = filename
        self.closed = False
        self.syncer = gevent.spawn(syncer, weakref.ref(self))

    def __del__(self):
        if not self.closed:
            self.close()

    def write(self, data):
        if self.closed:
            raise ValueError('I/O operation on closed file.')
        if isinstance(data, str):
            self.queue.put(data.encode(self.encoding))
        else:
            self.queue.put(data)

    def flush(self):
        if self.closed:
            raise ValueError('I/O operation on closed file.')
        self.queue.put(FLUSH)

    def close(self):
        if not self.closed:
            self.closed = True
            self.queue.put(CLOSE)
            self.syncer.join()
            self.file.close()

def syncer(_logfile):
    its_time_to_flush = False
    while True:
        logfile = _logfile()
        if logfile is None:
            return
        queue = logfile.queue
        file  = logfile.file
        del logfile
        try:
            data = queue.get()
        except gevent.GreenletExit:
            return
        if data is CLOSE:
            file.flush()
            return
        try:
            if data is FLUSH:
                if queue.empty():
                    file.flush()
                    its_time_to_flush = False
                else:
                    its_time_to_flush = True
            elif isinstance(data, bytes):
                file.write(data)
                if queue.empty() and its_time_to_flush:
                    file.flush()
                    its_time_to_flush = False
            else:
                raise TypeError('cannot handle this data type')
        except Exception:
            # closed, so that later writes raise ValueError
            logfile = _logfile()
            if logfile is not None:
                logfile.closed = True
            file.close()
            raise

def line_format(fmt):
    if fmt.endswith('\n'):
        return fmt
    return fmt + '\n'

level_names = dict((value, key) for key, value in levelcode.items())

FLUSH = object()
CLOSE = object()
