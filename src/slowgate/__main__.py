# Copyright (c) 2020 Wilhelm Shen. See LICENSE for details.

"""\
====================================================================
:mod:`slowgate.__main__` -- The implementation of the startup script
====================================================================

This module contains the configuration schema and the startup script
that serves an application through the gateway engine::

    usage: slowgate [-h] [-f FILE] [-a ADDRESS] [-v[v] | -q] [APPLICATION]

The application is given as ``package.module:attribute`` . When the
attribute is a class it is instantiated with the configured log and
limits.

Examples:

::

    # Read the configuration from the command line and profile
    slowgate.__main__.main()

    # Use string instead of config file.
    slowgate.__main__.main(
        config='''
            application  mysite.app:MyApplication
            address      127.0.0.1:8080
            address      127.0.0.1:8081
            errorlog     /PATH/TO/error.log
            max-body-size 4MB
        '''
    )
"""

import argparse
import collections
import gevent
import gevent.exceptions
import gevent.pywsgi
import importlib
import io
import os
import os.path
import signal
import sys
import weakref
import ZConfig
import ZConfig.loader

from . import engine
from . import exceptions
from . import framework
from . import gvars
from . import logging
from . import wsgi
from . import   __doc__   as package__doc__
from . import __version__

__all__ = ['Runtime', 'main']

def main(**kwargs):
    (   "main("
            "config:str=None, "
            "arguments:List[str]=None"
        ") -> None"
    )
    try:
        jobs = spawn(**kwargs)
    except SystemExit as err:
        sys.exit(err.code)
    try:
        gevent.joinall(jobs)
    except gevent.exceptions.BlockingSwitchOutError:
        pass

class Runtime(object):

    """
    A runtime object created by the `spawn` function that holds the
    servers and the log files opened for them.
    """

    __slots__ = ['application',
                 'cfg',
                 'jobs',
                 'logfiles',
                 'opts',
                 'servers',
                 '__weakref__']

    def exit(self, *args):
        """
        Stop servers and close log files.
        """
        exceptions_ = []
        for server in self.servers:
            server.stop()
        for file in self.logfiles:
            try:
                file.close()
            except gevent.exceptions.BlockingSwitchOutError:
                pass
            except Exception as err:
                exceptions_.append(err)
        self.logfiles = []
        if exceptions_:
            if 1 == len(exceptions_):
                raise exceptions_[0]
            else:
                raise exceptions.Exceptions(exceptions_)

def spawn(**kwargs):
    """
    Start the servers base on the configuration.
    """
    opts, cfg, parser = parse(**kwargs)
    gvars.set_verbose(opts.verbose)
    if cfg.environment:
        os.environ.update(cfg.environment)
    if opts.application is None:
        parser.error('the application is required, use APPLICATION or '
                     'the "application" key of the profile')
    runtime = Runtime()
    runtime.cfg  = cfg
    runtime.opts = opts
    runtime.logfiles = []
    if cfg.errorlog:
        file = logging.File(cfg.errorlog)
        runtime.logfiles.append(file)
        log = logging.Logger(file, immediately=False)
    else:
        log = gvars.logger
    try:
        application = \
            load_application(
                opts.application,
                log=log,
                max_body_size=cfg.max_body_size,
                chunk_size=cfg.chunk_size
            )
    except (ImportError, AttributeError, ValueError) as err:
        parser.error(f'can not load application {opts.application}: '
                     f'{err}')
    runtime.application = application
    handler = wsgi.WSGIApplication(engine.Engine(application))
    if gvars.logger.level <= logging.DEBUG:
        accesslog = ServerLog(gvars.logger.access)
    else:
        accesslog = None
    runtime.servers = \
        [
            gevent.pywsgi.WSGIServer(
                address,
                handler,
                handler_class=wsgi.RequestURIHandler,
                log=accesslog,
                error_log=ServerLog(gvars.logger.error)
            ) for address in opts.addresses
        ]
    gvars.logger.info(f'{__package__}/{__version__}')
    jobs = Jobs()
    for server in runtime.servers:
        server.start()
        gvars.logger.info(f'Serving HTTP on {server.server_host} '
                          f'port {server.server_port} ...')
        jobs.append(gevent.spawn(server.serve_forever))
    runtime.jobs = jobs
    jobs._runtime = runtime
    exit = exit_func(weakref.ref(runtime))
    for signalnum in (signal.SIGQUIT, signal.SIGTERM, signal.SIGINT):
        gevent.signal_handler(signalnum, exit)
    return jobs

def exit_func(_runtime):

    def wrapper(*args):
        runtime = _runtime()
        if runtime is not None:
            runtime.exit()

    return wrapper

class Jobs(list):

    __slots__ = ['_runtime']

class ServerLog(object):

    """
    The file-like object given to `gevent.pywsgi.WSGIServer` , which
    forwards each line written by the server to a logging method.
    """

    __slots__ = ['method']

    def __init__(self, method):
        self.method = method

    def write(self, data):
        msg = data.rstrip('\n')
        if msg:
            self.method(msg)

    def flush(self):
        pass

def load_application(entrypoint, **kwargs):
    (   "load_application("
            "entrypoint:str, "
            "**kwargs"
        ") -> slowgate.framework.Application" """

    Import `package.module:attribute` . A class is instantiated with
    `kwargs` , any other object is returned as it is.
    """)
    module_name, sep, attribute = entrypoint.strip().partition(':')
    if not sep or not module_name or not attribute:
        raise ValueError(f'expected "package.module:attribute", '
                         f'got {repr(entrypoint)}')
    module = importlib.import_module(module_name)
    obj = module
    for name in attribute.split('.'):
        obj = getattr(obj, name)
    if isinstance(obj, type):
        if not issubclass(obj, framework.Application):
            raise ValueError(f'{entrypoint} is not a subclass of '
                             'slowgate.framework.Application')
        return obj(**kwargs)
    return obj

###########################################################################
#                         Command line interface                          #
###########################################################################

def parse(**kwargs):
    arguments = kwargs.get('arguments')
    config    = kwargs.get('config')
    parser    = ParserFactory(config)
    args      = parser.parse_args(arguments)
    if config is None:
        if args.file is None:
            cfg, nil = loadConfig(loadSchema(), '')
        else:
            try:
                cfg, nil = \
                    ZConfig.loader.loadConfig(
                        loadSchema(),
                        args.file
                    )
            except ZConfig.ConfigurationError as err:
                if not os.path.isfile(args.file):
                    parser.error(f'profile {args.file} is missing')
                else:
                    parser.error(
                        f'configuration error occurs in {args.file}: '
                        f'{err.message} (line {err.lineno})'
                    )
    else:
        if not isinstance(config, str):
            raise TypeError('keyword argument "config" must be a string '
                            f'but got {repr(config)}')
        cfg, nil = loadConfig(loadSchema(), config)
    opts = Options()
    if args.application is None:
        opts.application = cfg.application
    else:
        opts.application = args.application
    if args.addresses:
        try:
            opts.addresses = [parse_address(s) for s in args.addresses]
        except ValueError as err:
            parser.error(f'argument -a/--address: {err}')
    elif cfg.address:
        opts.addresses = cfg.address
    else:
        opts.addresses = [default_address]
    if   args.quiet:
        opts.verbose = 0
    elif args.verbose is None:
        opts.verbose = min(cfg.verbose, len(gvars.levels) - 1)
    else:
        opts.verbose = min(args.verbose, len(gvars.levels) - 1)
    return ParseResult(opts, cfg, parser)

def ParserFactory(config=None):
    parser = \
        argparse.ArgumentParser(
                   prog=__package__,
            description=package__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter
        )
    if config is None:
        parser.add_argument(
                    '-f',
                    '--file',
               dest='file',
               type=str,
            metavar='FILE',
            default=None,
               help='config file'
        )
    parser.add_argument(
                '-a',
                '--address',
           dest='addresses',
         action='append',
        metavar='ADDRESS',
           help=('listen on HOST:PORT, may be given more than once, '
                 f'the default is {default_address[0]}:'
                 f'{default_address[1]}')
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
                '-v',
                '--verbose',
           dest='verbose',
         action='count',
           help='print debug messages to stdout'
    )
    group.add_argument(
                '-q',
                '--quiet',
           dest='quiet',
         action='store_true',
           help='do not print debug messages',
        default=False
    )
    parser.add_argument(
                'application',
          nargs='?',
        metavar='APPLICATION',
        default=None,
           help='the application to serve, as package.module:attribute'
    )
    return parser

class Options(object):

    __slots__ = ['addresses', 'application', 'verbose']

ParseResult = \
    collections.namedtuple(
        'ParseResult',
        [
            'opts',
            'cfg',
            'parser'
        ]
    )

def parse_address(s):
    (   "parse_address("
            "s:str"
        ") -> Tuple[str, int]"
    )
    host, sep, port = s.strip().rpartition(':')
    if not sep or not port.isdigit():
        raise ValueError(f'expected HOST:PORT, got {repr(s)}')
    return (host or default_address[0], int(port))

default_address = ('127.0.0.1', 8080)

###########################################################################
#                              Configuration                              #
###########################################################################

def loadSchema(*args):
    loader = ZConfig.loader.SchemaLoader()
    file   = \
        io.StringIO(
            f'<schema>{"".join([schema] + list(args))}</schema>'
        )
    with loader.createResource(file, '<string>') as r:
        return loader.loadResource(r)

def loadConfig(schema, data):
    loader = ZConfig.loader.ConfigLoader(schema)
    file   = io.StringIO(data)
    with loader.createResource(file, '<string>') as r:
        return loader.loadResource(r)

def EnvironmentSection(section):
    return \
        dict(
            (key.upper(), value) for key, value in
            section.data.items()
        )

def AbsolutePathString(s):
    if not s.startswith(os.path.sep):
        raise ValueError(f'relative path {repr(s)} is not allowed here, '
                         'please use absolute path instead')
    name = os.path.basename(s)
    base = os.path.dirname(s)
    if not os.path.isdir(base):
        raise ValueError(f'{repr(base)} is not an existing folder')
    return os.path.join(os.path.abspath(base), name)

#: built-in schema
schema = '''
<sectiontype name="environment"
             datatype="slowgate.__main__.EnvironmentSection">
    <key name="+" attribute="data" required="no" />
</sectiontype>

<key name="application" datatype="string" required="no" />
<multikey name="address" datatype="inet-binding-address" required="no" />
<key name="verbose" datatype="integer" default="1" required="no" />
<key name="errorlog" datatype="slowgate.__main__.AbsolutePathString"
     required="no" />
<key name="max-body-size" datatype="byte-size"
     default="2MB" required="no" />
<key name="chunk-size" datatype="byte-size"
     default="8KB" required="no" />
<section type="environment" attribute="environment" required="no" />
'''
