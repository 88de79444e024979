#!/usr/bin/env python3

import re
import setuptools

with open('src/slowgate/__init__.py') as f:
    version = re.search(r"__version__\s*=\s*'(.*)'", f.read()).group(1)
with open('README.rst') as f:
    readme  = f.read()

setuptools.setup(
                name='slowgate',
             version=version,
         description='A gateway engine for request/response applications',
    long_description=readme,
             license='MIT',
            keywords=('gateway engine wsgi gevent coroutine web '
                      'framework http server'),
              author='Wilhelm Shen',
        author_email='wilhelmshen@pyforce.com',
         package_dir={'': 'src'},
            packages=['slowgate'],
    install_requires=
             [
                      'gevent>=20.4.0',
                      'ZConfig>=3.5.0'
             ],
      extras_require=
             {
                 'test': ['pytest>=6.0']
             },
         classifiers=
             [
                 'License :: OSI Approved :: MIT License',
                 'Programming Language :: Python :: 3.6',
                 'Programming Language :: Python :: 3.7',
                 'Programming Language :: Python :: 3.8',
                 'Programming Language :: Python :: 3.9',
                 'Programming Language :: Python :: Implementation :: '+
                                                              'CPython',
                 'Operating System :: POSIX',
                 'Topic :: Internet',
                 'Topic :: Internet :: WWW/HTTP :: WSGI',
                 'Topic :: Internet :: WWW/HTTP :: WSGI :: Server',
                 'Topic :: Software Development :: Libraries :: '+
                                                 'Python Modules',
                 'Topic :: Software Development :: Libraries :: '+
                                         'Application Frameworks',
                 'Intended Audience :: Developers',
                 'Development Status :: 4 - Beta'
             ],
     python_requires='>=3.6',
        entry_points=
             {
                 'console_scripts': ['slowgate=slowgate.__main__:main']
             }
)
