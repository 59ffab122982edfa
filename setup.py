#!/usr/bin/env python
import sys

from setuptools import setup, find_packages

if len(sys.argv) == 1:
    sys.argv.append('install')

if sys.argv[1] == 'test':
    from subprocess import call
    sys.exit(call([sys.executable, '-m', 'pytest'] + sys.argv[2:]))

packages = find_packages(exclude=['tests', 'tests.*'])

# pip dependencies
install_requires = [
    'numpy', 'docutils',
]
extras_require = {
    'test': ['pytest'],
    }
extras_require['all'] = sum(extras_require.values(), [])
tests_require = ['pytest']

#sys.dont_write_bytecode = False
dist = setup(
    name='traceflow',
    version='0.1.0',
    description='Single trace transforms for volumes of sampled traces',
    long_description_content_type="text/x-rst",
    long_description=open('README.rst').read(),
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Environment :: Console',
        'Intended Audience :: Science/Research',
        'License :: Public Domain',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Scientific/Engineering',
        'Topic :: Scientific/Engineering :: Information Analysis',
    ],
    zip_safe=False,
    packages=packages,
    include_package_data=True,
    python_requires='>=3.7',
    install_requires=install_requires,
    extras_require=extras_require,
    tests_require=tests_require,
    )

# End of file
