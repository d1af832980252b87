## This setup.py refers to Django: https://github.com/django/django ##
from setuptools import setup, find_packages
import sys

CURRENT_PYTHON = sys.version_info[:2]
REQUIRED_PYTHON = (3, 6)

if CURRENT_PYTHON < REQUIRED_PYTHON:
    sys.stderr.write("""
==========================
Unsupported Python version
==========================
This version of sddppy requires Python {}.{}, but you're trying to
install it on Python {}.{}.
This may be because you are using a version of pip that doesn't
understand the python_requires classifier. Make sure you
have pip >= 9.0 and setuptools >= 24.2, then try again:
    $ python -m pip install --upgrade pip setuptools
    $ python -m pip install .
""".format(*(REQUIRED_PYTHON + CURRENT_PYTHON)))
    sys.exit(1)

setup(
    name = 'sddppy',
    python_requires='>={}.{}'.format(*REQUIRED_PYTHON),
    packages = find_packages(exclude=['tests', 'examples']),
    install_requires = ['numpy', 'scipy', 'pandas', 'gurobipy>=7'],
    extras_require = {'test': ['pytest']},
    version = '0.1',
    license = 'new BSD',
    description = 'Stochastic dual dynamic programming on policy graphs '
        'with cut sharing and price interpolation'
)
