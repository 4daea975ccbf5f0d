"""Main settings file.

This file is used as an entry point for the project's settings.
Components are included in order, later ones may override earlier ones.
Environment-specific overrides can live in ``environments/<name>.py``.
"""

import django_stubs_ext
from split_settings.tools import include, optional

from server.settings.components import config

# Monkeypatching Django, so stubs will work for all generics,
# see: https://github.com/typeddjango/django-stubs/tree/master/ext
django_stubs_ext.monkeypatch()

_ENV = config('DJANGO_ENV', default='development')

_base_settings = (
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/marketplace.py',
    # Optionally override some settings:
    optional('environments/{0}.py'.format(_ENV)),
)

include(*_base_settings)
