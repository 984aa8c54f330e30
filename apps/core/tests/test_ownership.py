"""
Tests for the ownership guard and for importing the core modules cleanly.
"""
import os
import subprocess
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

from apps.core.exceptions import Forbidden
from apps.core.ownership import assert_owner

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class FakeUser:
    is_authenticated = True

    def __init__(self, user_id):
        self.id = user_id


class TestAssertOwner:

    def test_owner_passes(self):
        assert_owner(SimpleNamespace(owner_id=3, pk=10), FakeUser(3))

    def test_other_user_is_forbidden(self):
        with pytest.raises(Forbidden) as exc_info:
            assert_owner(SimpleNamespace(owner_id=3, pk=10), FakeUser(4))

        assert exc_info.value.details == {'id': 10}


@pytest.mark.parametrize('module', [
    'apps.core.exceptions',
    'apps.core.permissions',
    'apps.core.ownership',
    'apps.core.views',
])
def test_module_imports_first_in_fresh_interpreter(module):
    """Each core module imports cleanly when it is the first one loaded after setup."""
    env = dict(os.environ, DJANGO_SETTINGS_MODULE='config.settings')
    script = (
        "import django, importlib; django.setup(); "
        f"importlib.import_module({module!r}); "
        "from rest_framework.settings import api_settings; "
        "assert api_settings.DEFAULT_PERMISSION_CLASSES"
    )

    result = subprocess.run(
        [sys.executable, '-c', script],
        cwd=PROJECT_ROOT,
        env=env,
        capture_output=True,
        text=True,
        timeout=60,
    )

    assert result.returncode == 0, result.stderr
