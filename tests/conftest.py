"""
Shared Fixtures
===============
"""

import pytest

from .helpers import V2_AUTH, V4_AUTH, RecordingFactory


@pytest.fixture
def recording_factory():
    return RecordingFactory(accept={V4_AUTH: "testid", V2_AUTH: "testid"})
