import pytest

from aljabar_pkg.session import reset_default_session


@pytest.fixture(autouse=True)
def fresh_session():
    """Give every test a clean default session."""
    yield reset_default_session()
    reset_default_session()
