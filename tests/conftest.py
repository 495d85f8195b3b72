import pytest

from scholar_sections.config import load_taxonomy


@pytest.fixture
def taxonomy():
    return load_taxonomy()
