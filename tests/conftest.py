"""
Shared fixtures for the engine tests.
"""

import io

import pytest
from PIL import Image

from yachtexpense.services.keywords import InMemoryLearnedKeywordStore, KeywordStore


@pytest.fixture
def keyword_store():
    """Keyword store with the static table and an empty in-memory learned store."""
    return KeywordStore(learned=InMemoryLearnedKeywordStore())


def make_image_bytes(width=400, height=600, color="white", fmt="PNG", mode="RGB"):
    image = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    return make_image_bytes()
