# tests/conftest.py - Shared fakes for the chat backend tests
import os
import sys

import pytest
from langchain_core.messages import AIMessage

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class FakeRenderer:
    """Serves canned HTML per URL; an Exception value is raised instead."""

    def __init__(self, pages=None, default=None):
        self.pages = pages or {}
        self.default = default
        self.calls = []

    def __call__(self, url):
        self.calls.append(url)
        page = self.pages.get(url, self.default)
        if page is None:
            raise ConnectionError(f"no route to {url}")
        if isinstance(page, Exception):
            raise page
        return page


class FakeChatModel:
    """Records the messages it receives and replies with a fixed answer."""

    def __init__(self, reply="Here is your answer.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def invoke(self, messages):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return AIMessage(content=self.reply)


class FrozenClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def page(text, *links):
    """Minimal HTML document with body text and anchors."""
    anchors = "".join(f'<a href="{link}"></a>' for link in links)
    return f"<html><head><title>t</title></head><body><p>{text}</p>{anchors}</body></html>"


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def chat_model():
    return FakeChatModel()


@pytest.fixture
def clock():
    return FrozenClock()
