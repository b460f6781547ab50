"""Shared fixtures: controllable clock, scripted randomness, temp-file store, fake HTTP."""
from datetime import datetime, timedelta, timezone

import pytest
import requests

from examkit.store import PersistenceStore


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FirstIndexRng:
    """randint always returns its lower bound: Fisher-Yates then swaps every slot with slot 0."""

    def randint(self, a, b):
        return a


class FakeResponse:
    def __init__(self, payload=None, status_code=200, bad_json=False):
        self.payload = payload
        self.status_code = status_code
        self.bad_json = bad_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if self.bad_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.headers = {}
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if self.exc is not None:
            raise self.exc
        return self.response


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def store(tmp_path, clock):
    return PersistenceStore(str(tmp_path / "data" / "store.json"), clock=clock)


@pytest.fixture
def raw_bank():
    return [
        {"id": 1, "question": "2+2?", "options": ["A. 3", "B. 4"], "answer": "B"},
        {"id": 2, "question": "Capital of France?", "type": "short", "answer": "Paris"},
        {"id": 3, "question": "Pick the mammal", "options": ["Cat", "Trout", "Eagle"], "answer": "a",
         "explanation": "Cats are mammals."},
    ]
