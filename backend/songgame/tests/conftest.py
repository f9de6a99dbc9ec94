import random

import pytest

from songgame.lyrics.cache import LyricsCache
from songgame.lyrics.verifier import LyricsVerifier
from songgame.messaging.router import MessageRouter
from songgame.session.manager import RoomManager
from songgame.tests.mocks import FakeLyricsProvider


@pytest.fixture
def room_manager():
    """RoomManager with a seeded RNG so word picks are reproducible."""
    return RoomManager(rng=random.Random(1234))


@pytest.fixture
def lyrics_provider():
    return FakeLyricsProvider()


@pytest.fixture
def verifier(lyrics_provider):
    return LyricsVerifier(lyrics_provider, LyricsCache(), lookup_timeout=0.5)


@pytest.fixture
def router(room_manager, verifier):
    return MessageRouter(room_manager, verifier)
