"""Pytest configuration and shared fixtures."""

import os

# Headless pygame: no window, no sound card
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

import pygame
import pytest

from psychoscope.audio.context import AudioContext
from psychoscope.audio.engine import AudioEngine, EngineConfig
from psychoscope.audio.output import OfflineOutput
from psychoscope.profiles import get_profile

# Default sample rate for test audio
TEST_SR = 22050


@pytest.fixture
def sample_rate() -> int:
    """Default sample rate for tests."""
    return TEST_SR


@pytest.fixture
def context(sample_rate: int) -> AudioContext:
    """A fresh audio context with nothing connected."""
    return AudioContext(sample_rate)


@pytest.fixture
def healthy():
    return get_profile("healthy")


@pytest.fixture
def offline_engine(sample_rate: int):
    """
    An engine driven by OfflineOutput with a fixed seed.

    Not initialised; tests call ``init()`` themselves.
    """
    output = OfflineOutput(blocksize=256)
    engine = AudioEngine(output=output, config=EngineConfig(sample_rate=sample_rate, seed=1234))
    yield engine
    engine.dispose()


@pytest.fixture
def surface() -> pygame.Surface:
    """Small off-screen drawing surface."""
    return pygame.Surface((160, 120))
