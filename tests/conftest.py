import random

import pytest

from adstudio.config import Settings
from adstudio.simulator.clock import ManualScheduler


@pytest.fixture
def settings() -> Settings:
    return Settings(
        stub_latency_min_seconds=0,
        stub_latency_max_seconds=0,
        openrouter_api_key="",
        generation_backend="stub",
    )


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)
