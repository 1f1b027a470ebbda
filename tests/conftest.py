"""Pytest fixtures for the comic backend tests."""

import asyncio
import base64
import io
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pytest
from PIL import Image

from heroes.models.comic import Beat, ComicLayout, ComicPage, Persona, StoryConfig
from heroes.services.page_orchestrator import PageOrchestrator

FAKE_IMAGE_URL = "data:image/png;base64,iVBORw0KGgo="


def make_png_base64(color=(200, 40, 40, 255), size=(12, 18), mode="RGBA") -> str:
    """Encode a tiny solid image as base64 PNG."""
    image = Image.new(mode, size, color)
    buffer = io.BytesIO()
    image.save(buffer, "PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


@dataclass
class BeatCall:
    page_num: int
    history: List[ComicPage]
    is_decision_page: bool
    config: StoryConfig
    friend: Optional[Persona]


@dataclass
class FakeBeatSynthesizer:
    """Records calls; pages listed in `gates` block until their event is set."""

    calls: List[BeatCall] = field(default_factory=list)
    gates: Dict[int, asyncio.Event] = field(default_factory=dict)
    failures: Dict[int, Exception] = field(default_factory=dict)

    async def synthesize(self, history, page_num, is_decision_page, config, friend=None):
        self.calls.append(BeatCall(page_num, list(history), is_decision_page, config, friend))
        if page_num in self.gates:
            await self.gates[page_num].wait()
        await asyncio.sleep(0)
        if page_num in self.failures:
            raise self.failures[page_num]
        choices = ["Trust the stranger", "Run"] if is_decision_page else []
        return Beat(
            caption=f"Caption {page_num}",
            dialogue=f"Line {page_num}",
            scene=f"Scene {page_num}",
            focus_char="hero",
            choices=choices,
        )

    def pages(self) -> List[int]:
        return [c.page_num for c in self.calls]


@dataclass
class FakeIllustrationSynthesizer:
    calls: List[tuple] = field(default_factory=list)
    gates: Dict[str, asyncio.Event] = field(default_factory=dict)
    result: str = FAKE_IMAGE_URL

    async def synthesize(self, beat, page_type, genre, hero=None, friend=None):
        self.calls.append((beat, page_type, genre, hero, friend))
        if beat.scene in self.gates:
            await self.gates[beat.scene].wait()
        await asyncio.sleep(0)
        return self.result


@pytest.fixture
def layout():
    """Small layout: cover 0, story 1-10, back cover 11, decision on page 3."""
    return ComicLayout(
        max_story_pages=10,
        back_cover_page=11,
        total_pages=11,
        initial_pages=2,
        batch_size=3,
        decision_pages=frozenset({3}),
    )


@pytest.fixture
def fake_beat():
    return FakeBeatSynthesizer()


@pytest.fixture
def fake_illustration():
    return FakeIllustrationSynthesizer()


@pytest.fixture
def hero():
    return Persona(base64=make_png_base64(), desc="Hero")


@pytest.fixture
def friend():
    return Persona(base64=make_png_base64(color=(20, 20, 220, 255)), desc="Co-Star")


@pytest.fixture
def orchestrator(fake_beat, fake_illustration, layout):
    return PageOrchestrator(fake_beat, fake_illustration, layout, launch_delay=0)


async def wait_for_calls(fake, count: int) -> None:
    """Yield to the loop until the fake has seen `count` calls."""
    for _ in range(200):
        if len(fake.calls) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {count} calls, saw {len(fake.calls)}")
