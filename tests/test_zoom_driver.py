from __future__ import annotations

import base64

import pytest

from meeting_recorder.config.settings import BotSettings
from meeting_recorder.meeting_handler.zoom_driver import ZoomWebDriver
from meeting_recorder.meeting_handler.zoom_scripts import (
    ZOOM_SELECTORS,
    get_combined_selector,
    get_selectors_for,
)


@pytest.fixture
def driver() -> ZoomWebDriver:
    return ZoomWebDriver(BotSettings())


def test_combined_selector_skips_text_selectors():
    combined = get_combined_selector("meeting_ended")
    assert combined == ""
    assert "a.join-from-browser" in get_combined_selector("join_from_browser")


def test_unknown_selector_type_is_empty():
    assert get_selectors_for("nope") == []
    assert "passcode_input" in ZOOM_SELECTORS


@pytest.mark.asyncio
async def test_received_chunks_are_decoded_and_forwarded(driver):
    received = []
    driver.on_fragment(received.append)

    await driver._receive_chunk(base64.b64encode(b"\x1aE\xdf\xa3webm").decode())
    await driver._receive_chunk("***not base64***")

    assert received == [b"\x1aE\xdf\xa3webm"]


def test_meeting_ended_is_reported_once(driver):
    reasons = []
    driver.on_meeting_ended(reasons.append)

    driver._report_ended("ended by host")
    driver._report_ended("page closed")

    assert reasons == ["ended by host"]


@pytest.mark.asyncio
async def test_release_without_launch_is_safe(driver):
    reasons = []
    driver.on_meeting_ended(reasons.append)

    await driver.stop_capture()
    await driver.release()
    await driver.release()

    driver._report_ended("page closed")
    assert reasons == []
    assert driver.page is None
