from __future__ import annotations

import threading
import time

import pytest

from hassel.errors import DecodeFailure
from hassel.results import CompressionResult, Dimensions
from hassel.session import DEFAULT_QUIESCENCE, EditingSession
from hassel.settings import CompressionSettings
from hassel.source import load_source

from conftest import image_bytes, make_photo


QUIET = 0.05


class FakePipeline:
    def __init__(self):
        self.calls = []

    def __call__(self, source, settings, changed_axis=None):
        self.calls.append(settings)
        return _result(settings)


def _result(settings):
    return CompressionResult(
        data=b"x" * settings.width,
        dimensions=Dimensions(settings.width, settings.height),
        media_type=settings.format,
        file_name="small_0hassel.jpg",
    )


def test_default_quiescence_is_300ms():
    assert DEFAULT_QUIESCENCE == 0.3


def test_rapid_changes_coalesce_into_one_run(small_source):
    pipeline = FakePipeline()
    session = EditingSession(small_source, quiescence=QUIET, pipeline=pipeline)

    for width in (190, 180, 170, 160, 150):
        session.update(CompressionSettings(width=width, height=120))

    assert session.wait(5)
    assert len(pipeline.calls) == 1
    assert pipeline.calls[0].width == 150
    assert session.completed_runs == 1

    state = session.state
    assert not state.is_processing
    assert state.compressed_dimensions == (150, 120)
    assert state.compressed_size == 150


def test_processing_flag_hides_result(small_source):
    pipeline = FakePipeline()
    session = EditingSession(small_source, quiescence=QUIET, pipeline=pipeline)
    assert session.wait(5)
    assert session.export() is not None

    session.change(quality=0.5)
    assert session.state.is_processing
    assert session.export() is None

    assert session.wait(5)
    assert session.export() == ("small_0hassel.jpg", b"x" * 200)


def test_superseded_run_is_discarded(small_source):
    started = threading.Event()
    release = threading.Event()
    calls = []

    def slow_pipeline(source, settings, changed_axis=None):
        calls.append(settings.width)
        if len(calls) == 1:
            started.set()
            release.wait(5)
        return _result(settings)

    published = []
    session = EditingSession(
        small_source,
        CompressionSettings(width=100, height=80),
        quiescence=QUIET,
        pipeline=slow_pipeline,
        on_result=published.append,
    )
    assert started.wait(5)

    # First run is mid-encode; supersede it.
    session.update(CompressionSettings(width=50, height=40))
    release.set()

    assert session.wait(5)
    assert calls == [100, 50]
    assert session.completed_runs == 1
    assert session.state.compressed_dimensions == (50, 40)
    assert [s.compressed_dimensions for s in published] == [(50, 40)]


def test_failure_resets_flag_and_keeps_previous_result(small_source):
    fail = {"on": False}

    def pipeline(source, settings, changed_axis=None):
        if fail["on"]:
            raise DecodeFailure("bad bytes")
        return _result(settings)

    errors = []
    session = EditingSession(small_source, quiescence=QUIET, pipeline=pipeline, on_error=errors.append)
    assert session.wait(5)
    before = session.state

    fail["on"] = True
    session.change(width=10, height=8)
    assert session.wait(5)

    state = session.state
    assert not state.is_processing
    assert state.error == "bad bytes"
    # size and dimensions untouched, still from the same (earlier) run
    assert state.compressed_size == before.compressed_size
    assert state.compressed_dimensions == before.compressed_dimensions
    assert len(errors) == 1


def test_unexpected_error_still_resets_flag(small_source):
    def pipeline(source, settings, changed_axis=None):
        raise RuntimeError("surprise")

    session = EditingSession(small_source, quiescence=QUIET, pipeline=pipeline)
    assert session.wait(5)
    assert not session.state.is_processing
    assert session.state.error == "Error compressing image."


def test_close_cancels_pending_run(small_source):
    pipeline = FakePipeline()
    session = EditingSession(small_source, quiescence=QUIET, pipeline=pipeline)
    session.close()

    time.sleep(QUIET * 4)
    assert pipeline.calls == []

    with pytest.raises(RuntimeError):
        session.change(quality=0.5)


def test_set_dimension_in_percent_with_real_pipeline(small_source):
    settings = CompressionSettings.for_source(small_source)
    with EditingSession(small_source, settings, quiescence=QUIET, autostart=False) as session:
        session.change(resize_unit="%")
        session.set_dimension(50, "width")

        assert session.settings.width == 100
        assert session.settings.height == 80
        assert session.wait(10)

        state = session.state
        assert state.compressed_dimensions == (100, 80)
        assert state.compressed_size == len(state.compressed)
        assert session.display_dimensions() == (50.0, 50.0)

        name, data = session.export()
        assert name == "small_0hassel.png"
        assert data == state.compressed


def test_set_dimension_height_drives_width(small_source):
    pipeline = FakePipeline()
    session = EditingSession(small_source, quiescence=QUIET, pipeline=pipeline, autostart=False)

    session.set_dimension(40, "height")
    assert session.wait(5)
    assert session.state.compressed_dimensions == (50, 40)


def test_set_dimension_without_lock(small_source):
    pipeline = FakePipeline()
    settings = CompressionSettings(width=200, height=160, maintain_aspect_ratio=False, resize_unit="in")
    session = EditingSession(small_source, settings, quiescence=QUIET, pipeline=pipeline, autostart=False)

    session.set_dimension(1, "width")
    assert session.wait(5)
    assert session.state.compressed_dimensions == (96, 160)
    assert session.display_dimensions() == (1.0, 1.67)


def test_identical_settings_give_identical_bytes(small_source):
    settings = CompressionSettings(width=120, height=96, quality=0.6)
    outputs = []
    for _ in range(2):
        with EditingSession(small_source, settings, quiescence=QUIET) as session:
            assert session.wait(10)
            outputs.append(session.state.compressed)

    assert outputs[0] == outputs[1]


def test_rerun_after_height_edit_keeps_dimensions():
    tall = load_source(image_bytes(make_photo((108, 192)), "PNG"), "image/png", "tall.png")

    with EditingSession(tall, quiescence=QUIET, autostart=False) as session:
        session.set_dimension(99, "height")
        assert session.wait(10)
        first = session.state
        assert (session.settings.width, session.settings.height) == (56, 99)
        assert first.compressed_dimensions == (56, 99)

        # Same settings object, no axis: nothing may move.
        session.update(session.settings)
        assert session.wait(10)
        second = session.state

        assert second.compressed_dimensions == (56, 99)
        assert second.compressed == first.compressed

        session.change(quality=0.5)
        assert session.wait(10)
        assert session.state.compressed_dimensions == (56, 99)
