"""Pytest fixtures for rastertrace tests."""

import os
import tempfile

import cv2
import numpy as np
import pytest


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def default_config():
    """Create default pipeline configuration."""
    from rastertrace.config import PipelineConfig
    return PipelineConfig()


@pytest.fixture
def run():
    """A fresh PipelineRun recording its host callbacks."""
    from rastertrace.host import RecordingHost
    from rastertrace.run import PipelineRun
    return PipelineRun(stage_name="test", host=RecordingHost())


@pytest.fixture
def bar_image():
    """White image with a black 12x3 bar at x 4..16, y 5..8."""
    img = np.full((16, 24, 3), 255, dtype=np.uint8)
    img[5:8, 4:16] = 0
    return img


@pytest.fixture
def frame_image():
    """White image with a black square frame (one hole)."""
    img = np.full((40, 40, 3), 255, dtype=np.uint8)
    cv2.rectangle(img, (5, 5), (30, 30), (0, 0, 0), -1)
    cv2.rectangle(img, (10, 10), (25, 25), (255, 255, 255), -1)
    return img


@pytest.fixture
def two_blobs_image():
    """Two separate filled squares."""
    img = np.full((30, 60, 3), 255, dtype=np.uint8)
    img[5:15, 5:15] = 0
    img[5:15, 40:50] = 0
    return img


@pytest.fixture
def synthetic_input_file(temp_dir):
    """A PNG with a thick horizontal stroke for integration tests."""
    img = np.full((30, 60, 3), 255, dtype=np.uint8)
    img[10:13, 10:50] = 0
    path = os.path.join(temp_dir, "test_input.png")
    cv2.imwrite(path, cv2.cvtColor(img, cv2.COLOR_RGB2BGR))
    return path


def rect_path(x, y, width, height, filled=True):
    """A closed rectangular path drawn clockwise on screen."""
    from rastertrace.geometry.path_model import polyline_path
    points = [(x, y), (x + width, y), (x + width, y + height), (x, y + height)]
    return polyline_path(points, closed=True, filled=filled)


@pytest.fixture
def make_rect():
    return rect_path
