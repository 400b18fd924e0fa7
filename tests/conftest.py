import matplotlib
matplotlib.use('Agg')

import pytest

from chasing.config import SimulationParams, RenderParams


@pytest.fixture
def small_params():
    return SimulationParams(n_steps=64)


@pytest.fixture
def small_render():
    return RenderParams(width=64, height=48, radius=3, fps=10,
                        fourcc='MJPG', video_ext='.avi', line_width=1.)
