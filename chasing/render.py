# coding=utf-8
"""Videos, trajectory images and coordinate tables for each trial."""
import logging
import os
import os.path as op

import numpy as np
import pandas as pd
from matplotlib.figure import Figure
from skimage.draw import disk

from .config import COORD_COLUMNS, TRIAL_STEM, DISCS, RenderParams, SimulationParams, ConfigurationError
from .design import condition_group
from .simulation import scale

log = logging.getLogger(__name__)

RAW_DIR = 'raw'
COORDS_DIR = 'coords'
IMAGES_DIR = 'images'
VIDEOS_DIR = 'videos'


def trial_stem(index, condition, seed):
    return TRIAL_STEM % (index, condition, seed)


def _ensure_dir(path):
    os.makedirs(path, exist_ok=True)
    return path


def to_pixels(x, y, render):
    """(row, col) on the canvas of a point in pixel units around the canvas center, y up."""
    return render.height / 2. - np.asarray(y), render.width / 2. + np.asarray(x)


def draw_frame(p1, p2, render=None):
    """
    One video frame: two filled discs on a plain background.

    Parameters
    ----------
    p1, p2 : (x, y)
      Disc centers in pixels, relative to the canvas center.
    render : RenderParams
    """
    if render is None:
        render = RenderParams()
    frame = np.empty((render.height, render.width, 3), dtype=np.uint8)
    frame[:] = render.background
    for (x, y), color in zip((p1, p2), render.colors):
        row, col = to_pixels(x, y, render)
        # disk clips to the canvas, discs wandering off screen just vanish
        rr, cc = disk((row, col), render.radius, shape=frame.shape[:2])
        frame[rr, cc] = color
    return frame


def write_video(coords, path, render=None):
    """Renders one frame per row of `coords` (pixel units) into a video file."""
    import cv2
    if render is None:
        render = RenderParams()
    coords = np.asarray(coords, dtype=float)
    writer = cv2.VideoWriter(path, cv2.VideoWriter_fourcc(*render.fourcc), render.fps,
                             (render.width, render.height))
    if not writer.isOpened():
        raise IOError('cannot open video writer for %s (fourcc %r)' % (path, render.fourcc))
    try:
        for x1, y1, x2, y2 in coords:
            frame = draw_frame((x1, y1), (x2, y2), render)
            writer.write(cv2.cvtColor(frame, cv2.COLOR_RGB2BGR))
    finally:
        writer.release()
    return path


def write_trajectory_image(coords, path, render=None, dpi=100):
    """The whole path of each disc as a polyline on a white canvas."""
    if render is None:
        render = RenderParams()
    coords = np.asarray(coords, dtype=float)
    # no pyplot here, trials can be exported from worker threads
    fig = Figure(figsize=(render.width / float(dpi), render.height / float(dpi)), dpi=dpi)
    ax = fig.add_axes([0, 0, 1, 1])
    ax.set_xlim(-render.width / 2., render.width / 2.)
    ax.set_ylim(-render.height / 2., render.height / 2.)
    ax.axis('off')
    for disc, color in zip(DISCS, render.colors):
        x, y = coords[:, 2 * (disc - 1)], coords[:, 2 * (disc - 1) + 1]
        ax.plot(x, y, color=np.asarray(color) / 255., linewidth=render.line_width)
    fig.savefig(path, dpi=dpi, facecolor='white')
    return path


def write_coordinates(coords, path):
    pd.DataFrame(np.asarray(coords, dtype=float), columns=COORD_COLUMNS).to_csv(path, index=False)
    return path


def apply_scaling(coords, condition, factors):
    """Multiplies each disc coordinates by the scaling factor of the condition group."""
    group = condition_group(condition)
    coords = np.array(coords, dtype=float, copy=True)
    for disc in DISCS:
        try:
            factor = factors[(group, disc)]
        except KeyError:
            raise ConfigurationError('no scaling factor for group %r, disc %d' % (group, disc))
        coords[:, 2 * (disc - 1):2 * disc] *= factor
    return coords


def export_sample(sample, out_dir, seed=0, params=None, render=None, factors=None,
                  video=False, image=True):
    """
    Writes everything the experiment needs for one trial.

    - raw/<stem>.csv: downsampled coordinates in state units
    - coords/<stem>.csv: coordinates in pixels (rescaled if `factors` are given)
    - images/<stem>.png: static trajectory image, if `image`
    - videos/<stem><ext>: animation, if `video`

    Returns a dict {kind: path}.
    """
    if params is None:
        params = SimulationParams()
    if render is None:
        render = RenderParams()
    stem = trial_stem(sample.index, sample.condition, seed)
    raw = sample.coords
    pixels = scale(raw, params.amplitude)
    if factors is not None:
        pixels = apply_scaling(pixels, sample.condition, factors)

    paths = dict(
        raw=write_coordinates(raw, op.join(_ensure_dir(op.join(out_dir, RAW_DIR)), stem + '.csv')),
        coords=write_coordinates(pixels, op.join(_ensure_dir(op.join(out_dir, COORDS_DIR)), stem + '.csv')),
    )
    if image:
        paths['image'] = write_trajectory_image(
            pixels, op.join(_ensure_dir(op.join(out_dir, IMAGES_DIR)), stem + '.png'), render)
    if video:
        paths['video'] = write_video(
            pixels, op.join(_ensure_dir(op.join(out_dir, VIDEOS_DIR)), stem + render.video_ext), render)
    log.info('exported %s', stem)
    return paths
