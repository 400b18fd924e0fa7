# coding=utf-8
"""
Speed normalization across synchrony conditions.

Conditions differing only in the presence of directed motion share their
coupling, so they are pooled; each pooled group then gets, per disc, the
factor that brings its mean speed to the average of the pooled group means.
"""
from collections import namedtuple
from glob import glob
import logging
import os
import os.path as op
import re

import numpy as np
import pandas as pd

from .config import (COORD_COLUMNS, SPEED_COLUMNS, FACTOR_COLUMNS, DISCS, POOLED_GROUPS,
                     VALID_CONDITIONS, TRIAL_STEM_RE, SimulationParams, frame_dt,
                     ConfigurationError, TrajectoryFileError)

log = logging.getLogger(__name__)

_STEM_MATCHER = re.compile(TRIAL_STEM_RE)

ON_ERROR_POLICIES = ('raise', 'skip')

# Per-file summary plus every per-frame speed (first frames are NaN) of one condition
ConditionSpeeds = namedtuple('ConditionSpeeds', ['summary', 'frames'])


def frame_speeds(coords, dt):
    """
    (n, 2) array of per-frame speeds of disc 1 and disc 2.

    The first row is NaN, there is no displacement to measure there.
    """
    coords = np.asarray(coords, dtype=float)
    speeds = np.full((len(coords), 2), np.nan)
    if len(coords) > 1:
        deltas = np.diff(coords, axis=0)
        speeds[1:, 0] = np.hypot(deltas[:, 0], deltas[:, 1]) / dt
        speeds[1:, 1] = np.hypot(deltas[:, 2], deltas[:, 3]) / dt
    return speeds


def parse_trial_stem(path):
    """(index, condition, seed) encoded in a trajectory file name, or None."""
    stem = op.splitext(op.basename(path))[0]
    match = _STEM_MATCHER.match(stem)
    if match is None:
        return None
    return int(match.group('index')), int(match.group('condition')), int(match.group('seed'))


def read_trajectory(path):
    """Reads a 4-column trajectory file into a (n, 4) float array."""
    try:
        df = pd.read_csv(path)
    except (IOError, OSError, pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as ex:
        raise TrajectoryFileError(path, str(ex))
    missing = [column for column in COORD_COLUMNS if column not in df.columns]
    if missing:
        raise ConfigurationError('%s: missing columns %s' % (path, ', '.join(missing)))
    try:
        return df[COORD_COLUMNS].to_numpy(dtype=float)
    except (TypeError, ValueError) as ex:
        raise TrajectoryFileError(path, 'non numeric coordinates (%s)' % ex)


def _check_policy(on_error):
    if on_error not in ON_ERROR_POLICIES:
        raise ConfigurationError('on_error must be one of %s, got %r' % (ON_ERROR_POLICIES, on_error))


def condition_speeds(paths, dt, on_error='raise'):
    """
    Speed statistics of a set of trajectory files.

    Parameters
    ----------
    paths : list of str
      Trajectory files, all of the same condition.
    dt : float
      Time between frames.
    on_error : 'raise' or 'skip'
      What to do with files that cannot be read or whose discs do not move;
      skipped files are logged.
      Files lacking the coordinate columns always abort.

    Returns
    -------
    ConditionSpeeds
    """
    _check_policy(on_error)
    rows = []
    frames = []
    for path in paths:
        try:
            coords = read_trajectory(path)
        except TrajectoryFileError as ex:
            if on_error == 'raise':
                raise
            log.warning('skipping %s', ex)
            continue
        speeds = frame_speeds(coords, dt)
        means = [np.nanmean(speeds[:, d]) if len(speeds) > 1 else np.nan for d in range(2)]
        if not all(np.isfinite(mean) and mean > 0 for mean in means):
            problem = '%s: motionless trajectory (mean speeds %.6g, %.6g)' % (path, means[0], means[1])
            if on_error == 'raise':
                raise ConfigurationError(problem)
            log.warning('skipping %s', problem)
            continue
        rows.append([op.basename(path)] + means)
        frames.append(speeds)
    summary = pd.DataFrame(rows, columns=SPEED_COLUMNS)
    frames = np.concatenate(frames) if frames else np.empty((0, 2))
    return ConditionSpeeds(summary=summary, frames=frames)


def collect_speeds(raw_dir, dt=None, on_error='raise', conditions=VALID_CONDITIONS):
    """
    Speed statistics of every trajectory file in `raw_dir`, keyed by condition.

    All files are read before returning; nothing pooled is computed here.
    """
    _check_policy(on_error)
    if dt is None:
        dt = frame_dt(SimulationParams())
    if not op.isdir(raw_dir):
        raise ConfigurationError('trajectory directory %s does not exist' % raw_dir)

    by_condition = {condition: [] for condition in conditions}
    for path in sorted(glob(op.join(raw_dir, '*.csv'))):
        parsed = parse_trial_stem(path)
        if parsed is None:
            log.warning('ignoring %s, not a trajectory file name', path)
            continue
        condition = parsed[1]
        if condition not in by_condition:
            raise ConfigurationError('%s: unexpected condition type %d' % (path, condition))
        by_condition[condition].append(path)

    speeds = {}
    for condition in sorted(by_condition):
        speeds[condition] = condition_speeds(by_condition[condition], dt, on_error=on_error)
        log.info('type %d: %d files, %d frames',
                 condition, len(speeds[condition].summary), len(speeds[condition].frames))
    return speeds


def _pooled_frames(speeds_by_condition, members):
    frames = [speeds_by_condition[c].frames for c in members if c in speeds_by_condition]
    return np.concatenate(frames) if frames else np.empty((0, 2))


def group_mean_speeds(speeds_by_condition, groups=POOLED_GROUPS):
    """
    {(group, disc): mean speed} pooling all frames of all trials in each group.

    Raises ConfigurationError when a group has no frames or a zero mean speed.
    """
    means = {}
    for group, members in groups:
        frames = _pooled_frames(speeds_by_condition, members)
        for d, disc in enumerate(DISCS):
            column = frames[:, d]
            column = column[~np.isnan(column)]
            if not len(column):
                raise ConfigurationError('group %r (types %s) has no recorded frames for disc %d' %
                                         (group, list(members), disc))
            mean = column.mean()
            if not np.isfinite(mean) or mean <= 0:
                raise ConfigurationError('group %r (types %s) has mean speed %r for disc %d, '
                                         'cannot derive a scaling factor' %
                                         (group, list(members), mean, disc))
            means[(group, disc)] = mean
    return means


def target_speeds(group_means, groups=POOLED_GROUPS):
    """{disc: average of the group means}"""
    return {disc: np.mean([group_means[(group, disc)] for group, _ in groups]) for disc in DISCS}


def scaling_factors(speeds_by_condition, groups=POOLED_GROUPS):
    """Dataframe (Group, Disc, Scaling Factor) equalizing mean speeds across groups."""
    means = group_mean_speeds(speeds_by_condition, groups)
    targets = target_speeds(means, groups)
    rows = [(group, disc, targets[disc] / means[(group, disc)])
            for group, _ in groups for disc in DISCS]
    return pd.DataFrame(rows, columns=FACTOR_COLUMNS)


def factors_dict(factors):
    """{(group, disc): factor} from a scaling factors dataframe."""
    missing = [column for column in FACTOR_COLUMNS if column not in factors.columns]
    if missing:
        raise ConfigurationError('scaling factors lack columns %s' % ', '.join(missing))
    result = {}
    for group, disc, factor in factors[FACTOR_COLUMNS].itertuples(index=False):
        factor = float(factor)
        if not np.isfinite(factor) or factor <= 0:
            raise ConfigurationError('invalid scaling factor %r for group %r, disc %r' %
                                     (factor, group, disc))
        result[(str(group), int(disc))] = factor
    return result


def verify_scaling(speeds_by_condition, factors, groups=POOLED_GROUPS, rtol=1e-6):
    """
    Checks that scaled mean speeds are the same in every group.

    Returns {(group, disc): scaled mean speed}.
    """
    factors = factors_dict(factors) if isinstance(factors, pd.DataFrame) else factors
    scaled = {}
    for group, members in groups:
        frames = _pooled_frames(speeds_by_condition, members)
        for d, disc in enumerate(DISCS):
            try:
                factor = factors[(group, disc)]
            except KeyError:
                raise ConfigurationError('no scaling factor for group %r, disc %d' % (group, disc))
            scaled[(group, disc)] = np.nanmean(frames[:, d] * factor) if len(frames) else np.nan
    for disc in DISCS:
        values = np.array([scaled[(group, disc)] for group, _ in groups])
        if not np.allclose(values, values[0], rtol=rtol, atol=0):
            raise ConfigurationError('scaled mean speeds of disc %d differ across groups: %s' %
                                     (disc, dict(zip([g for g, _ in groups], values))))
    return scaled


def check_pooling_consistency(speeds_by_condition, groups=POOLED_GROUPS, rtol=0.1, strict=False):
    """
    Compares the mean speeds of the conditions pooled together.

    Pooling assumes the reflected ("absent") trials keep the speeds of their
    "present" counterparts. Groups whose members differ by more than `rtol`
    (relative to their average) are logged, or raise if `strict`.

    Returns a dataframe with one row per (group, disc).
    """
    rows = []
    problems = []
    for group, members in groups:
        for d, disc in enumerate(DISCS):
            means = []
            for condition in members:
                frames = speeds_by_condition[condition].frames if condition in speeds_by_condition else []
                column = np.asarray(frames)[:, d] if len(frames) else np.empty(0)
                column = column[~np.isnan(column)]
                means.append(column.mean() if len(column) else np.nan)
            means = np.array(means)
            if np.any(np.isnan(means)):
                log.warning('group %r: cannot compare disc %d speeds, some conditions have no frames',
                            group, disc)
                relative = np.nan
            else:
                relative = (means.max() - means.min()) / means.mean() if means.mean() > 0 else 0.
                if relative > rtol:
                    problems.append('group %r disc %d: mean speeds %s differ by %.1f%%' %
                                    (group, disc, dict(zip(members, means.round(6))), 100 * relative))
            rows.append([group, disc] + list(means) + [relative])
    for problem in problems:
        log.warning(problem)
    if problems and strict:
        raise ConfigurationError('pooled conditions do not share speed statistics: ' + '; '.join(problems))
    return pd.DataFrame(rows, columns=['Group', 'Disc', 'Mean Speed Present', 'Mean Speed Absent',
                                       'Relative Difference'])


def write_speed_summaries(speeds_by_condition, dest_dir):
    """One speed summary csv per condition; returns the paths."""
    if not op.isdir(dest_dir):
        os.makedirs(dest_dir)
    paths = []
    for condition, speeds in sorted(speeds_by_condition.items()):
        path = op.join(dest_dir, 'speeds_type%d.csv' % condition)
        speeds.summary.to_csv(path, index=False)
        paths.append(path)
    return paths


def write_scaling_factors(factors, path):
    dest_dir = op.dirname(path)
    if dest_dir and not op.isdir(dest_dir):
        os.makedirs(dest_dir)
    factors[FACTOR_COLUMNS].to_csv(path, index=False)
    return path


def read_scaling_factors(path):
    """{(group, disc): factor} from a scaling factors csv."""
    try:
        factors = pd.read_csv(path)
    except (IOError, OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as ex:
        raise ConfigurationError('cannot read scaling factors %s: %s' % (path, ex))
    try:
        return factors_dict(factors)
    except ConfigurationError as ex:
        raise ConfigurationError('%s: %s' % (path, ex))


def normalize(raw_dir, out_dir, dt=None, on_error='raise', strict=False, rtol=0.1):
    """
    Runs the whole normalization pass over a directory of raw trajectories.

    Writes the per-condition speed summaries and `scaling_factors.csv` to
    `out_dir`; returns the scaling factors dataframe and the speeds.
    No factor is written if any group mean speed is zero or missing.
    """
    speeds = collect_speeds(raw_dir, dt=dt, on_error=on_error)
    write_speed_summaries(speeds, out_dir)
    check_pooling_consistency(speeds, rtol=rtol, strict=strict)
    factors = scaling_factors(speeds)
    verify_scaling(speeds, factors)
    path = write_scaling_factors(factors, op.join(out_dir, 'scaling_factors.csv'))
    log.info('wrote scaling factors to %s', path)
    return factors, speeds
