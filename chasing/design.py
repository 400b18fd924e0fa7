# coding=utf-8
"""Factorial trial sequence and condition codes."""
from collections import namedtuple
import logging
import os
import os.path as op

import numpy as np
import pandas as pd

from .config import (BASE_CONDITIONS, CONDITION_REMAP, VALID_CONDITIONS, ABSENT_THRESHOLD,
                     POOLED_GROUPS, ConfigurationError)

log = logging.getLogger(__name__)


Trial = namedtuple('Trial', ['index', 'condition', 'phase'])

# The two kinds of trial; `coupling` is the rotation-magnitude code fed to coupling_matrix
DirectedPresent = namedtuple('DirectedPresent', ['coupling'])
DirectedAbsent = namedtuple('DirectedAbsent', ['coupling'])


def trial_kind(condition):
    """
    Maps a final condition label to DirectedPresent or DirectedAbsent.

    Labels above ABSENT_THRESHOLD reuse the coupling of label - ABSENT_THRESHOLD.
    """
    if condition not in VALID_CONDITIONS:
        raise ConfigurationError('unknown condition type %r (expected one of %s)' %
                                 (condition, sorted(VALID_CONDITIONS)))
    if condition > ABSENT_THRESHOLD:
        return DirectedAbsent(coupling=condition - ABSENT_THRESHOLD)
    return DirectedPresent(coupling=condition)


def coupling_matrix(code):
    """
    The 2x2 matrix C coupling the two discs.

    Disc 1 relaxes on its own; disc 2 relaxes towards disc 1 with a strength
    proportional to `code`, so bigger codes make disc 2 follow disc 1 more closely.

    N.B. the codes are called rotation magnitudes in the experiment notes, but C
    has no rotation component on purpose: `code` scales a pursuit term, and
    kron(C, j) keeps the x and y axes uncoupled.
    """
    return np.array([[1., 0.],
                     [-float(code), float(code)]])


def condition_group(condition):
    """Name of the pooled synchrony group a condition belongs to."""
    for group, members in POOLED_GROUPS:
        if condition in members:
            return group
    raise ConfigurationError('condition %r belongs to no pooled group' % (condition,))


def design_trials(repetitions, seed=0, base_conditions=BASE_CONDITIONS, remap=None):
    """
    Returns the list of trials of one stimulus set.

    Parameters
    ----------
    repetitions : int
      How many times each base condition appears.
    seed : int, default 0
      Seed of the generator used to draw the phase offsets, in trial order.
    base_conditions : sequence of int
      Abstract condition codes, one trial of each per repetition.
    remap : dict or None
      Relabelling of the base codes; CONDITION_REMAP if None.
    """
    if remap is None:
        remap = CONDITION_REMAP
    repetitions = int(repetitions)
    if repetitions < 1:
        raise ConfigurationError('repetitions must be at least 1, got %r' % repetitions)

    codes = np.tile(np.asarray(base_conditions, dtype=int), repetitions)
    labels = [remap[code] for code in codes]
    assert set(labels) == VALID_CONDITIONS, \
        'condition remap produced %s, expected %s' % (sorted(set(labels)), sorted(VALID_CONDITIONS))

    rng = np.random.default_rng(seed)
    phases = rng.uniform(0, 2 * np.pi, size=len(labels))

    return [Trial(index=index, condition=int(label), phase=float(phase))
            for index, (label, phase) in enumerate(zip(labels, phases))]


def trials_frame(trials):
    """Tidy dataframe with one row per trial."""
    df = pd.DataFrame(list(trials), columns=list(Trial._fields))
    df['motion'] = ['absent' if isinstance(trial_kind(c), DirectedAbsent) else 'present'
                    for c in df.condition]
    df['synchrony'] = [condition_group(c) for c in df.condition]
    return df


def write_conditions(trials, dest_dir, name='conditions'):
    """
    Writes the trial table the experiment runtime loads (csv and xlsx).

    Returns the paths written.
    """
    if not op.isdir(dest_dir):
        os.makedirs(dest_dir)
    df = trials_frame(trials)
    csv_path = op.join(dest_dir, name + '.csv')
    xlsx_path = op.join(dest_dir, name + '.xlsx')
    df.to_csv(csv_path, index=False)
    df.to_excel(xlsx_path, index=False)
    log.info('wrote %d trials to %s', len(df), csv_path)
    return csv_path, xlsx_path
