# coding=utf-8
import os
import os.path as op

import numpy as np
import pandas as pd

import matplotlib.pyplot as plt
import seaborn as sns

from .config import DISCS, POOLED_GROUPS
from .design import condition_group
from .speeds import factors_dict


def _speeds_df(speeds_by_condition, factors=None):
    # Long format: one row per frame
    dfs = []
    for condition, speeds in sorted(speeds_by_condition.items()):
        if not len(speeds.frames):
            continue
        for d, disc in enumerate(DISCS):
            values = speeds.frames[:, d]
            values = values[~np.isnan(values)]
            if factors is not None:
                values = values * factors[(condition_group(condition), disc)]
            dfs.append(pd.DataFrame(dict(speed=values, condition='type %d' % condition, disc=disc)))
    if not dfs:
        return pd.DataFrame(columns=['speed', 'condition', 'disc'])
    return pd.concat(dfs, ignore_index=True)


def speed_distribution_plots(speeds_by_condition, factors, dest_dir):
    """
    Density of per-frame speeds per condition, before and after scaling.

    One figure per disc, with raw speeds on top and scaled speeds below.
    Returns the paths of the saved figures.
    """
    if isinstance(factors, pd.DataFrame):
        factors = factors_dict(factors)
    if not op.isdir(dest_dir):
        os.makedirs(dest_dir)

    raw_df = _speeds_df(speeds_by_condition)
    scaled_df = _speeds_df(speeds_by_condition, factors)

    paths = []
    for disc in DISCS:
        fig, (top, bottom) = plt.subplots(nrows=2, ncols=1, sharex=True, figsize=(12, 9))
        for ax, df, title in ((top, raw_df, 'raw'), (bottom, scaled_df, 'scaled')):
            df = df[df.disc == disc]
            for condition, cdf in df.groupby('condition'):
                label = '%s (n=%d)' % (condition, len(cdf))
                sns.kdeplot(x=cdf.speed, label=label, fill=True, ax=ax)
            ax.set_title('disc %d, %s speeds' % (disc, title))
            ax.legend()
        bottom.set_xlabel('speed (units/s)')
        groups = ', '.join('%s=%s' % (group, list(members)) for group, members in POOLED_GROUPS)
        fig.suptitle('Speed distributions (pooled groups: %s)' % groups)
        path = op.join(dest_dir, 'speeds-disc%d.png' % disc)
        fig.savefig(path)
        plt.close(fig)
        paths.append(path)
    return paths
