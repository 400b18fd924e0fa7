# coding=utf-8
"""
Batch driver and command line.

Typical use, two runs:

    python -m chasing.pipeline generate --seed 0 --out-dir run1
    python -m chasing.pipeline normalize run1/raw --out-dir run1/normalization
    python -m chasing.pipeline generate --seed 0 --out-dir run2 \
        --factors run1/normalization/scaling_factors.csv --video
"""
from concurrent.futures import ThreadPoolExecutor, as_completed
import logging
import os.path as op

import pandas as pd

from .config import DATA_DIR, SimulationParams, RenderParams, frame_dt, check_params
from .design import design_trials, write_conditions
from .simulation import process_trial
from .render import export_sample
from . import speeds as sp

log = logging.getLogger(__name__)


def _process_and_export(trial, out_dir, seed, params, render, factors, video, image):
    sample = process_trial(trial, params, seed=seed)
    return export_sample(sample, out_dir, seed=seed, params=params, render=render,
                         factors=factors, video=video, image=image)


def run_trials(repetitions=10, seed=0, out_dir=DATA_DIR, factors=None,
               video=False, image=True, jobs=1, params=None, render=None):
    """
    Generates a whole stimulus set.

    Parameters
    ----------
    repetitions : int, default 10
      Trials per condition.
    seed : int, default 0
      Seeds both the phase offsets and the per-trial noise.
    out_dir : str
      Where the conditions file and the per-trial outputs go.
    factors : dict, DataFrame, str or None
      Scaling factors {(group, disc): factor}, the dataframe returned by the normalization
      pass, or the path to its scaling factors csv. If None, coordinates are only scaled to pixels.
    video, image : bool
      Whether to render videos and static trajectory images.
    jobs : int, default 1
      Worker threads; outputs do not depend on it.

    Returns
    -------
    The trials and, in trial order, a dict {kind: path} per trial.
    """
    params = check_params(params if params is not None else SimulationParams())
    render = render if render is not None else RenderParams()
    if isinstance(factors, str):
        factors = sp.read_scaling_factors(factors)
    elif isinstance(factors, pd.DataFrame):
        factors = sp.factors_dict(factors)

    trials = design_trials(repetitions, seed=seed)
    write_conditions(trials, out_dir)
    args = (out_dir, seed, params, render, factors, video, image)

    if jobs <= 1:
        outputs = [_process_and_export(trial, *args) for trial in trials]
    else:
        outputs = [None] * len(trials)
        with ThreadPoolExecutor(max_workers=jobs) as executor:
            future_to_index = {executor.submit(_process_and_export, trial, *args): trial.index
                               for trial in trials}
            for fut in as_completed(future_to_index):
                outputs[future_to_index[fut]] = fut.result()
    log.info('generated %d trials (seed=%d) in %s', len(trials), seed, out_dir)
    return trials, outputs


def _setup_logging(verbose):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO,
                        format='%(asctime)s %(name)s %(levelname)s: %(message)s')


def generate(repetitions=10, seed=0, out_dir=DATA_DIR, factors=None,
             video=False, no_image=False, jobs=1, verbose=False):
    """Simulates, transforms and exports a stimulus set."""
    _setup_logging(verbose)
    trials, _ = run_trials(repetitions=repetitions, seed=seed, out_dir=out_dir, factors=factors,
                           video=video, image=not no_image, jobs=jobs)
    return '%d trials written to %s' % (len(trials), op.abspath(out_dir))


def normalize(raw_dir, out_dir=None, on_error='raise', strict=False, plot=False, verbose=False):
    """Derives the speed scaling factors from the raw trajectories of a previous run."""
    _setup_logging(verbose)
    if out_dir is None:
        out_dir = op.join(op.dirname(op.abspath(raw_dir)), 'normalization')
    factors, speeds = sp.normalize(raw_dir, out_dir, dt=frame_dt(SimulationParams()),
                                   on_error=on_error, strict=strict)
    if plot:
        from .analysis import speed_distribution_plots
        speed_distribution_plots(speeds, factors, op.join(out_dir, 'figures'))
    return factors.to_string(index=False)


if __name__ == '__main__':
    import argh
    argh.dispatch_commands([generate, normalize])
