# coding=utf-8
"""
Two-disc trajectory synthesis.

Each trial integrates the linear system

    s[i+1] = expm(J dt) s[i] + W xi[i] dt + f[i]      J = kron(C, j)

where s = (x1, y1, x2, y2), C is the condition coupling matrix, j the
single-disc decay matrix, xi standard gaussian noise and f a sinusoidal drive
with one frequency per axis. "Directed motion absent" trials integrate the
reduced coupling and then reflect disc 2 in time, which keeps its speed
profile but breaks its alignment with disc 1.
"""
from collections import namedtuple
import logging

import numpy as np
from scipy.linalg import expm

from .config import SimulationParams, IntegrationError, check_params
from .design import DirectedAbsent, coupling_matrix, trial_kind

log = logging.getLogger(__name__)


class Sample(namedtuple('Sample', ['index', 'condition', 'x1', 'y1', 'x2', 'y2'])):
    """Coordinates of both discs for one trial."""
    __slots__ = ()

    @property
    def coords(self):
        return np.column_stack((self.x1, self.y1, self.x2, self.y2))

    @classmethod
    def from_coords(cls, index, condition, coords):
        coords = np.asarray(coords, dtype=float)
        return cls(index, condition, coords[:, 0], coords[:, 1], coords[:, 2], coords[:, 3])


def trial_rng(seed, index):
    """Generator for trial `index`, independent of the order trials are run in."""
    return np.random.default_rng(np.random.SeedSequence(seed, spawn_key=(int(index),)))


def propagator(C, params):
    """expm(kron(C, j) * dt), the one-step transition of the noiseless system."""
    J = np.kron(np.asarray(C, dtype=float), np.diag(params.decay))
    with np.errstate(over='ignore', invalid='ignore'):
        try:
            E = expm(J * params.dt)
        except (ValueError, np.linalg.LinAlgError) as ex:
            raise IntegrationError('matrix exponential failed for C=%r: %s' % (np.asarray(C).tolist(), ex))
    if not np.all(np.isfinite(E)):
        raise IntegrationError('matrix exponential is not finite for C=%r' % (np.asarray(C).tolist(),))
    return E


def forcing(params, phase=0.):
    """(n_steps, 4) sinusoidal drive; `phase` shifts all axes alike."""
    t = np.arange(params.n_steps) * params.dt
    divisors = np.asarray(params.forcing_divisors, dtype=float)
    return params.forcing_amplitude * np.sin(t[:, None] / divisors[None, :] + phase)


def integrate(C, params, rng, phase=0.):
    """
    Simulates one trajectory.

    Parameters
    ----------
    C : (2, 2) array
      Coupling between the discs.
    params : SimulationParams
    rng : numpy.random.Generator
      Consumed as: 4 draws for the initial state, then (n_steps - 1) x 4 noise draws.
    phase : float
      Phase offset of the sinusoidal drive.

    Returns
    -------
    (n_steps, 4) array with rows (x1, y1, x2, y2).
    """
    E = propagator(C, params)
    drive = forcing(params, phase)
    n = params.n_steps

    states = np.empty((n, 4))
    states[0] = params.initial_jitter * rng.standard_normal(4)
    noise = params.noise_scale * params.dt * rng.standard_normal((n - 1, 4))
    for i in range(n - 1):
        states[i + 1] = E.dot(states[i]) + noise[i] + drive[i]

    if not np.all(np.isfinite(states)):
        raise IntegrationError('trajectory diverged (C=%r, phase=%r)' % (np.asarray(C).tolist(), phase))
    return states


def reflect(traj):
    """Reverses disc 2 in time and flips its Y axis; disc 1 is left as is."""
    traj = np.array(traj, dtype=float, copy=True)
    traj[:, 2] = traj[::-1, 2]
    traj[:, 3] = -traj[::-1, 3]
    return traj


def simulate_trial(trial, params=None, seed=0):
    """Full resolution Sample for `trial`."""
    if params is None:
        params = SimulationParams()
    kind = trial_kind(trial.condition)
    rng = trial_rng(seed, trial.index)
    traj = integrate(coupling_matrix(kind.coupling), params, rng, trial.phase)
    if isinstance(kind, DirectedAbsent):
        traj = reflect(traj)
    return Sample.from_coords(trial.index, trial.condition, traj)


def downsample(traj, stride=4):
    """Keeps every `stride`-th row, starting with the first."""
    return np.asarray(traj)[::stride]


def scale(traj, amplitude=250.):
    return np.asarray(traj, dtype=float) * amplitude


def process_trial(trial, params=None, seed=0):
    """Simulated, transformed and downsampled Sample, still in state units."""
    if params is None:
        params = SimulationParams()
    check_params(params)
    sample = simulate_trial(trial, params, seed=seed)
    raw = downsample(sample.coords, params.stride)
    log.debug('trial %d (type %d): %d frames', trial.index, trial.condition, len(raw))
    return Sample.from_coords(trial.index, trial.condition, raw)
