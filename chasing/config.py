# coding=utf-8
"""Parameters, constants and errors shared by the stimulus pipeline."""
from collections import namedtuple
import os.path as op

MY_DIR = op.abspath(op.dirname(__file__))
DATA_DIR = op.join(MY_DIR, 'data')


# --- Errors

class ChasingError(Exception):
    """Base class for all errors raised by the stimulus pipeline."""


class ConfigurationError(ChasingError):
    """Bad parameters or inputs; the run must stop."""


class IntegrationError(ChasingError):
    """The trajectory simulation produced non-finite numbers."""


class TrajectoryFileError(ChasingError):
    """A trajectory file could not be read."""

    def __init__(self, path, reason):
        super().__init__('%s: %s' % (path, reason))
        self.path = path
        self.reason = reason


# --- Experimental design

BASE_CONDITIONS = (1, 2, 3, 4)

# N.B. non-injective in meaning: 5 and 8 reuse the rotation magnitudes of 1 and 4,
# the excess over ABSENT_THRESHOLD flags "directed motion absent"
CONDITION_REMAP = {1: 1, 2: 4, 3: 5, 4: 8}
VALID_CONDITIONS = frozenset((1, 4, 5, 8))
ABSENT_THRESHOLD = 4

# Conditions that share a coupling magnitude, hence the same speed distribution
POOLED_GROUPS = (
    ('low', (1, 5)),
    ('high', (4, 8)),
)

DISCS = (1, 2)


# --- Simulation

SimulationParams = namedtuple('SimulationParams', [
    'n_steps',            # integration steps per trial
    'dt',                 # integration step (s)
    'decay',              # diagonal of the single-disc matrix j
    'noise_scale',        # W
    'forcing_amplitude',  # A
    'forcing_divisors',   # one per state axis (x1, y1, x2, y2), chosen by eye
    'stride',             # temporal downsampling
    'amplitude',          # state units -> pixels
    'initial_jitter',     # std of the perturbation around the origin at t=0
])
SimulationParams.__new__.__defaults__ = (3584, 0.025, (-0.01, -0.01), 10., 3.,
                                         (7., 10., 2., 1.5), 4, 250., 1e-3)


def frame_dt(params):
    """Time between two frames of a downsampled trajectory."""
    return params.dt * params.stride


def check_params(params):
    """Raises ConfigurationError if `params` cannot drive a simulation."""
    if params.n_steps < 2:
        raise ConfigurationError('n_steps must be at least 2, got %r' % (params.n_steps,))
    if params.dt <= 0:
        raise ConfigurationError('dt must be positive, got %r' % (params.dt,))
    if params.stride < 1 or int(params.stride) != params.stride:
        raise ConfigurationError('stride must be a positive integer, got %r' % (params.stride,))
    if params.amplitude <= 0:
        raise ConfigurationError('amplitude must be positive, got %r' % (params.amplitude,))
    if len(params.decay) != 2:
        raise ConfigurationError('decay must have 2 entries, got %r' % (params.decay,))
    if len(params.forcing_divisors) != 4 or any(d == 0 for d in params.forcing_divisors):
        raise ConfigurationError('forcing_divisors must be 4 non-zero numbers, got %r' %
                                 (params.forcing_divisors,))
    return params


# --- Rendering

RenderParams = namedtuple('RenderParams', [
    'width',
    'height',
    'fps',
    'radius',
    'colors',
    'background',
    'fourcc',
    'video_ext',
    'line_width',
])
RenderParams.__new__.__defaults__ = (1280, 1024, 60, 20,
                                     ((255, 0, 0), (0, 0, 255)),
                                     (0, 0, 0),
                                     'mp4v', '.mp4', 2.)


# --- Tabular interfaces

COORD_COLUMNS = ['X1', 'Y1', 'X2', 'Y2']
SPEED_COLUMNS = ['File', 'Mean Speed Disc 1', 'Mean Speed Disc 2']
FACTOR_COLUMNS = ['Group', 'Disc', 'Scaling Factor']

# Trial files are named after index, condition type and seed
TRIAL_STEM = 'trial%03d_type%d_seed%d'
TRIAL_STEM_RE = r'^trial(?P<index>\d+)_type(?P<condition>\d+)_seed(?P<seed>-?\d+)$'
