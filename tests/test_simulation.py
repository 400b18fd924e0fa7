import numpy as np
import pytest
from scipy.linalg import expm

from chasing.config import SimulationParams, ConfigurationError, IntegrationError, check_params
from chasing.design import Trial, design_trials, coupling_matrix
from chasing.simulation import (trial_rng, propagator, forcing, integrate, reflect, simulate_trial,
                                downsample, scale, process_trial, Sample)
from chasing.speeds import frame_speeds


def test_default_params():
    params = SimulationParams()
    assert params.n_steps == 3584
    assert params.dt == 0.025
    assert params.stride == 4
    assert params.amplitude == 250
    assert params.forcing_divisors == (7., 10., 2., 1.5)
    assert check_params(params) is params


@pytest.mark.parametrize('bad', [dict(n_steps=1), dict(dt=0), dict(stride=0), dict(stride=1.5),
                                 dict(amplitude=-1), dict(forcing_divisors=(7, 10, 2)),
                                 dict(forcing_divisors=(7, 10, 0, 1.5))])
def test_bad_params(bad):
    with pytest.raises(ConfigurationError):
        check_params(SimulationParams(**bad))


def test_propagator_is_the_kronecker_exponential():
    params = SimulationParams()
    C = coupling_matrix(4)
    expected = expm(np.kron(C, np.diag([-0.01, -0.01])) * 0.025)
    assert np.allclose(propagator(C, params), expected, rtol=0, atol=1e-15)
    # kron(C, j) couples x with x and y with y only
    E = propagator(C, params)
    assert np.allclose([E[0, 1], E[0, 3], E[2, 1]], 0, rtol=0, atol=1e-15)


def test_propagator_non_diagonalizable():
    # Jordan block, not diagonalizable
    C = np.array([[1., 1.], [0., 1.]])
    E = propagator(C, SimulationParams(dt=1.))
    a = np.exp(-0.01)
    assert np.allclose(E[0, 0], a)
    assert np.allclose(E[0, 2], -0.01 * a)


def test_propagator_overflow_is_fatal():
    params = SimulationParams(decay=(1., 1.), dt=1.)
    with pytest.raises(IntegrationError):
        propagator(np.array([[1e3, 0.], [0., 1e3]]), params)


def test_forcing_phase_shifts_every_axis():
    params = SimulationParams(n_steps=50)
    t = np.arange(50) * params.dt
    drive = forcing(params, phase=1.3)
    for axis, divisor in enumerate((7., 10., 2., 1.5)):
        assert np.allclose(drive[:, axis], 3. * np.sin(t / divisor + 1.3))


def test_forcing_is_not_scaled_by_dt():
    drive = forcing(SimulationParams(), phase=0.)
    assert np.isclose(np.abs(drive).max(), 3., atol=1e-3)
    assert np.allclose(forcing(SimulationParams(), phase=np.pi / 2)[0], 3.)


# First states of a type 1 trial without noise or jitter, phase pi/2.
# With a = 0.00025, expm(J dt) = exp(-a) [[1, 0], [a, 1]] (x) I2, and the drive is
# 3 cos(i dt / d) per axis; s2 = E s1 + f1 worked out by hand.
REFERENCE_STATES = [
    [0., 0., 0., 0.],
    [3., 3., 3., 3.],
    [5.999230961109463, 5.999240718747070, 5.999765534317365, 5.999583249243929],
]


def test_first_states_match_reference():
    params = SimulationParams(noise_scale=0., initial_jitter=0.)
    sample = simulate_trial(Trial(index=0, condition=1, phase=np.pi / 2), params, seed=0)
    assert np.allclose(sample.coords[:3], REFERENCE_STATES, rtol=1e-9, atol=1e-12)


def test_first_states_follow_update_rule():
    trials = design_trials(10, seed=0)
    assert len(trials) == 40
    trial = trials[0]
    assert trial.condition == 1

    params = SimulationParams()
    sample = simulate_trial(trial, params, seed=0)
    coords = sample.coords
    assert coords.shape == (3584, 4)

    # Replay the generator: initial state, then the noise
    rng = trial_rng(0, 0)
    x0 = params.initial_jitter * rng.standard_normal(4)
    noise = params.noise_scale * params.dt * rng.standard_normal((params.n_steps - 1, 4))
    E = expm(np.kron(coupling_matrix(1), np.diag(params.decay)) * params.dt)
    t = np.arange(3) * params.dt
    drive = params.forcing_amplitude * np.sin(
        t[:, None] / np.array(params.forcing_divisors)[None, :] + trial.phase)
    expected = [x0]
    for i in range(2):
        expected.append(E.dot(expected[-1]) + noise[i] + drive[i])
    assert np.allclose(coords[:3], expected, rtol=1e-12, atol=1e-15)


def test_initial_state_is_origin_without_jitter(small_params):
    params = small_params._replace(initial_jitter=0.)
    traj = integrate(coupling_matrix(1), params, trial_rng(0, 0))
    assert np.array_equal(traj[0], np.zeros(4))


def test_runs_are_reproducible(small_params):
    for trial in design_trials(2, seed=3):
        a = simulate_trial(trial, small_params, seed=3).coords
        b = simulate_trial(trial, small_params, seed=3).coords
        assert np.array_equal(a, b)
    trial = design_trials(1, seed=3)[0]
    assert not np.array_equal(simulate_trial(trial, small_params, seed=3).coords,
                              simulate_trial(trial, small_params, seed=4).coords)


def test_trials_do_not_depend_on_processing_order(small_params):
    trials = design_trials(3, seed=1)
    forward = [simulate_trial(t, small_params, seed=1).coords for t in trials]
    backward = [simulate_trial(t, small_params, seed=1).coords for t in reversed(trials)][::-1]
    for a, b in zip(forward, backward):
        assert np.array_equal(a, b)


def test_trial_substreams_differ():
    a = trial_rng(0, 0).standard_normal(5)
    b = trial_rng(0, 1).standard_normal(5)
    assert not np.array_equal(a, b)
    assert np.array_equal(a, trial_rng(0, 0).standard_normal(5))


@pytest.mark.parametrize('condition,reduced', [(5, 1), (8, 4)])
def test_absent_trials_reflect_the_reduced_present_trajectory(small_params, condition, reduced):
    trial = Trial(index=6, condition=condition, phase=0.7)
    absent = simulate_trial(trial, small_params, seed=11)
    present = integrate(coupling_matrix(reduced), small_params, trial_rng(11, 6), 0.7)
    assert np.array_equal(absent.x1, present[:, 0])
    assert np.array_equal(absent.y1, present[:, 1])
    assert np.array_equal(absent.x2, present[::-1, 2])
    assert np.array_equal(absent.y2, -present[::-1, 3])


def test_present_trials_are_not_reflected(small_params):
    trial = Trial(index=2, condition=4, phase=0.)
    sample = simulate_trial(trial, small_params, seed=0)
    expected = integrate(coupling_matrix(4), small_params, trial_rng(0, 2), 0.)
    assert np.array_equal(sample.coords, expected)


def test_reflection_keeps_disc2_speeds():
    traj = np.random.default_rng(0).standard_normal((100, 4)).cumsum(axis=0)
    reflected = reflect(traj)
    before = frame_speeds(traj, 0.1)[1:]
    after = frame_speeds(reflected, 0.1)[1:]
    assert np.array_equal(before[:, 0], after[:, 0])
    assert np.allclose(before[::-1, 1], after[:, 1])
    # input untouched
    assert not np.array_equal(traj, reflected)
    assert np.array_equal(reflect(reflect(traj)), traj)


def test_downsample():
    traj = np.random.default_rng(0).standard_normal((3584, 4))
    down = downsample(traj, 4)
    assert down.shape == (896, 4)
    for k in (0, 1, 500, 895):
        assert np.array_equal(down[k], traj[4 * k])


def test_scale():
    traj = np.arange(8.).reshape(2, 4)
    assert np.array_equal(scale(traj, 250), traj * 250)


def test_process_trial_is_downsampled_and_unscaled(small_params):
    trial = Trial(index=0, condition=1, phase=0.)
    sample = process_trial(trial, small_params, seed=0)
    full = simulate_trial(trial, small_params, seed=0)
    assert isinstance(sample, Sample)
    assert len(sample.x1) == 16
    assert np.array_equal(sample.coords, full.coords[::4])


def test_process_trial_checks_params():
    with pytest.raises(ConfigurationError):
        process_trial(Trial(0, 1, 0.), SimulationParams(stride=0))
