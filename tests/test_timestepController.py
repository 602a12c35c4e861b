import math

import pytest

from RiverSim.sph.protocols import DerivedSph, SimulationParameters
from RiverSim.sph.timestepController import TimestepController


def _derived(h):
    return DerivedSph(
        particleSpacing=h / 2.0,
        smoothingLength=h,
        cellSize=h,
        gridSizeX=10,
        gridSizeY=10,
        restDensity=1000.0,
        particleMass=1.0,
    )


def test_pure_acoustic_limit():
    params = SimulationParameters(driveAccel=0.0, soundSpeed=20.0)
    substeps, dt = TimestepController().derive(params, _derived(0.02))

    # dt_cfl = 0.25 * 0.02 / 20 = 2.5e-4 s
    assert substeps == 67
    assert dt == pytest.approx(params.fixedDt / 67)


def test_drift_speed_adds_to_sound_speed():
    params = SimulationParameters()
    substeps, dt = TimestepController().derive(params, _derived(0.02))

    # v_target = 6 / 0.8 = 7.5 m/s
    assert substeps == 92
    assert substeps * dt == pytest.approx(params.fixedDt)
    assert dt <= 0.25 * 0.02 / (20.0 + 7.5)


def test_coarse_resolution_uses_minimum_substeps():
    params = SimulationParameters(minSubsteps=4)
    substeps, dt = TimestepController().derive(params, _derived(10.0))
    assert substeps == 4
    assert dt == pytest.approx(params.fixedDt / 4)


def test_minimum_is_at_least_one():
    params = SimulationParameters(minSubsteps=0)
    substeps, _ = TimestepController().derive(params, _derived(10.0))
    assert substeps == 1


def test_zero_drag_stays_finite():
    params = SimulationParameters(dragK=0.0)
    substeps, dt = TimestepController().derive(params, _derived(0.02))

    assert TimestepController.targetVelocity(6.0, 0.0) == pytest.approx(6000.0)
    assert substeps > 92
    assert math.isfinite(dt) and dt > 0.0


def test_cfl_time_step_formula():
    controller = TimestepController(cflNumber=0.5)
    assert controller.cflTimeStep(0.1, 10.0, 0.0) == pytest.approx(0.005)
    # Sound speed floored away from zero
    assert math.isfinite(controller.cflTimeStep(0.1, 0.0, 0.0))
