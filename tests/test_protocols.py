import json
import math
from pathlib import Path

import numpy as np
import pytest

from RiverSim.sph.protocols import DerivedSph, SimulationParameters, SolverConstants

CONFIG_DIR = Path(__file__).resolve().parent.parent / 'configs'


def test_defaults():
    params = SimulationParameters()
    assert params.domainWidth == 20.0
    assert params.restDensity == 1000.0
    assert params.smoothingFactor == 2.0
    assert params.gamma == 7.0
    assert params.soundSpeed == 20.0
    assert params.minSubsteps == 4


@pytest.mark.parametrize('changes', [{'domainWidth': 0.0}, {'particleCount': 0}])
def test_invalid_parameters_raise(changes):
    with pytest.raises(ValueError):
        SimulationParameters(**changes)


def test_only_particle_count_requires_reset():
    base = SimulationParameters()
    assert base.requiresReset(base.withUpdates(particleCount=base.particleCount + 1))
    assert not base.requiresReset(base.withUpdates(viscosity=1.0, smoothingFactor=2.5))


def test_json_round_trip(tmp_path):
    params = SimulationParameters(particleCount=2500, viscosity=0.1, friction=0.5, minSubsteps=6)
    path = tmp_path / 'river.json'
    params.toJson(str(path))

    assert SimulationParameters.fromJson(str(path)) == params
    assert json.loads(path.read_text())['time']['substeps'] == 6


def test_from_dict_keeps_defaults_for_missing_keys():
    params = SimulationParameters.fromDict({'flow': {'driveAccel': 2.0}})
    assert params.driveAccel == 2.0
    assert params.dragK == SimulationParameters().dragK


def test_shipped_config_loads():
    params = SimulationParameters.fromJson(str(CONFIG_DIR / 'river_default.json'))
    assert params.particleCount == 10_000


def test_derived_quantities():
    params = SimulationParameters(particleCount=1000)
    derived = DerivedSph.compute(params, fluidFraction=0.5, Lx=20.0, Ly=10.0)

    # Fluid area 100 m^2 shared by 1000 particles
    assert derived.particleSpacing == pytest.approx(math.sqrt(0.1))
    assert derived.smoothingLength == pytest.approx(2.0 * math.sqrt(0.1))
    assert derived.cellSize == derived.smoothingLength
    assert derived.particleMass == pytest.approx(100.0)
    assert derived.gridSizeX == 31
    assert derived.gridSizeY == 16
    assert derived.gridCount == 31 * 16


def test_derived_quantities_with_no_fluid_stay_finite():
    derived = DerivedSph.compute(SimulationParameters(), fluidFraction=0.0, Lx=20.0, Ly=10.0)
    assert derived.smoothingLength >= 1e-4
    assert derived.gridSizeX >= 1 and derived.gridSizeY >= 1


def test_solver_constants():
    params = SimulationParameters(particleCount=1000)
    derived = DerivedSph.compute(params, 0.5, 20.0, 10.0)
    domainMax = np.array([20.0, 10.0])
    constants = SolverConstants.build(params, derived, np.zeros(2), domainMax, substeps=5, dt=0.003)

    assert constants.stiffness == pytest.approx(1000.0 * 400.0 / 7.0)
    assert constants.Lx == 20.0 and constants.Ly == 10.0
    assert constants.particleCount == 1000
    assert constants.substeps == 5

    # The block keeps its own copy of the domain corners
    domainMax[0] = 99.0
    assert constants.domainMax[0] == 20.0


def test_solver_constants_floor_gamma():
    params = SimulationParameters(gamma=0.5)
    derived = DerivedSph.compute(params, 0.5, 20.0, 10.0)
    constants = SolverConstants.build(params, derived, np.zeros(2), np.array([20.0, 10.0]), 4, 0.004)
    assert constants.gamma == 1.0
    assert constants.stiffness == pytest.approx(1000.0 * 400.0)
