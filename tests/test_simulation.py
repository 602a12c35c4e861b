import numpy as np
import pytest

from RiverSim.obstacle.mask import OccupancyMask
from RiverSim.simulation import ComputeContext, SimulationSession
from RiverSim.sph.protocols import SimulationParameters


def _readySession(mask, **changes):
    params = SimulationParameters(particleCount=500).withUpdates(**changes)
    session = SimulationSession(params)
    assert session.reset(mask=mask)
    return session


class _NoMemoryContext(ComputeContext):

    def allocateParticles(self, count, restDensity):
        raise MemoryError('out of particle memory')


def test_reset_builds_everything(straightMask):
    session = _readySession(straightMask)

    assert session.isReady
    assert session.particleCount == 500
    np.testing.assert_allclose(session.domainMax, [20.0, 10.0])
    np.testing.assert_array_equal(session.domainMin, [0.0, 0.0])
    assert session.boundary.count > 0
    assert session.substeps >= 4
    assert session.substeps * session.dt == pytest.approx(session.params.fixedDt)
    assert not session.usedFallbackMask


def test_step_before_reset_is_a_no_op():
    session = SimulationSession(SimulationParameters(particleCount=100))

    assert not session.isReady
    assert session.step() is None
    assert session.positions.shape == (0, 2)
    assert session.snapshot() is None


def test_step_advances_time_and_frame(straightMask):
    session = _readySession(straightMask)
    state = session.step(elapsedRealTime=0.02)

    assert state.frame == 1
    assert state.time == pytest.approx(session.params.fixedDt)
    assert session.stats.fps == pytest.approx(50.0)
    assert session.stats.simMs > 0.0
    assert state.meanDensity > 0.0


def test_still_water_settles(straightMask):
    session = _readySession(straightMask, driveAccel=0.0, dragK=0.0)
    energies = []
    for _ in range(60):
        state = session.step()
        energies.append(state.kineticEnergy)

    positions = session.positions
    assert session.particleCount == 500
    assert np.all(np.isfinite(positions))
    assert np.all((positions[:, 1] >= 0.0) & (positions[:, 1] <= session.domainMax[1]))
    assert np.mean(energies[39:60]) < np.mean(energies[0:10])
    assert state.maxVelocity < session.params.maxSpeed
    assert np.all(session.snapshot().pressures >= 0.0)


def test_readouts_are_copies(straightMask):
    session = _readySession(straightMask)
    positions = session.positions
    positions[:] = -1.0

    assert np.all(session.positions >= 0.0)


def test_reset_is_deterministic(straightMask):
    a = _readySession(straightMask)
    b = _readySession(straightMask)
    np.testing.assert_array_equal(a.positions, b.positions)

    a.step()
    a.reset(mask=straightMask)
    np.testing.assert_array_equal(a.positions, b.positions)
    assert a.frame == 0 and a.time == 0.0


def test_hot_update_keeps_particles(straightMask):
    session = _readySession(straightMask)
    session.step()
    before = session.positions
    boundary = session.boundary

    assert session.updateParams(session.params.withUpdates(viscosity=0.05, driveAccel=2.0))
    assert session.frame == 1
    np.testing.assert_array_equal(session.positions, before)
    assert session.solverConstants.viscosity == 0.05
    assert session.solverConstants.driveAccel == 2.0
    assert session.boundary is boundary


def test_smoothing_change_rebuilds_boundary(straightMask):
    session = _readySession(straightMask)
    boundary = session.boundary
    oldH = session.derived.smoothingLength

    assert session.updateParams(session.params.withUpdates(smoothingFactor=2.5))
    assert session.derived.smoothingLength == pytest.approx(oldH * 1.25)
    assert session.boundary is not boundary
    assert session.solverConstants.cellSize == session.derived.smoothingLength
    assert session.step() is not None


def test_rest_density_change_rebuilds_boundary_weights(straightMask):
    session = _readySession(straightMask)
    session.step()
    assert session.updateParams(session.params.withUpdates(restDensity=500.0))

    fresh = _readySession(straightMask, restDensity=500.0)
    assert session.solverConstants.restDensity == pytest.approx(500.0)
    np.testing.assert_allclose(session.boundary.psi, fresh.boundary.psi)
    np.testing.assert_allclose(session.boundary.positions, fresh.boundary.positions)


def test_particle_count_change_resets(straightMask):
    session = _readySession(straightMask)
    session.step()

    assert session.updateParams(session.params.withUpdates(particleCount=700))
    assert session.particleCount == 700
    assert session.frame == 0


def test_allocation_failure_leaves_session_not_ready(straightMask, capsys):
    session = SimulationSession(SimulationParameters(particleCount=100), context=_NoMemoryContext())

    assert not session.reset(mask=straightMask)
    assert not session.isReady
    assert session.step() is None
    assert 'WARNING' in capsys.readouterr().out


def test_seam_mismatch_warns(straightMask, capsys):
    data = straightMask.data.copy()
    data[20:40, 0] = 0
    session = SimulationSession(SimulationParameters(particleCount=200))

    assert session.reset(mask=OccupancyMask.fromArray(data))
    assert session.tileMismatch == pytest.approx(20 / 64)
    assert 'does not tile' in capsys.readouterr().out


def test_unreadable_mask_falls_back_to_default(tmp_path, capsys):
    session = SimulationSession(SimulationParameters(particleCount=200))

    assert session.reset(maskPath=str(tmp_path / 'missing.png'))
    assert session.usedFallbackMask
    assert (session.mask.height, session.mask.width) == (256, 512)
    assert 'WARNING' in capsys.readouterr().out


def test_context_controls_dtype(straightMask):
    session = SimulationSession(
        SimulationParameters(particleCount=100), context=ComputeContext(dtype=np.float32),
    )
    assert session.reset(mask=straightMask)
    assert session.snapshot().positions.dtype == np.float32
