import numpy as np
import pytest

from RiverSim.sph.particles import ParticleState, isFluidWorld, spawnInFluid

LX = 20.0
LY = 10.0


def test_allocate_shapes_and_rest_density():
    particles = ParticleState.allocate(50, restDensity=998.0, dtype=np.float32)

    assert particles.count == 50
    assert particles.positions.shape == (50, 2)
    assert particles.positions.dtype == np.float32
    assert np.all(particles.densities == np.float32(998.0))
    assert particles.kineticEnergy(1.0) == 0.0


def test_spawned_particles_are_in_fluid(straightMask, rng):
    particles = ParticleState.allocate(400)
    spawnInFluid(particles, straightMask, LX, LY, 0.3, rng)

    assert np.all(isFluidWorld(straightMask, particles.positions, LX, LY))
    assert np.all(particles.positions[:, 0] >= 0.0) and np.all(particles.positions[:, 0] < LX)
    assert np.all(particles.velocities == 0.0)


def test_spawn_is_deterministic_for_a_seed(meanderMask):
    a = ParticleState.allocate(300)
    b = ParticleState.allocate(300)
    spawnInFluid(a, meanderMask, 12.0, 6.0, 0.2, np.random.default_rng(0x12345678))
    spawnInFluid(b, meanderMask, 12.0, 6.0, 0.2, np.random.default_rng(0x12345678))

    np.testing.assert_array_equal(a.positions, b.positions)


def test_shortfall_filled_by_rejection_sampling(straightMask, rng):
    # About 1300 lattice sites at this spacing
    particles = ParticleState.allocate(3000)
    spawnInFluid(particles, straightMask, LX, LY, 0.3, rng)

    assert np.all(isFluidWorld(straightMask, particles.positions, LX, LY))
    assert len(np.unique(particles.positions, axis=0)) > 2900


def test_diagnostics():
    particles = ParticleState.allocate(2, restDensity=1000.0)
    particles.velocities[:] = [[3.0, 4.0], [0.0, 0.0]]
    particles.densities[:] = [1100.0, 950.0]

    assert particles.maxSpeed() == pytest.approx(5.0)
    assert particles.meanSpeed() == pytest.approx(2.5)
    assert particles.kineticEnergy(2.0) == pytest.approx(25.0)
    assert particles.meanDensity() == pytest.approx(1025.0)
    assert particles.maxDensityError(1000.0) == pytest.approx(0.1)


def test_snapshot_is_a_copy():
    particles = ParticleState.allocate(3)
    copy = particles.snapshot()
    copy.positions[:] = 7.0

    assert np.all(particles.positions == 0.0)
