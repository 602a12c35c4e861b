import numpy as np
import pytest

from RiverSim.sph.particles import ParticleState
from RiverSim.sph.timeIntegration import SymplecticEuler, clampSpeed


def test_clamp_speed_scales_only_fast_particles():
    v = np.array([[3.0, 4.0], [0.3, 0.4], [0.0, 0.0]])
    clamped = clampSpeed(v, 2.5)

    np.testing.assert_allclose(clamped[0], [1.5, 2.0])
    np.testing.assert_allclose(clamped[1], [0.3, 0.4])
    np.testing.assert_array_equal(clamped[2], [0.0, 0.0])


def test_kick_then_drift():
    particles = ParticleState.allocate(1)
    particles.positions[:] = [[1.0, 1.0]]
    integrator = SymplecticEuler(Lx=4.0, maxSpeed=100.0, xsph=0.0)

    integrator.integrate(particles, np.array([[2.0, -1.0]]), np.zeros((1, 2)), 0.5)

    np.testing.assert_allclose(particles.velocities[0], [1.0, -0.5])
    np.testing.assert_allclose(particles.positions[0], [1.5, 0.75])


def test_xsph_moves_particles_but_is_not_stored():
    particles = ParticleState.allocate(1)
    particles.positions[:] = [[1.0, 1.0]]
    integrator = SymplecticEuler(Lx=4.0, maxSpeed=100.0, xsph=0.5)

    integrator.integrate(particles, np.zeros((1, 2)), np.array([[2.0, 0.0]]), 0.1)

    np.testing.assert_allclose(particles.velocities[0], [0.0, 0.0])
    np.testing.assert_allclose(particles.positions[0], [1.1, 1.0])


def test_displacement_bounded_and_wrapped():
    particles = ParticleState.allocate(1)
    particles.positions[:] = [[3.9, 1.0]]
    integrator = SymplecticEuler(Lx=4.0, maxSpeed=2.0, xsph=0.1)

    integrator.integrate(particles, np.array([[1e4, 0.0]]), np.array([[1e4, 0.0]]), 0.1)

    assert np.linalg.norm(particles.velocities[0]) == pytest.approx(2.0)
    assert particles.positions[0, 0] == pytest.approx(0.1)
