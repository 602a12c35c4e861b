import math

import numpy as np
import pytest

from RiverSim.sph.kernels import Poly6Kernel, SpikyKernel, ViscosityKernel


def _radialIntegral(values, radii, dr):
    return float(np.sum(values * 2.0 * math.pi * radii) * dr)


@pytest.mark.parametrize('h', [0.05, 0.6, 2.0])
def test_poly6_integrates_to_one(h):
    n = 20000
    dr = h / n
    radii = (np.arange(n) + 0.5) * dr
    total = _radialIntegral(Poly6Kernel().evaluateBatch(radii, h), radii, dr)
    assert total == pytest.approx(1.0, rel=1e-5)


def test_spiky_integrates_to_one():
    h = 0.4
    n = 20000
    dr = h / n
    radii = (np.arange(n) + 0.5) * dr
    total = _radialIntegral(SpikyKernel().evaluateBatch(radii, h), radii, dr)
    assert total == pytest.approx(1.0, rel=1e-5)


def test_kernels_vanish_outside_support():
    h = 0.5
    r = np.array([0.5, 0.7, 3.0])
    assert np.all(Poly6Kernel().evaluateBatch(r, h) == 0.0)
    assert np.all(SpikyKernel().evaluateBatch(r, h) == 0.0)
    assert np.all(ViscosityKernel().laplacianBatch(r, h) == 0.0)
    assert Poly6Kernel().evaluate(0.5, h) == 0.0
    assert ViscosityKernel().laplacian(0.6, h) == 0.0


def test_scalar_and_batch_agree():
    h = 0.3
    radii = np.array([0.0, 0.05, 0.1, 0.29])
    poly6 = Poly6Kernel()
    spiky = SpikyKernel()
    visc = ViscosityKernel()

    np.testing.assert_allclose(poly6.evaluateBatch(radii, h), [poly6.evaluate(r, h) for r in radii])
    np.testing.assert_allclose(spiky.evaluateBatch(radii, h), [spiky.evaluate(r, h) for r in radii])
    np.testing.assert_allclose(visc.laplacianBatch(radii, h), [visc.laplacian(r, h) for r in radii])


def test_spiky_gradient_matches_finite_difference():
    spiky = SpikyKernel()
    h, r, eps = 1.0, 0.3, 1e-6
    numeric = (spiky.evaluate(r + eps, h) - spiky.evaluate(r - eps, h)) / (2.0 * eps)
    analytic = spiky.gradientMagnitudeBatch(np.array([r]), h)[0]
    assert analytic == pytest.approx(numeric, rel=1e-6)


def test_spiky_gradient_points_toward_neighbor():
    # dr = x_i - x_j, the gradient opposes it
    dr = np.array([[0.1, 0.0], [0.0, -0.2], [0.0, 0.0]])
    dist = np.linalg.norm(dr, axis=1)
    grad = SpikyKernel().gradientBatch(dr, dist, 0.5)

    assert grad[0, 0] < 0.0 and grad[0, 1] == 0.0
    assert grad[1, 1] > 0.0 and grad[1, 0] == 0.0
    np.testing.assert_array_equal(grad[2], [0.0, 0.0])


def test_viscosity_laplacian_positive_inside_support():
    radii = np.linspace(0.0, 0.499, 50)
    assert np.all(ViscosityKernel().laplacianBatch(radii, 0.5) > 0.0)


def test_degenerate_smoothing_length_stays_finite():
    assert math.isfinite(Poly6Kernel().evaluate(0.0, 0.0))
    assert np.all(np.isfinite(SpikyKernel().gradientMagnitudeBatch(np.zeros(3), 0.0)))
