import numpy as np
import pytest

from RiverSim.obstacle.mask import OccupancyMask
from RiverSim.obstacle.sdfBuilder import (
    INF, buildPeriodicSdf, edt1dSquared, edt2dSquared, edtLinesSquared,
)


def test_edt1d_small_example():
    f = np.array([INF, 0.0, INF, INF])
    np.testing.assert_allclose(edt1dSquared(f), [1.0, 0.0, 1.0, 4.0])


def test_edt1d_width_one():
    np.testing.assert_array_equal(edt1dSquared(np.array([0.0])), [0.0])
    np.testing.assert_array_equal(edt1dSquared(np.array([INF])), [INF])


def test_edt1d_uniform_inputs_do_not_fault():
    zeros = edt1dSquared(np.zeros(7))
    np.testing.assert_array_equal(zeros, np.zeros(7))

    empty = edt1dSquared(np.full(7, INF))
    assert np.all(np.isfinite(empty))
    assert np.all(empty >= 0.5 * INF)


def test_edt2d_matches_scipy():
    ndimage = pytest.importorskip('scipy.ndimage')
    rng = np.random.default_rng(7)

    seeds = rng.random((23, 31)) < 0.08
    seeds[5, 5] = True
    f = np.where(seeds, 0.0, INF)

    expected = ndimage.distance_transform_edt(~seeds) ** 2
    np.testing.assert_allclose(edt2dSquared(f), expected, atol=1e-9)


def test_rows_are_transformed_independently(rng):
    # Rows with very different envelopes share one sweep
    f = np.where(rng.random((6, 40)) < 0.1, 0.0, INF)
    f[0, :] = INF
    f[1, :] = 0.0
    f[2, :] = INF
    f[2, 39] = 0.0
    f[3, :] = rng.random(40) * 50.0

    q = np.arange(40)
    expected = np.min((q[None, :, None] - q[None, None, :]) ** 2 + f[:, None, :], axis=2)

    result = edtLinesSquared(f)
    np.testing.assert_allclose(result[1:], expected[1:])
    assert np.all(result[0] >= 0.5 * INF)
    for row in range(f.shape[0]):
        np.testing.assert_array_equal(result[row], edt1dSquared(f[row]))


def test_edt2d_matches_scipy_on_wide_image():
    ndimage = pytest.importorskip('scipy.ndimage')
    rng = np.random.default_rng(11)

    seeds = np.tile(rng.random((17, 30)) < 0.05, (1, 3))
    seeds[8, 45] = True
    f = np.where(seeds, 0.0, INF)

    expected = ndimage.distance_transform_edt(~seeds) ** 2
    np.testing.assert_allclose(edt2dSquared(f), expected, atol=1e-9)


def test_sign_convention_positive_in_solid(meanderMask):
    sdf = buildPeriodicSdf(meanderMask, 20.0)

    solid = meanderMask.solidMask
    assert np.all(sdf.values[solid] > 0.0)
    assert np.all(sdf.values[~solid] < 0.0)


def test_interface_pixels_are_one_pixel_from_zero(meanderMask):
    sdf = buildPeriodicSdf(meanderMask, 20.0)
    fluid = meanderMask.fluidMask

    left = np.roll(fluid, 1, axis=1)
    right = np.roll(fluid, -1, axis=1)
    up = np.vstack([fluid[:1], fluid[:-1]])
    down = np.vstack([fluid[1:], fluid[-1:]])
    touchesFluid = left | right | up | down
    touchesSolid = ~left | ~right | ~up | ~down

    interface = (~fluid & touchesFluid) | (fluid & touchesSolid)
    assert np.any(interface)
    np.testing.assert_allclose(np.abs(sdf.values[interface]), sdf.pixelSize)


def test_straight_channel_distances(straightMask, straightSdf):
    ps = straightSdf.pixelSize

    # Fluid rows 13..50: row 32 is 19 px from the upper bank (row 51)
    assert straightSdf.values[32, 10] == pytest.approx(-19.0 * ps)
    # Solid row 5 is 8 px from the first fluid row
    assert straightSdf.values[5, 10] == pytest.approx(8.0 * ps)


def test_domain_height_follows_aspect(straightSdf):
    assert straightSdf.Lx == 20.0
    assert straightSdf.Ly == pytest.approx(10.0)
    assert straightSdf.pixelSize == pytest.approx(20.0 / 128)


def test_rejects_non_positive_width(straightMask):
    with pytest.raises(ValueError):
        buildPeriodicSdf(straightMask, 0.0)


def test_field_is_translation_equivariant_in_x(meanderMask):
    shift = 17
    rolled = OccupancyMask.fromArray(np.roll(meanderMask.data, shift, axis=1))

    base = buildPeriodicSdf(meanderMask, 12.0)
    moved = buildPeriodicSdf(rolled, 12.0)

    np.testing.assert_allclose(moved.values, np.roll(base.values, shift, axis=1), atol=1e-12)


def test_sampling_is_periodic_in_x(meanderMask):
    sdf = buildPeriodicSdf(meanderMask, 12.0)
    ys = np.linspace(0.0, sdf.Ly, 40)

    atZero = sdf.sample(np.column_stack([np.zeros_like(ys), ys]))
    atLx = sdf.sample(np.column_stack([np.full_like(ys, sdf.Lx), ys]))
    np.testing.assert_allclose(atZero, atLx, atol=1e-12)


def test_sample_at_texel_centres_returns_values(straightSdf):
    ps = straightSdf.pixelSize
    rows = np.array([3, 13, 30, 60])
    cols = np.array([0, 40, 77, 127])
    points = np.column_stack([(cols + 0.5) * ps, (rows + 0.5) * ps])

    np.testing.assert_allclose(straightSdf.sample(points), straightSdf.values[rows, cols])


def test_gradient_points_into_solid(straightSdf):
    ps = straightSdf.pixelSize
    nearBottom = np.array([[5.0, 16.5 * ps]])
    nearTop = np.array([[5.0, 47.5 * ps]])

    assert straightSdf.gradient(nearBottom)[0, 1] < 0.0
    assert straightSdf.gradient(nearTop)[0, 1] > 0.0
    assert straightSdf.gradient(nearBottom)[0, 0] == pytest.approx(0.0)


def test_seam_of_straight_channel_is_clean(straightSdf):
    assert straightSdf.seamMismatch() == 0.0
