import numpy as np
import pytest

from RiverSim.obstacle.mask import createStraightChannelMask, createDefaultChannelMask
from RiverSim.obstacle.sdfBuilder import buildPeriodicSdf


@pytest.fixture
def straightMask():
    # 128 x 64 pixels, 13 solid rows on each bank
    return createStraightChannelMask(128, 64, bankFraction=0.2)


@pytest.fixture
def meanderMask():
    return createDefaultChannelMask(96, 48)


@pytest.fixture
def straightSdf(straightMask):
    return buildPeriodicSdf(straightMask, 20.0)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
