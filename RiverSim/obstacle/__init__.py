# -- Obstacle Package -- #

'''
Obstacle description: occupancy masks and the periodic signed
distance field built from them.
'''

from RiverSim.obstacle.mask import (
    OccupancyMask,
    createDefaultChannelMask,
    createStraightChannelMask,
    loadMaskImage,
    tileMismatchX,
)
from RiverSim.obstacle.sdfBuilder import SignedDistanceField, buildPeriodicSdf
