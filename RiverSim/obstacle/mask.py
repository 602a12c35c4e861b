# -- Occupancy Mask -- #

'''
Binary occupancy mask describing where the river bed is solid and
where water may flow.

A mask is a rectangular grid of cells with SOLID = 0 and FLUID = 1.
Row index y is the image row and maps directly to world y (no flip):
pixel (x, y) has its centre at ((x + 0.5) * Lx / W, (y + 0.5) * Ly / H).

The mask is expected to tile in x (the channel is periodic along the
flow direction). Tiling is checked, not enforced: tileMismatchX()
reports the fraction of rows whose first and last cells disagree.

Masks come from three sources:
    1. Image assets (grayscale threshold, via Pillow)
    2. The procedural meandering default channel
    3. A straight channel with solid banks (tests and benchmarks)
'''

from __future__ import annotations

import math
import os
from dataclasses import dataclass

import numpy as np

from RiverSim import constants as const

try:
    from PIL import Image
except ImportError:
    Image = None


SOLID: int = 0
FLUID: int = 1

# Smallest accepted mask edge [pixels]
MIN_MASK_SIZE: int = 4


######################################################################
# -- Occupancy Mask -- #
######################################################################

@dataclass(frozen=True, eq=False)
class OccupancyMask:
    '''
    Rectangular boolean grid of solid / fluid cells.

    Parameters:
    -----------
    width : int
        Number of columns W (flow direction)
    height : int
        Number of rows H (cross-stream direction)
    data : np.ndarray
        Cell values, shape (H, W), dtype uint8, 0 = solid, 1 = fluid
    '''

    width: int
    height: int
    data: np.ndarray

    @classmethod
    def fromArray(cls, array: np.ndarray) -> OccupancyMask:
        '''
        Build a validated mask from any 2D array.

        Nonzero entries are treated as fluid.

        Parameters:
        -----------
        array : np.ndarray
            2D array of shape (H, W)

        Returns:
        --------
        OccupancyMask : Validated mask

        Raises:
        -------
        ValueError : If the array is not 2D, smaller than 4x4, or has
            no fluid cell
        '''
        array = np.asarray(array)
        if array.ndim != 2:
            raise ValueError(f'Mask must be 2D, got shape {array.shape}')

        height, width = array.shape
        if width < MIN_MASK_SIZE or height < MIN_MASK_SIZE:
            raise ValueError(
                f'Mask must be at least {MIN_MASK_SIZE}x{MIN_MASK_SIZE}, '
                f'got {width}x{height}'
            )

        data = (array != 0).astype(np.uint8)
        if not np.any(data):
            raise ValueError('Mask has no fluid cells')

        data.setflags(write=False)
        return cls(width=width, height=height, data=data)

    def isFluid(self, x: int, y: int) -> bool:
        '''True if cell (x, y) is fluid.'''
        return bool(self.data[y, x] == FLUID)

    @property
    def fluidCount(self) -> int:
        '''Number of fluid cells.'''
        return int(np.count_nonzero(self.data))

    @property
    def fluidFraction(self) -> float:
        '''Fraction of cells that are fluid (0 - 1).'''
        return self.fluidCount / float(max(1, self.width * self.height))

    @property
    def solidMask(self) -> np.ndarray:
        '''Boolean array, True where solid.'''
        return self.data == SOLID

    @property
    def fluidMask(self) -> np.ndarray:
        '''Boolean array, True where fluid.'''
        return self.data == FLUID


######################################################################
# -- Validation -- #
######################################################################

def tileMismatchX(mask: OccupancyMask) -> float:
    '''
    Fraction of rows whose leftmost and rightmost cells differ.

    A perfectly tileable mask returns 0.0. Values above
    constants.tileMismatchWarning should be reported, not rejected.

    Parameters:
    -----------
    mask : OccupancyMask
        Mask to check

    Returns:
    --------
    float : Mismatch fraction in [0, 1]
    '''
    mismatched = np.count_nonzero(mask.data[:, 0] != mask.data[:, -1])
    return mismatched / float(mask.height)


######################################################################
# -- Procedural Masks -- #
######################################################################

def createDefaultChannelMask(
    width: int = const.defaultMaskWidth,
    height: int = const.defaultMaskHeight,
) -> OccupancyMask:
    '''
    Procedural meandering channel used when no mask asset is available.

    The channel centre line and half-width are sinusoids with an
    integer number of periods over the width, so the mask tiles
    exactly in x:

        center(x) = 0.5 H + 0.05 H sin(t)
        half(x)   = 0.28 H + 0.06 H sin(2t + 1.3),   t = 2 pi x / W

    Parameters:
    -----------
    width : int
        Mask width [pixels] (floored at 4)
    height : int
        Mask height [pixels] (floored at 4)

    Returns:
    --------
    OccupancyMask : Channel mask
    '''
    W = max(MIN_MASK_SIZE, width)
    H = max(MIN_MASK_SIZE, height)

    t = 2.0 * math.pi * np.arange(W) / W
    center = 0.5 * H + np.sin(t) * 0.05 * H
    half = 0.28 * H + np.sin(t * 2.0 + 1.3) * 0.06 * H
    yMin = center - half
    yMax = center + half

    rows = np.arange(H, dtype=np.float64)[:, np.newaxis]
    fluid = (rows >= yMin[np.newaxis, :]) & (rows <= yMax[np.newaxis, :])

    return OccupancyMask.fromArray(fluid.astype(np.uint8))


def createStraightChannelMask(
    width: int = const.defaultMaskWidth,
    height: int = const.defaultMaskHeight,
    bankFraction: float = 0.2,
) -> OccupancyMask:
    '''
    Straight channel spanning the full width with solid banks.

    The top and bottom round(bankFraction * H) rows are solid,
    everything in between is fluid.

    Parameters:
    -----------
    width : int
        Mask width [pixels]
    height : int
        Mask height [pixels]
    bankFraction : float
        Fraction of the height taken by each bank (0 - 0.5)

    Returns:
    --------
    OccupancyMask : Channel mask
    '''
    bankRows = int(round(bankFraction * height))
    data = np.ones((height, width), dtype=np.uint8)
    if bankRows > 0:
        data[:bankRows, :] = SOLID
        data[height - bankRows:, :] = SOLID
    return OccupancyMask.fromArray(data)


######################################################################
# -- Image Loading -- #
######################################################################

def loadMaskImage(path: str, threshold: float = const.maskThreshold) -> OccupancyMask:
    '''
    Decode an image file into an occupancy mask.

    Pixels are converted to luma (ITU-R 601 weights) in [0, 1];
    luma >= threshold is fluid, darker pixels are solid.

    Parameters:
    -----------
    path : str
        Image file path (any format Pillow can read)
    threshold : float
        Luma threshold in [0, 1]

    Returns:
    --------
    OccupancyMask : Decoded mask

    Raises:
    -------
    ImportError : If Pillow is not installed
    FileNotFoundError : If the file does not exist
    ValueError : If the decoded mask is invalid (too small, no fluid)
    '''
    if Image is None:
        raise ImportError(
            'Pillow is required for mask image loading. '
            'Install with: pip install Pillow'
        )

    if not os.path.isfile(path):
        raise FileNotFoundError(f'Mask image not found: {path}')

    with Image.open(path) as img:
        rgb = np.asarray(img.convert('RGB'), dtype=np.float64) / 255.0

    luma = rgb[..., 0] * 0.299 + rgb[..., 1] * 0.587 + rgb[..., 2] * 0.114
    return OccupancyMask.fromArray((luma >= threshold).astype(np.uint8))
