# -- Static Boundary Particles -- #

'''
Static boundary particles along the solid / fluid interface of the
occupancy mask, with per-particle density weights (psi).

Placement: a solid pixel is on the interface if one of its four
neighbors is fluid (x wraps, y clamps). The mask is divided into
blocks of about one particle spacing and each block that contains
interface pixels contributes one boundary particle, so walls are
covered whatever their alignment with the block grid.

Density weight: boundary particles carry no mass of their own.
Instead each one gets a Shepard-style normalization

    psi_i = rho_0 / sum_j W(|x_i - x_j|, h)

over its boundary neighbors (self included), so a boundary particle
contributes psi_i * W to the density of a nearby fluid particle,
consistent with the local boundary sampling density. Isolated
particles with a vanishing kernel sum fall back to rho_0 * s^2.

The field is built once per reset and never mutated.

References:
-----------
Akinci et al. (2012) -- Versatile rigid-fluid coupling for
    incompressible SPH
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from RiverSim import constants as const
from RiverSim.obstacle.mask import OccupancyMask
from RiverSim.sph.kernels import Poly6Kernel
from RiverSim.sph.neighborSearch import PeriodicCellGrid


######################################################################
# -- Interface Detection -- #
######################################################################

def interfaceSolidPixels(mask: OccupancyMask) -> np.ndarray:
    '''
    Solid pixels with at least one fluid 4-neighbor.

    Neighbors wrap in x and clamp in y.

    Parameters:
    -----------
    mask : OccupancyMask
        Occupancy mask

    Returns:
    --------
    np.ndarray : Boolean array, shape (H, W)
    '''
    fluid = mask.fluidMask

    left = np.roll(fluid, 1, axis=1)
    right = np.roll(fluid, -1, axis=1)
    # Clamped rows: the edge row is its own neighbor
    up = np.vstack([fluid[:1, :], fluid[:-1, :]])
    down = np.vstack([fluid[1:, :], fluid[-1:, :]])

    return ~fluid & (left | right | up | down)


######################################################################
# -- Boundary Field -- #
######################################################################

@dataclass(eq=False)
class BoundaryField:
    '''
    Static boundary particle set.

    Parameters:
    -----------
    positions : np.ndarray
        Boundary particle positions [m], shape (M, 2)
    psi : np.ndarray
        Density contribution weights, shape (M,), all > 0
    grid : PeriodicCellGrid
        Neighbor grid over the boundary particles (built once)
    '''

    positions: np.ndarray
    psi: np.ndarray
    grid: PeriodicCellGrid

    @property
    def count(self) -> int:
        '''Number of boundary particles M.'''
        return self.positions.shape[0]

    @classmethod
    def build(
        cls,
        mask: OccupancyMask,
        Lx: float,
        Ly: float,
        spacing: float,
        restDensity: float,
        smoothingLength: float,
    ) -> BoundaryField:
        '''
        Place boundary particles and compute their psi weights.

        Parameters:
        -----------
        mask : OccupancyMask
            Occupancy mask
        Lx, Ly : float
            Domain size [m]
        spacing : float
            Fluid particle spacing s [m]
        restDensity : float
            Rest density rho_0
        smoothingLength : float
            Kernel support radius h [m] (also the grid cell size)

        Returns:
        --------
        BoundaryField : Positions, psi and grid
        '''
        positions = placeBoundaryParticles(mask, Lx, Ly, spacing)

        grid = PeriodicCellGrid(
            domainMin=np.zeros(2),
            domainSize=np.array([Lx, Ly]),
            cellSize=smoothingLength,
        )
        grid.build(positions)

        psi = computePsi(positions, grid, restDensity, spacing, smoothingLength)
        return cls(positions=positions, psi=psi, grid=grid)


def placeBoundaryParticles(
    mask: OccupancyMask,
    Lx: float,
    Ly: float,
    spacing: float,
) -> np.ndarray:
    '''
    One interface pixel per spacing-sized block, at pixel centres.

    Parameters:
    -----------
    mask : OccupancyMask
        Occupancy mask
    Lx, Ly : float
        Domain size [m]
    spacing : float
        Particle spacing [m]

    Returns:
    --------
    np.ndarray : Positions, shape (M, 2), row-major scan order
    '''
    W = mask.width
    H = mask.height
    dx = Lx / W
    dy = Ly / H
    stepX = max(1, int(round(spacing / max(dx, 1e-6))))
    stepY = max(1, int(round(spacing / max(dy, 1e-6))))

    # One particle per stepX x stepY block: the block's first interface
    # pixel in row-major order
    py, px = np.nonzero(interfaceSolidPixels(mask))
    blocksX = -(-W // stepX)
    blockId = (py // stepY) * blocksX + px // stepX
    _, first = np.unique(blockId, return_index=True)
    first = np.sort(first)
    py = py[first]
    px = px[first]

    wx = (px + 0.5) / W * Lx
    wy = (py + 0.5) / H * Ly
    return np.column_stack([wx, wy]).astype(np.float64)


def computePsi(
    positions: np.ndarray,
    grid: PeriodicCellGrid,
    restDensity: float,
    spacing: float,
    smoothingLength: float,
) -> np.ndarray:
    '''
    Shepard-normalized boundary weights psi_i = rho_0 / sum_j W_ij.

    Parameters:
    -----------
    positions : np.ndarray
        Boundary positions, shape (M, 2)
    grid : PeriodicCellGrid
        Grid built over the same positions
    restDensity : float
        Rest density rho_0
    spacing : float
        Particle spacing s [m] (fallback weight rho_0 * s^2)
    smoothingLength : float
        Support radius h [m]

    Returns:
    --------
    np.ndarray : psi, shape (M,)
    '''
    count = len(positions)
    if count == 0:
        return np.zeros(0)

    kernel = Poly6Kernel()
    iIdx, _, _, dist = grid.queryPairs(positions, smoothingLength)
    sumW = np.bincount(iIdx, weights=kernel.evaluateBatch(dist, smoothingLength), minlength=count)

    fallback = restDensity * spacing * spacing
    valid = sumW > const.psiSumEpsilon
    safeSum = np.where(valid, sumW, 1.0)
    return np.where(valid, restDensity / safeSum, fallback)
