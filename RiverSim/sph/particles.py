# -- Fluid Particle State -- #

'''
Dataclass holding the dynamic fluid particle arrays.

Positions and velocities are (N, 2) arrays, density and pressure are
(N,) arrays. All particles share the same mass (rho_0 * s^2), which
lives in the solver constants rather than per particle. Boundary
particles are stored separately (see boundaryField.py).

Also provides the initial placement of particles inside the fluid
region of an occupancy mask.
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from RiverSim import constants as const
from RiverSim.obstacle.mask import OccupancyMask
from RiverSim.sph.neighborSearch import wrapX


@dataclass
class ParticleState:
    '''
    Fluid particle arrays.

    Parameters:
    -----------
    positions : np.ndarray
        Particle positions [m], shape (N, 2)
    velocities : np.ndarray
        Particle velocities [m/s], shape (N, 2)
    densities : np.ndarray
        Particle densities [kg/m^2], shape (N,)
    pressures : np.ndarray
        Particle pressures, shape (N,)
    '''

    positions: np.ndarray
    velocities: np.ndarray
    densities: np.ndarray
    pressures: np.ndarray

    @classmethod
    def allocate(
        cls,
        count: int,
        restDensity: float = const.restDensity,
        dtype: type = np.float64,
    ) -> ParticleState:
        '''
        Zero-initialized particle arrays at rest density.

        Parameters:
        -----------
        count : int
            Number of particles
        restDensity : float
            Initial density of every particle
        dtype : type
            Floating point type of the arrays

        Returns:
        --------
        ParticleState : Allocated arrays

        Raises:
        -------
        MemoryError : If the arrays cannot be allocated
        '''
        return cls(
            positions=np.zeros((count, 2), dtype=dtype),
            velocities=np.zeros((count, 2), dtype=dtype),
            densities=np.full(count, restDensity, dtype=dtype),
            pressures=np.zeros(count, dtype=dtype),
        )

    @property
    def count(self) -> int:
        '''Number of fluid particles.'''
        return self.positions.shape[0]

    def speeds(self) -> np.ndarray:
        '''Velocity magnitudes, shape (N,).'''
        return np.linalg.norm(self.velocities, axis=1)

    def kineticEnergy(self, particleMass: float) -> float:
        '''
        Total kinetic energy.

        KE = (1/2) * m * sum_i |v_i|^2
        '''
        speedsSq = np.sum(self.velocities * self.velocities, axis=1)
        return 0.5 * particleMass * float(np.sum(speedsSq))

    def maxSpeed(self) -> float:
        '''Maximum speed [m/s].'''
        if self.count == 0:
            return 0.0
        return float(np.max(self.speeds()))

    def meanSpeed(self) -> float:
        '''Mean speed [m/s].'''
        if self.count == 0:
            return 0.0
        return float(np.mean(self.speeds()))

    def meanDensity(self) -> float:
        '''Mean density [kg/m^2].'''
        if self.count == 0:
            return 0.0
        return float(np.mean(self.densities))

    def maxDensityError(self, referenceDensity: float) -> float:
        '''
        Maximum relative density error.

        Returns max |rho_i - rho_0| / rho_0
        '''
        if self.count == 0:
            return 0.0
        errors = np.abs(self.densities - referenceDensity) / referenceDensity
        return float(np.max(errors))

    def snapshot(self) -> ParticleState:
        '''Deep copy for readers outside the solver.'''
        return ParticleState(
            positions=self.positions.copy(),
            velocities=self.velocities.copy(),
            densities=self.densities.copy(),
            pressures=self.pressures.copy(),
        )


######################################################################
# -- Initial Placement -- #
######################################################################

def isFluidWorld(mask: OccupancyMask, points: np.ndarray, Lx: float, Ly: float) -> np.ndarray:
    '''
    Nearest-pixel fluid test for world positions.

    x is wrapped, y is clamped into the domain.

    Parameters:
    -----------
    mask : OccupancyMask
        Occupancy mask
    points : np.ndarray
        World positions, shape (N, 2)
    Lx, Ly : float
        Domain size [m]

    Returns:
    --------
    np.ndarray : Boolean array, shape (N,)
    '''
    points = np.atleast_2d(points)
    wx = wrapX(points[:, 0], Lx)
    wy = np.clip(points[:, 1], 0.0, Ly - 1e-5)
    px = np.clip((wx / Lx * mask.width).astype(np.int64), 0, mask.width - 1)
    py = np.clip((wy / Ly * mask.height).astype(np.int64), 0, mask.height - 1)
    return mask.data[py, px] == 1


def spawnInFluid(
    particles: ParticleState,
    mask: OccupancyMask,
    Lx: float,
    Ly: float,
    spacing: float,
    rng: np.random.Generator,
    jitter: float = const.spawnJitter,
) -> None:
    '''
    Place particles inside the fluid region of the mask.

    1. Lay a regular lattice with the particle spacing (offset s/2)
       and keep the candidates that fall on fluid pixels.
    2. Shuffle the candidates and take the first N.
    3. Jitter each by up to +/- jitter * s, keeping the jittered
       position only if it is still fluid.
    4. Fill any shortfall by rejection sampling over the domain.

    Velocities and pressures are zeroed.

    Parameters:
    -----------
    particles : ParticleState
        Arrays to fill in place
    mask : OccupancyMask
        Occupancy mask
    Lx, Ly : float
        Domain size [m]
    spacing : float
        Particle spacing s [m]
    rng : np.random.Generator
        Random source (seeded by the caller for reproducibility)
    jitter : float
        Jitter amplitude as a fraction of the spacing
    '''
    n = particles.count
    spacing = max(1e-4, spacing)

    xs = np.arange(0.5 * spacing, Lx, spacing)
    ys = np.arange(0.5 * spacing, Ly, spacing)
    xx, yy = np.meshgrid(xs, ys, indexing='xy')
    lattice = np.column_stack([xx.ravel(), yy.ravel()])
    candidates = lattice[isFluidWorld(mask, lattice, Lx, Ly)]
    candidates = candidates[rng.permutation(len(candidates))]

    take = min(n, len(candidates))
    chosen = candidates[:take].copy()

    if take > 0 and jitter > 0.0:
        amplitude = jitter * spacing
        offsets = (rng.random((take, 2)) * 2.0 - 1.0) * amplitude
        jittered = chosen + offsets
        keep = isFluidWorld(mask, jittered, Lx, Ly)
        jittered[:, 0] = wrapX(jittered[:, 0], Lx)
        jittered[:, 1] = np.clip(jittered[:, 1], 0.0, Ly)
        chosen[keep] = jittered[keep]

    particles.positions[:take] = chosen

    # Not enough lattice sites: rejection sampling
    filled = take
    while filled < n:
        batch = max(64, 2 * (n - filled))
        samples = rng.random((batch, 2)) * np.array([Lx, Ly])
        accepted = samples[isFluidWorld(mask, samples, Lx, Ly)][:n - filled]
        particles.positions[filled:filled + len(accepted)] = accepted
        filled += len(accepted)

    particles.velocities[:] = 0.0
    particles.pressures[:] = 0.0
