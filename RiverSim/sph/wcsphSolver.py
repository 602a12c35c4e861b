# -- Weakly Compressible SPH River Solver -- #

'''
WCSPH solver for a 2D channel that is periodic along x.

Pressure follows from density through the Tait equation of state,
so no pressure Poisson solve is needed. Walls are represented by
static boundary particles (Akinci psi weights) that take part in the
density sum and the pressure force; an SDF clamp catches the few
particles that still reach the solid.

All pair computations are vectorized with NumPy over neighbor pairs.

Pipeline per substep:
    1. Rebuild the fluid neighbor grid
    2. Density (fluid + boundary) and Tait pressure
    3. Accelerations (pressure, viscosity, drive, drag), XSPH,
       semi-implicit Euler with speed clamp and periodic wrap
    4. SDF collision clamp

References:
-----------
Becker & Teschner (2007) -- Weakly compressible SPH for free surface flows
Mueller et al. (2003) -- Particle-based fluid simulation for interactive applications
Akinci et al. (2012) -- Versatile rigid-fluid coupling for incompressible SPH
Monaghan (1989) -- On the problem of penetration in particle methods
'''

from __future__ import annotations

import numpy as np

from RiverSim import constants as const
from RiverSim.obstacle.sdfBuilder import SignedDistanceField
from RiverSim.sph.boundaryField import BoundaryField
from RiverSim.sph.kernels import Poly6Kernel, SpikyKernel, ViscosityKernel
from RiverSim.sph.neighborSearch import PeriodicCellGrid
from RiverSim.sph.particles import ParticleState
from RiverSim.sph.protocols import SolverConstants
from RiverSim.sph.sdfCollision import SdfCollider
from RiverSim.sph.timeIntegration import SymplecticEuler


class WcsphSolver:
    '''
    Substep-driven WCSPH solver.

    The solver owns its particle arrays; external readers should use
    particles.snapshot(). The constant block is only swapped between
    frames through setConstants().

    Parameters:
    -----------
    constants : SolverConstants
        Parameter block for the current frame
    particles : ParticleState
        Spawned fluid particles
    boundary : BoundaryField
        Static boundary particles with psi weights
    sdf : SignedDistanceField
        Obstacle field for the collision clamp
    '''

    def __init__(
        self,
        constants: SolverConstants,
        particles: ParticleState,
        boundary: BoundaryField,
        sdf: SignedDistanceField,
    ) -> None:
        if particles.count != constants.particleCount:
            raise ValueError(
                f'particle arrays hold {particles.count} particles, '
                f'constants expect {constants.particleCount}'
            )

        self._particles = particles
        self._boundary = boundary
        self._sdf = sdf

        self._poly6 = Poly6Kernel()
        self._spiky = SpikyKernel()
        self._viscosityKernel = ViscosityKernel()

        self._constants = constants
        self._configure(constants)
        self._substepCount: int = 0
        self._lastCollisions: int = 0

    def _configure(self, c: SolverConstants) -> None:
        '''Rebuild the pieces that depend on the constant block.'''
        self._grid = PeriodicCellGrid(
            domainMin=c.domainMin,
            domainSize=np.array([c.Lx, c.Ly]),
            cellSize=c.cellSize,
        )
        self._integrator = SymplecticEuler(Lx=c.Lx, maxSpeed=c.maxSpeed, xsph=c.xsph)
        self._collider = SdfCollider(self._sdf, c.particleRadius, c.friction)

    ######################################################################
    # -- Accessors -- #
    ######################################################################

    @property
    def particles(self) -> ParticleState:
        '''Live particle state (owned by the solver).'''
        return self._particles

    @property
    def constants(self) -> SolverConstants:
        '''Constant block in use.'''
        return self._constants

    @property
    def boundary(self) -> BoundaryField:
        '''Static boundary particles.'''
        return self._boundary

    @property
    def grid(self) -> PeriodicCellGrid:
        '''Fluid neighbor grid as of the last substep.'''
        return self._grid

    @property
    def substepCount(self) -> int:
        '''Substeps run since construction.'''
        return self._substepCount

    @property
    def lastCollisions(self) -> int:
        '''Particles projected by the SDF clamp in the last substep.'''
        return self._lastCollisions

    def setConstants(self, constants: SolverConstants) -> None:
        '''
        Swap in a new constant block (between frames only).

        Parameters:
        -----------
        constants : SolverConstants
            Block built from updated parameters; the particle count
            must not change
        '''
        if constants.particleCount != self._particles.count:
            raise ValueError('particle count changed; a full reset is required')
        self._constants = constants
        self._configure(constants)

    def setBoundary(self, boundary: BoundaryField) -> None:
        '''Replace the boundary field (after a smoothing length change).'''
        self._boundary = boundary

    ######################################################################
    # -- Time Stepping -- #
    ######################################################################

    def advance(self, substeps: int | None = None) -> None:
        '''
        Run a frame worth of substeps.

        Parameters:
        -----------
        substeps : int | None
            Number of substeps (defaults to constants.substeps)
        '''
        count = self._constants.substeps if substeps is None else int(substeps)
        for _ in range(max(0, count)):
            self.substep()

    def substep(self) -> None:
        '''Advance the fluid by one substep of size constants.dt.'''
        c = self._constants
        p = self._particles
        h = c.smoothingLength

        # 1. Neighbor grid
        self._grid.build(p.positions)
        fluidPairs = self._grid.queryPairs(p.positions, h)
        boundaryPairs = self._boundary.grid.queryPairs(p.positions, h)

        # 2. Density and pressure
        self._computeDensity(fluidPairs, boundaryPairs)
        self._computePressure()

        # 3. Forces and integration
        accelerations = self._computeAccelerations(fluidPairs, boundaryPairs)
        xsphCorrection = self._computeXsphCorrection(fluidPairs)
        self._integrator.integrate(p, accelerations, xsphCorrection, c.dt)

        # 4. Collision clamp
        self._lastCollisions = self._collider.resolve(p.positions, p.velocities)

        self._substepCount += 1

    ######################################################################
    # -- Density and Pressure -- #
    ######################################################################

    def _computeDensity(self, fluidPairs: tuple, boundaryPairs: tuple) -> None:
        '''
        SPH density summation over fluid and boundary neighbors.

        rho_i = sum_j m W(r_ij, h) + sum_b psi_b W(r_ib, h)

        Fluid pairs include i itself. The result is floored at 1e-6.
        '''
        c = self._constants
        p = self._particles
        h = c.smoothingLength
        n = p.count

        iIdx, _, _, dist = fluidPairs
        density = np.bincount(
            iIdx, weights=c.particleMass * self._poly6.evaluateBatch(dist, h), minlength=n,
        )

        bIdx, bJdx, _, bDist = boundaryPairs
        if len(bIdx) > 0:
            weights = self._boundary.psi[bJdx] * self._poly6.evaluateBatch(bDist, h)
            density += np.bincount(bIdx, weights=weights, minlength=n)

        p.densities[:] = np.maximum(density, const.densityFloor)

    def _computePressure(self) -> None:
        '''
        Tait equation of state, clamped to non-negative pressure.

        P = B * ((rho / rho_0)^gamma - 1)
        '''
        c = self._constants
        p = self._particles
        ratio = p.densities / c.restDensity
        p.pressures[:] = np.maximum(c.stiffness * (ratio ** c.gamma - 1.0), 0.0)

    ######################################################################
    # -- Accelerations -- #
    ######################################################################

    def _computeAccelerations(self, fluidPairs: tuple, boundaryPairs: tuple) -> np.ndarray:
        '''
        Total acceleration of every fluid particle.

        Pressure (symmetric form, spiky gradient):
            a_i -= sum_j m (P_i/rho_i^2 + P_j/rho_j^2) grad W_ij
        Boundary pressure (boundary mirrors P_i):
            a_i -= sum_b psi_b (2 P_i / rho_i^2) grad W_ib
        Viscosity:
            a_i += nu sum_j m (v_j - v_i) / rho_j lap W_ij
        Drive and drag:
            a_i += g_s x_hat - k v_i

        Returns:
        --------
        np.ndarray : Accelerations, shape (N, 2)
        '''
        c = self._constants
        p = self._particles
        h = c.smoothingLength
        m = c.particleMass

        accel = np.zeros_like(p.velocities)
        accel[:, 0] += c.driveAccel
        accel -= c.dragK * p.velocities

        pOverRhoSq = p.pressures / (p.densities * p.densities)

        iIdx, jIdx, dr, dist = fluidPairs
        if len(iIdx) > 0:
            gradW = self._spiky.gradientBatch(dr, dist, h)
            pressureCoeff = -m * (pOverRhoSq[iIdx] + pOverRhoSq[jIdx])

            lapW = self._viscosityKernel.laplacianBatch(dist, h)
            viscCoeff = c.viscosity * m * lapW / p.densities[jIdx]
            dv = p.velocities[jIdx] - p.velocities[iIdx]

            contrib = pressureCoeff[:, np.newaxis] * gradW + viscCoeff[:, np.newaxis] * dv
            np.add.at(accel, iIdx, contrib)

        bIdx, bJdx, bDr, bDist = boundaryPairs
        if len(bIdx) > 0:
            gradW = self._spiky.gradientBatch(bDr, bDist, h)
            boundaryCoeff = -self._boundary.psi[bJdx] * 2.0 * pOverRhoSq[bIdx]
            np.add.at(accel, bIdx, boundaryCoeff[:, np.newaxis] * gradW)

        return accel

    def _computeXsphCorrection(self, fluidPairs: tuple) -> np.ndarray:
        '''
        XSPH velocity smoothing term.

        dv_i = sum_j (m / rho_avg) (v_j - v_i) W_ij,  rho_avg = (rho_i + rho_j) / 2

        Returns:
        --------
        np.ndarray : Correction (before the epsilon factor), shape (N, 2)
        '''
        c = self._constants
        p = self._particles

        correction = np.zeros_like(p.velocities)
        iIdx, jIdx, _, dist = fluidPairs
        if len(iIdx) == 0:
            return correction

        wij = self._poly6.evaluateBatch(dist, c.smoothingLength)
        rhoAvg = 0.5 * (p.densities[iIdx] + p.densities[jIdx])
        weight = c.particleMass * wij / rhoAvg
        dv = p.velocities[jIdx] - p.velocities[iIdx]
        np.add.at(correction, iIdx, weight[:, np.newaxis] * dv)

        return correction
