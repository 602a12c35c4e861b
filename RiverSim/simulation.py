# -- River Simulation Session -- #

'''
Host-side session that owns one river simulation.

A session resolves the obstacle mask, builds the signed distance
field and the static boundary field, spawns the fluid particles and
drives the WCSPH solver one frame at a time. Parameter changes are
applied between frames: a new particle count forces a full reset,
everything else only rebuilds the derived quantities, the substep
count and the solver constant block.

Resource ownership is explicit: a ComputeContext carries the float
type, the seeded random generator and array allocation, and is passed
to the session instead of being looked up globally.

Usage:
    session = SimulationSession(SimulationParameters.small())
    session.reset()                      # default meandering channel
    for _ in range(100):
        state = session.step()
    positions = session.positions        # copy, safe to keep
'''

from __future__ import annotations

import time as timeModule

import numpy as np

from RiverSim import constants as const
from RiverSim.obstacle.mask import (
    OccupancyMask,
    createDefaultChannelMask,
    loadMaskImage,
    tileMismatchX,
)
from RiverSim.obstacle.sdfBuilder import SignedDistanceField, buildPeriodicSdf
from RiverSim.sph.boundaryField import BoundaryField
from RiverSim.sph.particles import ParticleState, spawnInFluid
from RiverSim.sph.protocols import (
    DerivedSph,
    SimulationParameters,
    SimulationState,
    SimulationStats,
    SolverConstants,
)
from RiverSim.sph.timestepController import TimestepController
from RiverSim.sph.wcsphSolver import WcsphSolver


######################################################################
# -- Compute Context -- #
######################################################################

class ComputeContext:
    '''
    Numerical context shared by the pieces of one session.

    Parameters:
    -----------
    dtype : type
        Floating point type of the particle arrays
    seed : int
        Seed of the spawn random generator
    '''

    def __init__(self, dtype: type = np.float64, seed: int = const.spawnSeed) -> None:
        self._dtype = dtype
        self._seed = seed
        self._rng = np.random.default_rng(seed)

    @property
    def dtype(self) -> type:
        '''Floating point type of allocated arrays.'''
        return self._dtype

    @property
    def seed(self) -> int:
        '''Seed of the random generator.'''
        return self._seed

    @property
    def rng(self) -> np.random.Generator:
        '''Random generator (reseeded by resetRng()).'''
        return self._rng

    def resetRng(self) -> None:
        '''Restart the random stream from the seed.'''
        self._rng = np.random.default_rng(self._seed)

    def allocateParticles(self, count: int, restDensity: float) -> ParticleState:
        '''
        Allocate fluid particle arrays.

        Raises:
        -------
        MemoryError : If the arrays cannot be allocated
        '''
        return ParticleState.allocate(count, restDensity=restDensity, dtype=self._dtype)


######################################################################
# -- Simulation Session -- #
######################################################################

class SimulationSession:
    '''
    One river simulation: setup, parameter updates, stepping, readouts.

    Parameters:
    -----------
    params : SimulationParameters | None
        Initial parameters (defaults to SimulationParameters())
    context : ComputeContext | None
        Numerical context (defaults to a float64 context with the
        standard spawn seed)
    '''

    def __init__(
        self,
        params: SimulationParameters | None = None,
        context: ComputeContext | None = None,
    ) -> None:
        self._params = params or SimulationParameters()
        self._context = context or ComputeContext()
        self._controller = TimestepController()

        self._ready: bool = False
        self._mask: OccupancyMask | None = None
        self._sdf: SignedDistanceField | None = None
        self._boundary: BoundaryField | None = None
        self._derived: DerivedSph | None = None
        self._constants: SolverConstants | None = None
        self._solver: WcsphSolver | None = None
        self._tileMismatch: float = 0.0
        self._usedFallbackMask: bool = False

        self._substeps: int = 0
        self._dt: float = 0.0
        self._time: float = 0.0
        self._frame: int = 0
        self._stats = SimulationStats()

    ######################################################################
    # -- Setup -- #
    ######################################################################

    def reset(
        self,
        mask: OccupancyMask | None = None,
        maskPath: str | None = None,
        threshold: float = const.maskThreshold,
    ) -> bool:
        '''
        Rebuild the whole simulation from a mask.

        Mask resolution order: an explicit mask, then maskPath, then the
        generated meandering channel. A mask file that cannot be read
        falls back to the generated channel with a warning.

        Parameters:
        -----------
        mask : OccupancyMask | None
            Mask to use directly
        maskPath : str | None
            Image file to decode when no mask is given
        threshold : float
            Luma threshold for image decoding

        Returns:
        --------
        bool : True if the session is ready to step
        '''
        self._ready = False
        self._solver = None
        self._time = 0.0
        self._frame = 0
        self._stats = SimulationStats()

        mask = self._resolveMask(mask, maskPath, threshold)
        self._mask = mask

        self._tileMismatch = tileMismatchX(mask)
        if self._tileMismatch > const.tileMismatchWarning:
            print(
                f'  WARNING: mask does not tile in x '
                f'({self._tileMismatch * 100:.1f}% of rows differ at the seam)'
            )

        params = self._params
        try:
            sdf = buildPeriodicSdf(mask, params.domainWidth)
            derived = DerivedSph.compute(params, mask.fluidFraction, sdf.Lx, sdf.Ly)

            particles = self._context.allocateParticles(params.particleCount, derived.restDensity)
            self._context.resetRng()
            spawnInFluid(particles, mask, sdf.Lx, sdf.Ly, derived.particleSpacing, self._context.rng)

            boundary = BoundaryField.build(
                mask, sdf.Lx, sdf.Ly,
                spacing=derived.particleSpacing,
                restDensity=derived.restDensity,
                smoothingLength=derived.smoothingLength,
            )

            self._sdf = sdf
            self._derived = derived
            self._boundary = boundary
            self._constants = self._buildConstants(derived)
            self._solver = WcsphSolver(self._constants, particles, boundary, sdf)
        except (MemoryError, ValueError) as err:
            print(f'  WARNING: simulation setup failed ({type(err).__name__}: {err})')
            self._solver = None
            return False

        self._ready = True
        return True

    def _resolveMask(
        self,
        mask: OccupancyMask | None,
        maskPath: str | None,
        threshold: float,
    ) -> OccupancyMask:
        '''Pick the mask to simulate, falling back to the generated channel.'''
        self._usedFallbackMask = False
        if mask is not None:
            return mask

        if maskPath is not None:
            try:
                return loadMaskImage(maskPath, threshold)
            except (OSError, ImportError, ValueError) as err:
                print(f'  WARNING: could not load mask "{maskPath}" ({err}); using default channel')
                self._usedFallbackMask = True
                return createDefaultChannelMask()

        return createDefaultChannelMask()

    def _buildConstants(self, derived: DerivedSph) -> SolverConstants:
        '''Run the substep scheduler and assemble the solver constant block.'''
        self._substeps, self._dt = self._controller.derive(self._params, derived)
        return SolverConstants.build(
            self._params,
            derived,
            domainMin=np.zeros(2),
            domainMax=np.array([self._sdf.Lx, self._sdf.Ly]),
            substeps=self._substeps,
            dt=self._dt,
        )

    ######################################################################
    # -- Parameter Updates -- #
    ######################################################################

    def updateParams(self, params: SimulationParameters) -> bool:
        '''
        Apply new parameters between frames.

        A changed particle count triggers a full reset on the current
        mask. Otherwise only the derived quantities, the substep count
        and the constant block are rebuilt; particle state is kept. A
        changed smoothing length, rest density or spacing also rebuilds
        the boundary field and its psi weights. The domain geometry
        (and so domainWidth) is fixed until the next reset.

        Parameters:
        -----------
        params : SimulationParameters
            New parameters

        Returns:
        --------
        bool : True if the session is ready to step
        '''
        needsReset = not self._ready or self._params.requiresReset(params)
        self._params = params

        if needsReset:
            return self.reset(mask=self._mask)

        derived = DerivedSph.compute(params, self._mask.fluidFraction, self._sdf.Lx, self._sdf.Ly)
        old = self._derived
        if (derived.smoothingLength != old.smoothingLength
                or derived.restDensity != old.restDensity
                or derived.particleSpacing != old.particleSpacing):
            self._boundary = BoundaryField.build(
                self._mask, self._sdf.Lx, self._sdf.Ly,
                spacing=derived.particleSpacing,
                restDensity=derived.restDensity,
                smoothingLength=derived.smoothingLength,
            )
            self._solver.setBoundary(self._boundary)

        self._derived = derived
        self._constants = self._buildConstants(derived)
        self._solver.setConstants(self._constants)
        return True

    ######################################################################
    # -- Stepping -- #
    ######################################################################

    def step(self, elapsedRealTime: float | None = None) -> SimulationState | None:
        '''
        Advance one frame of fixedDt using the scheduled substeps.

        The physics step is fixed; elapsedRealTime only feeds the
        frame rate readout.

        Parameters:
        -----------
        elapsedRealTime : float | None
            Wall-clock time since the previous frame [s]

        Returns:
        --------
        SimulationState | None : Diagnostics, or None when not ready
        '''
        if not self._ready:
            return None

        start = timeModule.perf_counter()
        self._solver.advance(self._substeps)
        simSeconds = timeModule.perf_counter() - start

        self._time += self._substeps * self._dt
        self._frame += 1

        frameSeconds = elapsedRealTime if elapsedRealTime and elapsedRealTime > 0.0 else simSeconds
        self._stats = SimulationStats(
            fps=1.0 / frameSeconds if frameSeconds > 0.0 else 0.0,
            simMs=simSeconds * 1000.0,
        )

        return self.currentState

    ######################################################################
    # -- Readouts -- #
    ######################################################################

    @property
    def isReady(self) -> bool:
        '''True once a reset succeeded.'''
        return self._ready

    @property
    def params(self) -> SimulationParameters:
        '''Current parameters.'''
        return self._params

    @property
    def context(self) -> ComputeContext:
        '''Numerical context.'''
        return self._context

    @property
    def particleCount(self) -> int:
        '''Number of fluid particles (0 when not ready).'''
        return self._solver.particles.count if self._ready else 0

    @property
    def positions(self) -> np.ndarray:
        '''Copy of the particle positions, shape (N, 2).'''
        if not self._ready:
            return np.zeros((0, 2))
        return self._solver.particles.positions.copy()

    @property
    def velocities(self) -> np.ndarray:
        '''Copy of the particle velocities, shape (N, 2).'''
        if not self._ready:
            return np.zeros((0, 2))
        return self._solver.particles.velocities.copy()

    @property
    def densities(self) -> np.ndarray:
        '''Copy of the particle densities, shape (N,).'''
        if not self._ready:
            return np.zeros(0)
        return self._solver.particles.densities.copy()

    def snapshot(self) -> ParticleState | None:
        '''Deep copy of the full particle state.'''
        if not self._ready:
            return None
        return self._solver.particles.snapshot()

    @property
    def domainMin(self) -> np.ndarray:
        '''Lower domain corner [m].'''
        return np.zeros(2)

    @property
    def domainMax(self) -> np.ndarray:
        '''Upper domain corner (Lx, Ly) [m].'''
        if self._sdf is None:
            return np.zeros(2)
        return np.array([self._sdf.Lx, self._sdf.Ly])

    @property
    def mask(self) -> OccupancyMask | None:
        '''Mask in use.'''
        return self._mask

    @property
    def usedFallbackMask(self) -> bool:
        '''True if the requested mask file could not be used.'''
        return self._usedFallbackMask

    @property
    def sdf(self) -> SignedDistanceField | None:
        '''Obstacle signed distance field.'''
        return self._sdf

    @property
    def boundary(self) -> BoundaryField | None:
        '''Static boundary particles.'''
        return self._boundary

    @property
    def derived(self) -> DerivedSph | None:
        '''Derived SPH quantities.'''
        return self._derived

    @property
    def solverConstants(self) -> SolverConstants | None:
        '''Constant block of the solver.'''
        return self._constants

    @property
    def substeps(self) -> int:
        '''Substeps per frame.'''
        return self._substeps

    @property
    def dt(self) -> float:
        '''Substep size [s].'''
        return self._dt

    @property
    def time(self) -> float:
        '''Simulated time [s].'''
        return self._time

    @property
    def frame(self) -> int:
        '''Completed frames.'''
        return self._frame

    @property
    def tileMismatch(self) -> float:
        '''Fraction of mask rows that differ across the x seam.'''
        return self._tileMismatch

    @property
    def stats(self) -> SimulationStats:
        '''Wall-clock statistics of the last step.'''
        return self._stats

    @property
    def currentState(self) -> SimulationState | None:
        '''Diagnostics of the current particle state.'''
        if not self._ready:
            return None
        p = self._solver.particles
        return SimulationState(
            time=self._time,
            frame=self._frame,
            substeps=self._substeps,
            dt=self._dt,
            kineticEnergy=p.kineticEnergy(self._derived.particleMass),
            maxVelocity=p.maxSpeed(),
            meanVelocity=p.meanSpeed(),
            meanDensity=p.meanDensity(),
            maxDensityError=p.maxDensityError(self._derived.restDensity),
        )
