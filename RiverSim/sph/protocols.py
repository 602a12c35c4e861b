# -- River SPH Parameters and State -- #

'''
Configuration, derived quantities and result dataclasses for the
river SPH simulation.

SimulationParameters is the user-facing parameter surface. Changing
particleCount requires a full reset; every other field is hot-updatable
(only DerivedSph, the substep count and the SolverConstants block are
recomputed).

SolverConstants is the block the solver reads during a step. It is
rebuilt on the host side from the parameters and derived quantities
and is never mutated while a step is in flight.
'''

from __future__ import annotations

import json
import math
from dataclasses import dataclass, replace
from typing import Protocol, TYPE_CHECKING

import numpy as np

from RiverSim import constants as const
from RiverSim.sph.neighborSearch import periodicColumnCount

if TYPE_CHECKING:
    from RiverSim.sph.particles import ParticleState


######################################################################
# -- Simulation Parameters -- #
######################################################################

@dataclass
class SimulationParameters:
    '''
    User-adjustable parameters of a river simulation.

    Parameters:
    -----------
    domainWidth : float
        Channel length Lx along the periodic flow direction [m]
    particleCount : int
        Number of fluid particles N (changing it forces a reset)
    restDensity : float
        Rest density rho_0 (mass per area) [kg/m^2]
    viscosity : float
        Viscosity coefficient nu
    smoothingFactor : float
        Ratio h / particleSpacing
    gamma : float
        Tait equation of state exponent
    soundSpeed : float
        Artificial speed of sound c0 [m/s]
    xsph : float
        XSPH velocity smoothing factor epsilon
    maxSpeed : float
        Speed clamp [m/s]
    driveAccel : float
        Constant drive acceleration along +x, g_s [m/s^2]
    dragK : float
        Linear drag coefficient k [1/s]
    particleRadius : float
        Collision radius for the SDF clamp [m]
    friction : float
        Tangential friction on SDF contact (0 - 1)
    fixedDt : float
        Nominal per-frame time step [s]
    minSubsteps : int
        Minimum number of substeps per frame
    '''

    domainWidth: float = const.domainWidth
    particleCount: int = const.particleCount
    restDensity: float = const.restDensity
    viscosity: float = const.viscosity
    smoothingFactor: float = const.smoothingFactor
    gamma: float = const.gamma
    soundSpeed: float = const.soundSpeed
    xsph: float = const.xsphEpsilon
    maxSpeed: float = const.maxSpeed
    driveAccel: float = const.driveAccel
    dragK: float = const.dragK
    particleRadius: float = const.particleRadius
    friction: float = const.friction
    fixedDt: float = const.fixedDt
    minSubsteps: int = const.minSubsteps

    def __post_init__(self) -> None:
        if not self.domainWidth > 0.0:
            raise ValueError(f'domainWidth must be positive, got {self.domainWidth}')
        if self.particleCount < 1:
            raise ValueError(f'particleCount must be >= 1, got {self.particleCount}')

    @classmethod
    def small(cls) -> SimulationParameters:
        '''
        Small run for quick checks.

        ~1500 particles, a few seconds per hundred frames.
        '''
        return cls(particleCount=1500)

    @classmethod
    def standard(cls) -> SimulationParameters:
        '''
        Standard quality run.

        10,000 particles on the default 20 m channel.
        '''
        return cls(particleCount=10_000)

    def requiresReset(self, other: SimulationParameters) -> bool:
        '''True if switching to other needs reallocation (particle count changed).'''
        return self.particleCount != other.particleCount

    def withUpdates(self, **changes) -> SimulationParameters:
        '''Copy with the given fields replaced.'''
        return replace(self, **changes)

    def toDict(self) -> dict:
        '''
        Nested dictionary in the JSON configuration layout.

        Returns:
        --------
        dict : Sections domain, particles, sph, flow, collide, time
        '''
        return {
            'domain': {'Lx': self.domainWidth},
            'particles': {'count': self.particleCount},
            'sph': {
                'restDensity': self.restDensity,
                'viscosity': self.viscosity,
                'smoothingFactor': self.smoothingFactor,
                'gamma': self.gamma,
                'soundSpeed': self.soundSpeed,
                'xsph': self.xsph,
                'maxSpeed': self.maxSpeed,
            },
            'flow': {
                'driveAccel': self.driveAccel,
                'dragK': self.dragK,
            },
            'collide': {
                'particleRadius': self.particleRadius,
                'friction': self.friction,
            },
            'time': {
                'fixedDt': self.fixedDt,
                'substeps': self.minSubsteps,
            },
        }

    @classmethod
    def fromDict(cls, data: dict) -> SimulationParameters:
        '''
        Build parameters from the nested JSON layout.

        Missing sections or keys keep their defaults.

        Parameters:
        -----------
        data : dict
            Parsed configuration

        Returns:
        --------
        SimulationParameters : Parameters
        '''
        defaults = cls()
        domainSection = data.get('domain', {})
        particleSection = data.get('particles', {})
        sphSection = data.get('sph', {})
        flowSection = data.get('flow', {})
        collideSection = data.get('collide', {})
        timeSection = data.get('time', {})

        return cls(
            domainWidth=float(domainSection.get('Lx', defaults.domainWidth)),
            particleCount=int(particleSection.get('count', defaults.particleCount)),
            restDensity=float(sphSection.get('restDensity', defaults.restDensity)),
            viscosity=float(sphSection.get('viscosity', defaults.viscosity)),
            smoothingFactor=float(sphSection.get('smoothingFactor', defaults.smoothingFactor)),
            gamma=float(sphSection.get('gamma', defaults.gamma)),
            soundSpeed=float(sphSection.get('soundSpeed', defaults.soundSpeed)),
            xsph=float(sphSection.get('xsph', defaults.xsph)),
            maxSpeed=float(sphSection.get('maxSpeed', defaults.maxSpeed)),
            driveAccel=float(flowSection.get('driveAccel', defaults.driveAccel)),
            dragK=float(flowSection.get('dragK', defaults.dragK)),
            particleRadius=float(collideSection.get('particleRadius', defaults.particleRadius)),
            friction=float(collideSection.get('friction', defaults.friction)),
            fixedDt=float(timeSection.get('fixedDt', defaults.fixedDt)),
            minSubsteps=int(timeSection.get('substeps', defaults.minSubsteps)),
        )

    @classmethod
    def fromJson(cls, configPath: str) -> SimulationParameters:
        '''
        Load parameters from a JSON file.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file

        Returns:
        --------
        SimulationParameters : Loaded parameters
        '''
        with open(configPath, 'r') as f:
            data = json.load(f)
        return cls.fromDict(data)

    def toJson(self, configPath: str) -> None:
        '''Write parameters to a JSON file in the nested layout.'''
        with open(configPath, 'w') as f:
            json.dump(self.toDict(), f, indent=2)


######################################################################
# -- Derived SPH Quantities -- #
######################################################################

@dataclass(frozen=True)
class DerivedSph:
    '''
    Quantities derived from the parameters and the obstacle layout.

    Parameters:
    -----------
    particleSpacing : float
        s = sqrt(fluidArea / N) [m]
    smoothingLength : float
        h = smoothingFactor * s [m]
    cellSize : float
        Neighbor grid cell size (= h) [m]
    gridSizeX : int
        floor(Lx / h), whole columns along the periodic axis
    gridSizeY : int
        ceil(Ly / h)
    restDensity : float
        rho_0 [kg/m^2]
    particleMass : float
        m = rho_0 * s^2 [kg]
    '''

    particleSpacing: float
    smoothingLength: float
    cellSize: float
    gridSizeX: int
    gridSizeY: int
    restDensity: float
    particleMass: float

    @property
    def gridCount(self) -> int:
        '''Total number of grid cells.'''
        return self.gridSizeX * self.gridSizeY

    @classmethod
    def compute(
        cls,
        params: SimulationParameters,
        fluidFraction: float,
        Lx: float,
        Ly: float,
    ) -> DerivedSph:
        '''
        Derive spacing, smoothing length, grid size and particle mass.

        Parameters:
        -----------
        params : SimulationParameters
            Current parameters
        fluidFraction : float
            Fraction of the mask that is fluid
        Lx : float
            Domain width [m]
        Ly : float
            Domain height [m]

        Returns:
        --------
        DerivedSph : Derived quantities
        '''
        fluidArea = max(const.minFluidArea, fluidFraction * Lx * Ly)
        spacing = math.sqrt(fluidArea / float(max(1, params.particleCount)))
        h = max(const.minSmoothingLength, params.smoothingFactor * spacing)
        cellSize = h

        return cls(
            particleSpacing=spacing,
            smoothingLength=h,
            cellSize=cellSize,
            gridSizeX=periodicColumnCount(Lx, cellSize),
            gridSizeY=max(1, int(math.ceil(Ly / cellSize))),
            restDensity=params.restDensity,
            particleMass=params.restDensity * spacing * spacing,
        )


######################################################################
# -- Solver Constants -- #
######################################################################

@dataclass(frozen=True, eq=False)
class SolverConstants:
    '''
    Immutable parameter block read by the solver during a step.

    Rebuilt from SimulationParameters + DerivedSph on every parameter
    update; swapped into the solver only between frames.
    '''

    domainMin: np.ndarray
    domainMax: np.ndarray
    Lx: float
    Ly: float
    dt: float
    substeps: int
    driveAccel: float
    dragK: float
    particleRadius: float
    friction: float
    restDensity: float
    particleMass: float
    smoothingLength: float
    cellSize: float
    stiffness: float
    gamma: float
    viscosity: float
    xsph: float
    maxSpeed: float
    gridSizeX: int
    gridSizeY: int
    particleCount: int

    @property
    def gridCount(self) -> int:
        '''Total number of grid cells.'''
        return self.gridSizeX * self.gridSizeY

    @classmethod
    def build(
        cls,
        params: SimulationParameters,
        derived: DerivedSph,
        domainMin: np.ndarray,
        domainMax: np.ndarray,
        substeps: int,
        dt: float,
    ) -> SolverConstants:
        '''
        Assemble the constant block for the solver.

        The Tait stiffness is B = rho_0 * c0^2 / gamma with c0 and
        gamma floored away from zero.
        '''
        gamma = max(params.gamma, 1.0)
        c0 = max(params.soundSpeed, 1e-3)
        domainMin = np.asarray(domainMin, dtype=np.float64).copy()
        domainMax = np.asarray(domainMax, dtype=np.float64).copy()

        return cls(
            domainMin=domainMin,
            domainMax=domainMax,
            Lx=float(domainMax[0] - domainMin[0]),
            Ly=float(domainMax[1] - domainMin[1]),
            dt=dt,
            substeps=substeps,
            driveAccel=params.driveAccel,
            dragK=params.dragK,
            particleRadius=params.particleRadius,
            friction=params.friction,
            restDensity=derived.restDensity,
            particleMass=derived.particleMass,
            smoothingLength=derived.smoothingLength,
            cellSize=derived.cellSize,
            stiffness=derived.restDensity * c0 * c0 / gamma,
            gamma=gamma,
            viscosity=params.viscosity,
            xsph=params.xsph,
            maxSpeed=params.maxSpeed,
            gridSizeX=derived.gridSizeX,
            gridSizeY=derived.gridSizeY,
            particleCount=params.particleCount,
        )


######################################################################
# -- Simulation State -- #
######################################################################

@dataclass
class SimulationState:
    '''
    Diagnostics snapshot after a completed frame.

    Parameters:
    -----------
    time : float
        Simulated time [s]
    frame : int
        Number of completed frames
    substeps : int
        Substeps run per frame
    dt : float
        Substep size [s]
    kineticEnergy : float
        Total kinetic energy of the fluid [J]
    maxVelocity : float
        Maximum particle speed [m/s]
    meanVelocity : float
        Mean particle speed [m/s]
    meanDensity : float
        Mean particle density [kg/m^2]
    maxDensityError : float
        Maximum relative density error |rho - rho_0| / rho_0
    '''

    time: float
    frame: int
    substeps: int
    dt: float
    kineticEnergy: float
    maxVelocity: float
    meanVelocity: float
    meanDensity: float
    maxDensityError: float


@dataclass
class SimulationStats:
    '''Wall-clock statistics of the most recent step.'''

    fps: float = 0.0
    simMs: float = 0.0


######################################################################
# -- Solver Protocol -- #
######################################################################

class SphSolver(Protocol):
    '''Protocol for substep-driven SPH solvers.'''

    def substep(self) -> None:
        '''Advance one substep.'''
        ...

    def advance(self, substeps: int) -> None:
        '''Advance a whole frame of substeps.'''
        ...

    @property
    def particles(self) -> ParticleState:
        '''Access the particle state.'''
        ...
