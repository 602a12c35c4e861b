# -- SPH Engine Package -- #

'''
Core WCSPH engine for the periodic river channel.

Provides kernels, the periodic neighbor grid, boundary particles,
time integration, the SDF collision clamp, the substep scheduler
and the solver.
'''

from RiverSim.sph.protocols import (
    DerivedSph,
    SimulationParameters,
    SimulationState,
    SimulationStats,
    SolverConstants,
)
from RiverSim.sph.kernels import Poly6Kernel, SpikyKernel, ViscosityKernel
from RiverSim.sph.neighborSearch import PeriodicCellGrid
from RiverSim.sph.particles import ParticleState
from RiverSim.sph.boundaryField import BoundaryField
from RiverSim.sph.timestepController import TimestepController
from RiverSim.sph.wcsphSolver import WcsphSolver
