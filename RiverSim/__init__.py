# -- RiverSim Package -- #

'''
2D river flow through a periodic channel with Weakly Compressible
Smoothed Particle Hydrodynamics (WCSPH).

Obstacles come from a binary occupancy mask, turned into a periodic
signed distance field and a layer of static boundary particles.
'''

__version__ = '0.1.0'

from RiverSim.sph.protocols import SimulationParameters, SimulationState
from RiverSim.simulation import ComputeContext, SimulationSession
from RiverSim.export.frameExporter import FrameExporter
from RiverSim.runner import RiverSimRunner
