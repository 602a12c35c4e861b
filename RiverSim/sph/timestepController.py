# -- CFL Substep Scheduler -- #

'''
Derives a stability-respecting substep count for each frame.

The nominal frame step fixedDt is split into substeps so that each
substep satisfies the acoustic CFL limit

    dt_cfl = 0.25 * h / (c0 + v_target)

where v_target = driveAccel / dragK is the terminal drift speed of a
particle driven along +x against linear drag. Then

    substeps = max(minSubsteps, ceil(fixedDt / dt_cfl))
    dt       = fixedDt / substeps

The controller is re-run on every parameter change, not only at reset.
'''

from __future__ import annotations

import math

from RiverSim import constants as const
from RiverSim.sph.protocols import DerivedSph, SimulationParameters


class TimestepController:
    '''CFL-driven substep scheduler.'''

    def __init__(self, cflNumber: float = const.cflNumber) -> None:
        self._cflNumber = cflNumber

    @staticmethod
    def targetVelocity(driveAccel: float, dragK: float) -> float:
        '''Terminal drift speed driveAccel / dragK with dragK floored [m/s].'''
        return driveAccel / max(dragK, 1e-3)

    def cflTimeStep(self, smoothingLength: float, soundSpeed: float, targetVelocity: float) -> float:
        '''
        Largest stable substep for the given resolution and wave speeds.

        Parameters:
        -----------
        smoothingLength : float
            h [m]
        soundSpeed : float
            c0 [m/s] (floored at 1e-3)
        targetVelocity : float
            Expected drift speed [m/s]

        Returns:
        --------
        float : dt_cfl [s]
        '''
        c0 = max(soundSpeed, 1e-3)
        return self._cflNumber * smoothingLength / max(c0 + targetVelocity, 1e-3)

    def derive(self, params: SimulationParameters, derived: DerivedSph) -> tuple[int, float]:
        '''
        Substep count and substep size for one frame.

        Parameters:
        -----------
        params : SimulationParameters
            Current parameters (fixedDt, minSubsteps, flow, sound speed)
        derived : DerivedSph
            Derived quantities (smoothing length)

        Returns:
        --------
        tuple[int, float] : (substeps, dt) with substeps * dt == fixedDt
        '''
        targetVel = self.targetVelocity(params.driveAccel, params.dragK)
        dtCfl = self.cflTimeStep(derived.smoothingLength, params.soundSpeed, targetVel)

        minSub = max(1, int(params.minSubsteps))
        neededSub = int(math.ceil(params.fixedDt / max(dtCfl, 1e-6)))
        substeps = max(minSub, neededSub)

        return substeps, params.fixedDt / substeps
