# -- SPH Time Integration -- #

'''
Semi-implicit (symplectic) Euler integration for the river solver.

Update sequence per substep:
    v(t+dt)  = clamp( v(t) + a(t) * dt )          (kick + speed clamp)
    v_adv    = clamp( v(t+dt) + eps * dv_xsph )    (XSPH advection velocity)
    x(t+dt)  = wrap_x( x(t) + v_adv * dt )         (drift)

The speed clamp is applied before the drift so the per-substep
displacement is bounded by maxSpeed * dt. The XSPH correction only
changes the velocity used to move particles, not the stored velocity.

References:
-----------
Monaghan (1989) -- On the problem of penetration in particle methods
Hairer et al. (2003) -- Geometric Numerical Integration
'''

from __future__ import annotations

from typing import Protocol

import numpy as np

from RiverSim.sph.neighborSearch import wrapX
from RiverSim.sph.particles import ParticleState


def clampSpeed(velocities: np.ndarray, maxSpeed: float) -> np.ndarray:
    '''
    Scale velocities whose magnitude exceeds maxSpeed back to maxSpeed.

    Parameters:
    -----------
    velocities : np.ndarray
        Velocities, shape (N, 2)
    maxSpeed : float
        Speed limit [m/s]

    Returns:
    --------
    np.ndarray : Clamped velocities (new array)
    '''
    speeds = np.linalg.norm(velocities, axis=1)
    limit = max(float(maxSpeed), 0.0)
    scale = np.where(speeds > limit, limit / np.maximum(speeds, 1e-12), 1.0)
    return velocities * scale[:, np.newaxis]


######################################################################
# -- Time Integrator Protocol -- #
######################################################################

class TimeIntegrator(Protocol):
    '''Protocol for time integration schemes.'''

    def integrate(
        self,
        particles: ParticleState,
        accelerations: np.ndarray,
        xsphCorrection: np.ndarray,
        dt: float,
    ) -> None:
        '''Advance fluid particles by one substep.'''
        ...


######################################################################
# -- Symplectic Euler Integrator -- #
######################################################################

class SymplecticEuler:
    '''
    Kick-drift Euler with speed clamp, XSPH advection and periodic wrap.

    Parameters:
    -----------
    Lx : float
        Period along x [m]
    maxSpeed : float
        Speed clamp [m/s]
    xsph : float
        XSPH factor epsilon
    '''

    def __init__(self, Lx: float, maxSpeed: float, xsph: float) -> None:
        self._Lx = Lx
        self._maxSpeed = maxSpeed
        self._xsph = xsph

    def integrate(
        self,
        particles: ParticleState,
        accelerations: np.ndarray,
        xsphCorrection: np.ndarray,
        dt: float,
    ) -> None:
        '''
        Advance fluid particles by one substep in place.

        Parameters:
        -----------
        particles : ParticleState
            Particle arrays to advance
        accelerations : np.ndarray
            Total accelerations, shape (N, 2)
        xsphCorrection : np.ndarray
            sum_j (m / rho_ij) (v_j - v_i) W_ij, shape (N, 2)
        dt : float
            Substep size [s]
        '''
        # Kick
        velocities = clampSpeed(particles.velocities + accelerations * dt, self._maxSpeed)

        # Drift with the XSPH-smoothed velocity
        advection = clampSpeed(velocities + self._xsph * xsphCorrection, self._maxSpeed)
        positions = particles.positions + advection * dt
        positions[:, 0] = wrapX(positions[:, 0], self._Lx)

        particles.velocities[:] = velocities
        particles.positions[:] = positions
