# -- SPH Smoothing Kernels (2D) -- #

'''
Smoothing kernels for the 2D river solver.

Three compactly supported kernels with support radius h are used,
each for the term it is best suited to:

    Poly6       W(r)      = 4 / (pi h^8) * (h^2 - r^2)^3
                density summation, boundary psi, XSPH averaging
    Spiky       grad W(r) = -30 / (pi h^5) * (h - r)^2 * r_hat
                pressure force (non-vanishing gradient near r = 0)
    Viscosity   lap W(r)  = 40 / (pi h^5) * (h - r)
                viscous velocity diffusion (positive Laplacian)

All three vanish for r >= h. The smoothing length is floored at
MIN_SMOOTHING_LENGTH before it appears in any divisor.

References:
-----------
Mueller et al. (2003) -- Particle-based fluid simulation for
    interactive applications
Monaghan (1992) -- Smoothed Particle Hydrodynamics
'''

from __future__ import annotations

import math
from typing import Protocol

import numpy as np

MIN_SMOOTHING_LENGTH: float = 1e-5


def _safeH(h: float) -> float:
    '''Smoothing length floored away from zero.'''
    return max(float(h), MIN_SMOOTHING_LENGTH)


######################################################################
# -- Kernel Protocol -- #
######################################################################

class SphKernel(Protocol):
    '''Protocol for scalar-valued smoothing kernels.'''

    def evaluate(self, r: float, h: float) -> float:
        '''Kernel value W(r, h).'''
        ...

    def evaluateBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''Kernel values for an array of distances.'''
        ...


######################################################################
# -- Poly6 Kernel -- #
######################################################################

class Poly6Kernel:
    '''
    2D poly6 kernel.

    W(r, h) = 4 / (pi h^8) * (h^2 - r^2)^3   for r < h

    Depends on r^2 only, so no square root is needed for density
    summation. Integrates to one over the disc of radius h.
    '''

    @staticmethod
    def normalization(h: float) -> float:
        '''Leading constant 4 / (pi h^8).'''
        h = _safeH(h)
        h2 = h * h
        h4 = h2 * h2
        return 4.0 / (math.pi * h4 * h4)

    def evaluate(self, r: float, h: float) -> float:
        '''
        Evaluate W(r, h).

        Parameters:
        -----------
        r : float
            Distance [m]
        h : float
            Support radius [m]

        Returns:
        --------
        float : Kernel value [1/m^2]
        '''
        h = _safeH(h)
        if r >= h:
            return 0.0
        t = h * h - r * r
        return self.normalization(h) * t * t * t

    def evaluateBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''
        Evaluate W(r, h) for an array of distances.

        Parameters:
        -----------
        distances : np.ndarray
            Distances [m], shape (N,)
        h : float
            Support radius [m]

        Returns:
        --------
        np.ndarray : Kernel values, shape (N,)
        '''
        h = _safeH(h)
        t = np.maximum(h * h - distances * distances, 0.0)
        return self.normalization(h) * t * t * t


######################################################################
# -- Spiky Kernel -- #
######################################################################

class SpikyKernel:
    '''
    2D spiky kernel, used through its gradient.

    W(r, h)      = 10 / (pi h^5) * (h - r)^3
    grad W(r, h) = -30 / (pi h^5) * (h - r)^2 * (r_vec / r)

    The gradient is set to zero at r = 0 where the direction is undefined.
    '''

    @staticmethod
    def normalization(h: float) -> float:
        '''Leading constant 10 / (pi h^5).'''
        h = _safeH(h)
        return 10.0 / (math.pi * h ** 5)

    def evaluate(self, r: float, h: float) -> float:
        '''Kernel value W(r, h).'''
        h = _safeH(h)
        if r >= h:
            return 0.0
        t = h - r
        return self.normalization(h) * t * t * t

    def evaluateBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''Kernel values for an array of distances.'''
        h = _safeH(h)
        t = np.maximum(h - distances, 0.0)
        return self.normalization(h) * t * t * t

    def gradientMagnitudeBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''
        dW/dr for an array of distances (negative inside the support).

        Parameters:
        -----------
        distances : np.ndarray
            Distances [m], shape (N,)
        h : float
            Support radius [m]

        Returns:
        --------
        np.ndarray : dW/dr values, shape (N,)
        '''
        h = _safeH(h)
        t = np.maximum(h - distances, 0.0)
        return -3.0 * self.normalization(h) * t * t

    def gradientBatch(
        self, drVecs: np.ndarray, distances: np.ndarray, h: float
    ) -> np.ndarray:
        '''
        Gradient vectors for an array of particle pairs.

        grad_W_k = (dW/dr)_k * (dr_k / |dr_k|)

        Parameters:
        -----------
        drVecs : np.ndarray
            Displacements r_i - r_j, shape (N, 2)
        distances : np.ndarray
            |dr|, shape (N,)
        h : float
            Support radius [m]

        Returns:
        --------
        np.ndarray : Gradient vectors, shape (N, 2)
        '''
        dwdr = self.gradientMagnitudeBatch(distances, h)

        # Avoid division by zero
        safeDistances = np.where(distances > 1e-12, distances, 1.0)
        gradients = (dwdr / safeDistances)[:, np.newaxis] * drVecs
        gradients[distances <= 1e-12] = 0.0

        return gradients


######################################################################
# -- Viscosity Kernel -- #
######################################################################

class ViscosityKernel:
    '''
    2D viscosity kernel, used through its Laplacian.

    lap W(r, h) = 40 / (pi h^5) * (h - r)   for r < h

    Strictly positive inside the support, so the viscous term always
    pulls neighboring velocities together.
    '''

    @staticmethod
    def laplacianNormalization(h: float) -> float:
        '''Leading constant 40 / (pi h^5).'''
        h = _safeH(h)
        return 40.0 / (math.pi * h ** 5)

    def laplacian(self, r: float, h: float) -> float:
        '''Laplacian of the kernel at distance r.'''
        h = _safeH(h)
        if r >= h:
            return 0.0
        return self.laplacianNormalization(h) * (h - r)

    def laplacianBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''
        Laplacian for an array of distances.

        Parameters:
        -----------
        distances : np.ndarray
            Distances [m], shape (N,)
        h : float
            Support radius [m]

        Returns:
        --------
        np.ndarray : Laplacian values, shape (N,)
        '''
        h = _safeH(h)
        return self.laplacianNormalization(h) * np.maximum(h - distances, 0.0)
