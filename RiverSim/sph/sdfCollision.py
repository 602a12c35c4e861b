# -- SDF Collision Clamp -- #

'''
Last-resort collision pass against the obstacle signed distance field.

Primary wall repulsion comes from the boundary particles in the
pressure force. This pass only catches particles that got through:
any particle whose sampled distance is on or past the solid side
(sdf >= -particleRadius, positive = solid) is

    1. pushed back along -n by (sdf + particleRadius), where
       n = grad(sdf) / |grad(sdf)| points into the solid
    2. stripped of its velocity component along n (into the solid),
       with the tangential remainder scaled by (1 - friction)

Particles with a degenerate gradient are left where they are.
Finally x is wrapped into [0, Lx) and y clamped into [0, Ly].
'''

from __future__ import annotations

import numpy as np

from RiverSim.obstacle.sdfBuilder import SignedDistanceField
from RiverSim.sph.neighborSearch import wrapX

# Gradient magnitude below which no normal is defined
MIN_GRADIENT: float = 1e-8


class SdfCollider:
    '''
    Projects penetrating particles out of the solid.

    Parameters:
    -----------
    sdf : SignedDistanceField
        Obstacle field (positive = solid)
    particleRadius : float
        Collision radius [m]
    friction : float
        Tangential velocity loss on contact (0 - 1)
    '''

    def __init__(
        self,
        sdf: SignedDistanceField,
        particleRadius: float,
        friction: float,
    ) -> None:
        self._sdf = sdf
        self._particleRadius = particleRadius
        self._friction = float(np.clip(friction, 0.0, 1.0))

    def resolve(self, positions: np.ndarray, velocities: np.ndarray) -> int:
        '''
        Clamp positions and velocities in place.

        Parameters:
        -----------
        positions : np.ndarray
            Particle positions, shape (N, 2), modified in place
        velocities : np.ndarray
            Particle velocities, shape (N, 2), modified in place

        Returns:
        --------
        int : Number of particles that were projected
        '''
        sdf = self._sdf
        r = self._particleRadius

        positions[:, 0] = wrapX(positions[:, 0], sdf.Lx)

        d = sdf.sample(positions)
        contact = np.nonzero(d >= -r)[0]
        nProjected = 0

        if len(contact) > 0:
            grad = sdf.gradient(positions[contact])
            gradNorm = np.linalg.norm(grad, axis=1)
            defined = gradNorm > MIN_GRADIENT
            idx = contact[defined]
            nProjected = len(idx)

            if nProjected > 0:
                normal = grad[defined] / gradNorm[defined][:, np.newaxis]
                depth = d[idx] + r
                positions[idx] -= normal * depth[:, np.newaxis]

                v = velocities[idx]
                vn = np.einsum('ij,ij->i', v, normal)
                tangential = v - vn[:, np.newaxis] * normal
                # Keep motion away from the solid, drop motion into it
                outward = np.minimum(vn, 0.0)[:, np.newaxis] * normal
                velocities[idx] = tangential * (1.0 - self._friction) + outward

        positions[:, 0] = wrapX(positions[:, 0], sdf.Lx)
        np.clip(positions[:, 1], 0.0, sdf.Ly, out=positions[:, 1])

        return nProjected
