# -- Physical and Numerical Constants for River SPH -- #

'''
Default physical and numerical constants for the periodic river
channel simulation. All values in SI-like units (2D: density is
mass per unit area).

References:
-----------
Monaghan (1994) -- Simulating free surface flows with SPH
Mueller et al. (2003) -- Particle-based fluid simulation for
    interactive applications
Akinci et al. (2012) -- Versatile rigid-fluid coupling for
    incompressible SPH
'''

#--------------------------------------------------------------------#
# -- Domain -- #
#--------------------------------------------------------------------#

# Channel length along the (periodic) flow direction [m]
domainWidth: float = 20.0

# Default number of fluid particles
particleCount: int = 1000

#--------------------------------------------------------------------#
# -- Fluid Properties -- #
#--------------------------------------------------------------------#

# 2D rest density (mass per area) [kg/m^2]
restDensity: float = 1000.0

# Viscosity coefficient for the Laplacian viscous term
viscosity: float = 0.35

#--------------------------------------------------------------------#
# -- SPH Numerical Parameters -- #
#--------------------------------------------------------------------#

# h = smoothingFactor * particleSpacing
smoothingFactor: float = 2.0

# Tait equation of state exponent
gamma: float = 7.0

# Artificial speed of sound [m/s] (controls compressibility)
soundSpeed: float = 20.0

# XSPH velocity smoothing factor (0 - 0.1)
xsphEpsilon: float = 0.08

# Safety clamp for extreme bursts [m/s]
maxSpeed: float = 12.0

# CFL number used by the substep scheduler
cflNumber: float = 0.25

#--------------------------------------------------------------------#
# -- Flow Drive -- #
#--------------------------------------------------------------------#

# Constant acceleration along +x (analogue of g * S) [m/s^2]
driveAccel: float = 6.0

# Linear drag coefficient: a -= k * v [1/s]
dragK: float = 0.8

#--------------------------------------------------------------------#
# -- SDF Collision -- #
#--------------------------------------------------------------------#

# Particle collision radius [m]
particleRadius: float = 0.02

# Tangential friction applied on SDF contact (0 - 1)
friction: float = 0.2

#--------------------------------------------------------------------#
# -- Time Stepping -- #
#--------------------------------------------------------------------#

# Nominal per-frame time step [s]
fixedDt: float = 1.0 / 60.0

# Minimum number of substeps per frame
minSubsteps: int = 4

#--------------------------------------------------------------------#
# -- Numerical Floors -- #
#--------------------------------------------------------------------#

# Lower bound on the smoothing length [m]
minSmoothingLength: float = 1e-4

# Lower bound on the fluid area used to derive spacing [m^2]
minFluidArea: float = 1e-6

# Density floor used before dividing by rho [kg/m^2]
densityFloor: float = 1e-6

# Kernel-sum threshold below which psi falls back to rho0 * s^2
psiSumEpsilon: float = 1e-8

#--------------------------------------------------------------------#
# -- Mask Handling -- #
#--------------------------------------------------------------------#

# Luma threshold separating fluid (bright) from solid (dark) pixels
maskThreshold: float = 0.5

# Tiling mismatch fraction above which a warning is printed
tileMismatchWarning: float = 0.02

# Default procedural mask size [pixels]
defaultMaskWidth: int = 512
defaultMaskHeight: int = 256

# Seed of the deterministic spawn RNG
spawnSeed: int = 0x12345678

# Fraction of the spacing used to jitter spawned particles
spawnJitter: float = 0.35
