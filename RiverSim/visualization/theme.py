# -- Visualization Theme -- #

'''
Dark-mode theme for the RiverSim Plotly figures.
'''

# Plotly template
TEMPLATE = 'plotly_dark'

# Primary colors (visible on dark backgrounds)
BLUE = '#42A5F5'
RED = '#EF5350'
GREEN = '#66BB6A'
ORANGE = '#FFA726'
CYAN = '#26C6DA'

# Neutrals
WHITE = '#E0E0E0'
REFERENCE_LINE = '#888888'

# Particle speed colorscale
SPEED_COLORSCALE = 'Turbo'

# Signed distance colorscale: fluid side dark blue, solid side brown
SDF_COLORSCALE = [
    [0.0, '#0D47A1'],
    [0.5, '#263238'],
    [1.0, '#8D6E63'],
]
