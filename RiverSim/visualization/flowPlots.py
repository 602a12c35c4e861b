# -- River Flow Visualizations -- #

'''
Plotly figures for river simulation results.

plotFlowSnapshot draws the obstacle signed distance field with the
fluid particles on top, colored by speed. plotDiagnostics plots the
per-frame mean density and speed history.
'''

from __future__ import annotations

import os

import numpy as np
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from RiverSim.obstacle.sdfBuilder import SignedDistanceField
from RiverSim.sph.protocols import SimulationState
from RiverSim.visualization import theme


def plotFlowSnapshot(
    sdf: SignedDistanceField,
    positions: np.ndarray,
    velocities: np.ndarray,
    title: str = 'River Flow',
    maxMarkers: int = 20_000,
) -> go.Figure:
    '''
    SDF heatmap with fluid particles colored by speed.

    Parameters:
    -----------
    sdf : SignedDistanceField
        Obstacle field
    positions : np.ndarray
        Particle positions, shape (N, 2)
    velocities : np.ndarray
        Particle velocities, shape (N, 2)
    title : str
        Figure title
    maxMarkers : int
        Particles beyond this count are subsampled

    Returns:
    --------
    go.Figure : Plotly figure
    '''
    ps = sdf.pixelSize
    xCenters = (np.arange(sdf.width) + 0.5) * ps
    yCenters = (np.arange(sdf.height) + 0.5) * ps
    limit = float(np.max(np.abs(sdf.values))) or 1.0

    speeds = np.linalg.norm(velocities, axis=1)
    if len(positions) > maxMarkers:
        keep = np.linspace(0, len(positions) - 1, maxMarkers).astype(np.int64)
        positions = positions[keep]
        speeds = speeds[keep]

    fig = go.Figure()

    fig.add_trace(go.Heatmap(
        x=xCenters, y=yCenters, z=sdf.values,
        colorscale=theme.SDF_COLORSCALE, zmin=-limit, zmax=limit,
        showscale=False, name='SDF',
    ))
    fig.add_trace(go.Contour(
        x=xCenters, y=yCenters, z=sdf.values,
        contours=dict(start=0.0, end=0.0, size=1.0, coloring='none'),
        line=dict(color=theme.WHITE, width=1),
        showscale=False, name='Wall',
    ))
    fig.add_trace(go.Scattergl(
        x=positions[:, 0], y=positions[:, 1], mode='markers',
        marker=dict(
            size=3, color=speeds, colorscale=theme.SPEED_COLORSCALE,
            colorbar=dict(title='Speed (m/s)'),
        ),
        name='Particles',
    ))

    fig.update_layout(
        title=title,
        xaxis_title='x (m)',
        yaxis_title='y (m)',
        template=theme.TEMPLATE,
        height=500,
    )
    fig.update_xaxes(range=[0.0, sdf.Lx])
    fig.update_yaxes(range=[0.0, sdf.Ly], scaleanchor='x', scaleratio=1)

    return fig


def plotDiagnostics(states: list[SimulationState], restDensity: float | None = None) -> go.Figure:
    '''
    Mean density and mean / max speed against frame number.

    Parameters:
    -----------
    states : list[SimulationState]
        Per-frame diagnostics
    restDensity : float | None
        Drawn as a reference line when given

    Returns:
    --------
    go.Figure : Plotly figure
    '''
    frames = [s.frame for s in states]

    fig = make_subplots(
        rows=2, cols=1, shared_xaxes=True,
        subplot_titles=('Mean Density', 'Particle Speed'),
    )

    fig.add_trace(go.Scatter(
        x=frames, y=[s.meanDensity for s in states],
        mode='lines', name='Mean density', line=dict(color=theme.BLUE),
    ), row=1, col=1)
    if restDensity is not None:
        fig.add_hline(
            y=restDensity, line=dict(color=theme.REFERENCE_LINE, dash='dash'),
            row=1, col=1,
        )

    fig.add_trace(go.Scatter(
        x=frames, y=[s.meanVelocity for s in states],
        mode='lines', name='Mean speed', line=dict(color=theme.GREEN),
    ), row=2, col=1)
    fig.add_trace(go.Scatter(
        x=frames, y=[s.maxVelocity for s in states],
        mode='lines', name='Max speed', line=dict(color=theme.ORANGE, dash='dot'),
    ), row=2, col=1)

    fig.update_layout(template=theme.TEMPLATE, height=600, title='Run Diagnostics')
    fig.update_xaxes(title_text='Frame', row=2, col=1)
    fig.update_yaxes(title_text='rho (kg/m^2)', row=1, col=1)
    fig.update_yaxes(title_text='m/s', row=2, col=1)

    return fig


def saveFigure(fig: go.Figure, path: str) -> str:
    '''Write a figure as standalone HTML and return the path.'''
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    fig.write_html(path)
    return path
