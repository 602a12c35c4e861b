# -- Visualization Package -- #

'''
Plotly figures for river simulation results.
'''

from RiverSim.visualization.flowPlots import plotDiagnostics, plotFlowSnapshot, saveFigure
