# -- Export Package -- #

'''
Data export utilities for river simulation results.
'''

from RiverSim.export.frameExporter import FrameExporter
