# -- RiverSim Module Entry Point -- #

'''Allows running the simulation with python -m RiverSim.'''

from RiverSim.runner import main

main()
