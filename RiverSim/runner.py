# -- River Simulation Runner -- #

'''
Command-line entry point for running periodic river SPH simulations.

Builds a session from a preset or JSON configuration, runs a fixed
number of frames with a progress table, and optionally exports frame
data and Plotly figures.

Usage:
    python -m RiverSim                                   # Small run, default channel
    python -m RiverSim --preset standard                 # 10k particles
    python -m RiverSim --config configs/river_default.json
    python -m RiverSim --mask assets/river.png --frames 600
    python -m RiverSim --no-export --plot
'''

from __future__ import annotations

import argparse
import os
import time as timeModule

from RiverSim.export.frameExporter import FrameExporter
from RiverSim.obstacle.mask import OccupancyMask
from RiverSim.simulation import SimulationSession
from RiverSim.sph.protocols import SimulationParameters


#--------------------------------------------------------------------#
# -- CLI Argument Parser -- #
#--------------------------------------------------------------------#

def buildParser() -> argparse.ArgumentParser:
    '''Build the CLI argument parser.'''
    parser = argparse.ArgumentParser(
        description='RiverSim -- periodic river channel SPH simulation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        '--config', type=str, default=None,
        help='Path to JSON configuration file (overrides --preset)',
    )
    parser.add_argument(
        '--mask', type=str, default=None,
        help='Obstacle mask image (bright = fluid); default is a generated channel',
    )
    parser.add_argument(
        '--preset', type=str, default='small',
        choices=['small', 'standard'],
        help='Parameter preset (default: small)',
    )
    parser.add_argument(
        '--frames', type=int, default=300,
        help='Number of frames to simulate (default: 300)',
    )
    parser.add_argument(
        '--export-every', type=int, default=5,
        help='Record every n-th frame for export (default: 5)',
    )
    parser.add_argument(
        '--no-export', action='store_true',
        help='Skip frame data export',
    )
    parser.add_argument(
        '--plot', action='store_true',
        help='Write HTML snapshot and diagnostics figures',
    )
    parser.add_argument(
        '--output-dir', type=str, default='output',
        help='Output directory for exported frames and figures (default: output)',
    )

    return parser


#--------------------------------------------------------------------#
# -- Runner Class -- #
#--------------------------------------------------------------------#

class RiverSimRunner:
    '''
    Runs a river simulation and stores results.

    Handles session setup, the frame loop with progress reporting,
    and optional export of frames and figures.
    '''

    def __init__(self) -> None:
        self._exporter: FrameExporter = FrameExporter()

    @property
    def exporter(self) -> FrameExporter:
        '''Frame exporter holding the recorded frames.'''
        return self._exporter

    def run(
        self,
        params: SimulationParameters,
        mask: OccupancyMask | None = None,
        maskPath: str | None = None,
        frames: int = 300,
        exportEvery: int = 5,
        doExport: bool = True,
        doPlot: bool = False,
        outputDir: str = 'output',
    ) -> dict:
        '''
        Run a river simulation.

        Parameters:
        -----------
        params : SimulationParameters
            Simulation parameters
        mask : OccupancyMask | None
            Obstacle mask (takes precedence over maskPath)
        maskPath : str | None
            Obstacle mask image path
        frames : int
            Number of frames to simulate
        exportEvery : int
            Record every n-th frame
        doExport : bool
            Whether to export frame data
        doPlot : bool
            Whether to write HTML figures
        outputDir : str
            Output directory

        Returns:
        --------
        dict : Simulation results summary
        '''
        print()
        print('=' * 62)
        print('  RIVERSIM -- PERIODIC CHANNEL SPH SIMULATION')
        print('=' * 62)
        print()

        #--------------------------------------------------------------------#
        # Setup
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  SETUP')
        print('-' * 62)

        session = SimulationSession(params)
        if not session.reset(mask=mask, maskPath=maskPath):
            print('  Simulation is not ready; aborting.')
            print()
            return {
                'finalState': None, 'wallClockSeconds': 0.0,
                'nFrames': 0, 'exportPath': None, 'plotPaths': [],
            }

        derived = session.derived
        domainMax = session.domainMax
        print(f'  Mask:              {session.mask.width:5d} x {session.mask.height:<5d} px')
        print(f'  Fluid Fraction:    {session.mask.fluidFraction:8.3f}')
        print(f'  Tile Mismatch:     {session.tileMismatch * 100:8.2f} %')
        print(f'  Domain:            {domainMax[0]:6.2f} x {domainMax[1]:<6.2f} m')
        print(f'  Fluid Particles:   {session.particleCount:8d}')
        print(f'  Boundary Particles:{session.boundary.count:8d}')
        print(f'  Particle Spacing:  {derived.particleSpacing:8.4f} m')
        print(f'  Smoothing Length:  {derived.smoothingLength:8.4f} m')
        print(f'  Grid:              {derived.gridSizeX:5d} x {derived.gridSizeY:<5d} cells')
        print(f'  Substeps / Frame:  {session.substeps:8d}')
        print(f'  Substep dt:        {session.dt:10.2e} s')
        print(f'  EOS constant B:    {session.solverConstants.stiffness:12.1f}')
        print()

        self._exporter = FrameExporter()
        self._exporter.addFrame(session.currentState, session.positions, session.velocities, session.densities)

        #--------------------------------------------------------------------#
        # Simulation Loop
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  RUNNING SIMULATION')
        print('-' * 62)
        print()
        print(f'  {"Time":>8}  {"Frame":>8}  {"MeanVel":>8}  {"MaxVel":>8}  {"DensErr":>8}  {"SimMs":>8}')
        print(f'  {"(s)":>8}  {"":>8}  {"(m/s)":>8}  {"(m/s)":>8}  {"(%)":>8}  {"(ms)":>8}')
        print('  ' + '-' * 58)

        wallClockStart = timeModule.time()
        printInterval = max(1, frames // 20)
        exportEvery = max(1, exportEvery)
        state = session.currentState

        for frame in range(1, frames + 1):
            state = session.step()

            if frame % exportEvery == 0:
                self._exporter.addFrame(state, session.positions, session.velocities, session.densities)

            if frame % printInterval == 0 or frame == frames:
                print(
                    f'  {state.time:8.3f}  {state.frame:8d}  {state.meanVelocity:8.4f}  '
                    f'{state.maxVelocity:8.4f}  {state.maxDensityError * 100:8.3f}  '
                    f'{session.stats.simMs:8.1f}'
                )

        wallClockSeconds = timeModule.time() - wallClockStart
        finalState = state

        print()
        print('  Simulation complete.')
        print(f'  Frames:            {frames:8d}')
        print(f'  Wall-clock time:   {wallClockSeconds:8.1f} s')
        print(f'  Frames recorded:   {self._exporter.nFrames:8d}')
        print()

        #--------------------------------------------------------------------#
        # Export
        #--------------------------------------------------------------------#
        exportPath = None
        if doExport:
            print('-' * 62)
            print('  EXPORTING FRAME DATA')
            print('-' * 62)

            exportPath = self._exporter.export(
                params=params,
                domainMax=domainMax,
                outputDir=outputDir,
                scenarioName='river',
            )
            print(f'  Exported to: {exportPath}')
            print()

        plotPaths: list[str] = []
        if doPlot:
            print('-' * 62)
            print('  WRITING FIGURES')
            print('-' * 62)
            plotPaths = self._writeFigures(session, outputDir)
            for path in plotPaths:
                print(f'  Wrote: {path}')
            print()

        #--------------------------------------------------------------------#
        # Summary
        #--------------------------------------------------------------------#
        print('=' * 62)
        print('  SIMULATION SUMMARY')
        print('=' * 62)
        print(f'  Simulated Time:    {finalState.time:10.4f} s')
        print(f'  Final KE:          {finalState.kineticEnergy:10.4f} J')
        print(f'  Mean Velocity:     {finalState.meanVelocity:10.4f} m/s')
        print(f'  Max Velocity:      {finalState.maxVelocity:10.4f} m/s')
        print(f'  Mean Density:      {finalState.meanDensity:10.2f} kg/m^2')
        print(f'  Max Density Error: {finalState.maxDensityError * 100:8.3f} %')
        print('=' * 62)
        print()

        return {
            'finalState': finalState,
            'wallClockSeconds': wallClockSeconds,
            'nFrames': self._exporter.nFrames,
            'exportPath': exportPath,
            'plotPaths': plotPaths,
        }

    def _writeFigures(self, session: SimulationSession, outputDir: str) -> list[str]:
        '''Write the flow snapshot and diagnostics figures as HTML.'''
        from RiverSim.visualization.flowPlots import plotDiagnostics, plotFlowSnapshot, saveFigure

        snapshot = plotFlowSnapshot(
            session.sdf, session.positions, session.velocities,
            title=f'River Flow (t = {session.time:.2f} s)',
        )
        diagnostics = plotDiagnostics(self._exporter.states, restDensity=session.derived.restDensity)

        return [
            saveFigure(snapshot, os.path.join(outputDir, 'river_snapshot.html')),
            saveFigure(diagnostics, os.path.join(outputDir, 'river_diagnostics.html')),
        ]


#--------------------------------------------------------------------#
# -- CLI Entry Point -- #
#--------------------------------------------------------------------#

def main() -> None:
    '''CLI entry point.'''
    parser = buildParser()
    args = parser.parse_args()

    if args.config:
        params = SimulationParameters.fromJson(args.config)
    else:
        presets = {
            'small': SimulationParameters.small,
            'standard': SimulationParameters.standard,
        }
        params = presets[args.preset]()

    runner = RiverSimRunner()
    runner.run(
        params,
        maskPath=args.mask,
        frames=args.frames,
        exportEvery=args.export_every,
        doExport=not args.no_export,
        doPlot=args.plot,
        outputDir=args.output_dir,
    )


if __name__ == '__main__':
    main()
