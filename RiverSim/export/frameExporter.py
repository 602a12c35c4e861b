# -- River Frame Exporter -- #

'''
Exports river simulation frames as compact JSON.

Collects particle snapshots during a run and writes them, together
with the parameters and a per-frame diagnostics history, to a single
JSON file for offline viewers and plotting.
'''

from __future__ import annotations

import json
import os
from datetime import datetime

import numpy as np

from RiverSim.sph.protocols import SimulationParameters, SimulationState


class FrameExporter:
    '''
    Collects and exports simulation frame data as JSON.

    Usage:
        exporter = FrameExporter()
        exporter.addFrame(state, session.positions, session.velocities, session.densities)
        exporter.export(params, session.domainMax, outputDir='output')

    Output JSON format:
    {
        "meta": { "type": "riverSim", "nFrames": ..., "created": "...", ... },
        "config": { "domain": {...}, "sph": {...}, ... },
        "frames": [
            {
                "time": 0.0,
                "frame": 0,
                "positions": [[x0, y0], ...],
                "speeds": [v0, ...],
                "densities": [rho0, ...]
            },
            ...
        ],
        "diagnostics": {
            "times": [...],
            "kinetic": [...],
            "meanVelocity": [...],
            "maxVelocity": [...],
            "meanDensity": [...],
            "maxDensityError": [...]
        }
    }
    '''

    def __init__(self) -> None:
        self._frames: list[dict] = []
        self._states: list[SimulationState] = []
        self._diagnostics: dict[str, list[float]] = {
            'times': [],
            'kinetic': [],
            'meanVelocity': [],
            'maxVelocity': [],
            'meanDensity': [],
            'maxDensityError': [],
        }

    @property
    def nFrames(self) -> int:
        '''Number of collected frames.'''
        return len(self._frames)

    @property
    def states(self) -> list[SimulationState]:
        '''Diagnostics of every collected frame.'''
        return list(self._states)

    def addFrame(
        self,
        state: SimulationState,
        positions: np.ndarray,
        velocities: np.ndarray,
        densities: np.ndarray,
    ) -> None:
        '''
        Record a simulation frame.

        Parameters:
        -----------
        state : SimulationState
            Diagnostics of the frame
        positions : np.ndarray
            Particle positions, shape (N, 2)
        velocities : np.ndarray
            Particle velocities, shape (N, 2)
        densities : np.ndarray
            Particle densities, shape (N,)
        '''
        speeds = np.linalg.norm(velocities, axis=1)

        self._frames.append({
            'time': round(state.time, 6),
            'frame': state.frame,
            'positions': np.round(positions, 5).tolist(),
            'speeds': np.round(speeds, 5).tolist(),
            'densities': np.round(densities, 2).tolist(),
        })
        self._states.append(state)

        self._diagnostics['times'].append(round(state.time, 6))
        self._diagnostics['kinetic'].append(round(state.kineticEnergy, 6))
        self._diagnostics['meanVelocity'].append(round(state.meanVelocity, 6))
        self._diagnostics['maxVelocity'].append(round(state.maxVelocity, 6))
        self._diagnostics['meanDensity'].append(round(state.meanDensity, 4))
        self._diagnostics['maxDensityError'].append(round(state.maxDensityError, 6))

    def export(
        self,
        params: SimulationParameters,
        domainMax: np.ndarray,
        outputDir: str = 'output',
        scenarioName: str = 'river',
    ) -> str:
        '''
        Write all collected frames to a JSON file.

        Parameters:
        -----------
        params : SimulationParameters
            Parameters of the run
        domainMax : np.ndarray
            Upper domain corner (Lx, Ly) [m]
        outputDir : str
            Output directory path
        scenarioName : str
            Scenario name for the filename

        Returns:
        --------
        str : Path to the exported JSON file
        '''
        os.makedirs(outputDir, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        filename = f'riverSim_{scenarioName}_{timestamp}.json'
        filepath = os.path.join(outputDir, filename)

        output = {
            'meta': {
                'type': 'riverSim',
                'nFrames': len(self._frames),
                'nParticles': len(self._frames[0]['positions']) if self._frames else 0,
                'domainMin': [0.0, 0.0],
                'domainMax': np.asarray(domainMax, dtype=float).tolist(),
                'created': datetime.now().isoformat(),
            },
            'config': params.toDict(),
            'frames': self._frames,
            'diagnostics': self._diagnostics,
        }

        with open(filepath, 'w') as f:
            json.dump(output, f, indent=None, separators=(',', ':'))

        return filepath
