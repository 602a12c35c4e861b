import json
import os

import numpy as np

from RiverSim.export.frameExporter import FrameExporter
from RiverSim.sph.protocols import SimulationParameters, SimulationState


def _state(frame):
    return SimulationState(
        time=frame / 60.0,
        frame=frame,
        substeps=4,
        dt=1.0 / 240.0,
        kineticEnergy=12.5,
        maxVelocity=2.0,
        meanVelocity=1.0,
        meanDensity=1001.0,
        maxDensityError=0.03,
    )


def test_export_writes_frames_and_diagnostics(tmp_path):
    exporter = FrameExporter()
    positions = np.array([[0.5, 1.0], [2.0, 3.0], [4.0, 5.0]])
    velocities = np.array([[3.0, 4.0], [0.0, 0.0], [1.0, 0.0]])
    densities = np.array([1000.0, 1010.0, 990.0])

    for frame in range(3):
        exporter.addFrame(_state(frame), positions, velocities, densities)

    params = SimulationParameters(particleCount=3)
    path = exporter.export(params, np.array([20.0, 10.0]), outputDir=str(tmp_path), scenarioName='test')

    assert os.path.basename(path).startswith('riverSim_test_')
    with open(path) as f:
        data = json.load(f)

    assert data['meta']['type'] == 'riverSim'
    assert data['meta']['nFrames'] == 3
    assert data['meta']['nParticles'] == 3
    assert data['meta']['domainMax'] == [20.0, 10.0]
    assert data['config'] == params.toDict()
    assert data['frames'][0]['speeds'] == [5.0, 0.0, 1.0]
    assert data['frames'][2]['frame'] == 2
    assert len(data['diagnostics']['times']) == 3
    assert exporter.nFrames == 3
    assert [s.frame for s in exporter.states] == [0, 1, 2]


def test_export_without_frames(tmp_path):
    path = FrameExporter().export(SimulationParameters(), np.array([20.0, 10.0]), outputDir=str(tmp_path))
    with open(path) as f:
        data = json.load(f)
    assert data['meta']['nFrames'] == 0
    assert data['frames'] == []
