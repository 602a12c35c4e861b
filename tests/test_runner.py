import json
import os

from RiverSim.runner import RiverSimRunner, buildParser
from RiverSim.sph.protocols import SimulationParameters


def test_parser_defaults():
    args = buildParser().parse_args([])
    assert args.preset == 'small'
    assert args.frames == 300
    assert args.export_every == 5
    assert not args.no_export and not args.plot


def test_short_run_exports_frames_and_figures(straightMask, tmp_path, capsys):
    runner = RiverSimRunner()
    result = runner.run(
        SimulationParameters(particleCount=200),
        mask=straightMask,
        frames=4,
        exportEvery=2,
        doPlot=True,
        outputDir=str(tmp_path),
    )

    assert result['finalState'].frame == 4
    # Initial frame plus frames 2 and 4
    assert result['nFrames'] == 3
    with open(result['exportPath']) as f:
        assert json.load(f)['meta']['nFrames'] == 3

    assert len(result['plotPaths']) == 2
    assert all(os.path.exists(path) for path in result['plotPaths'])
    assert 'SIMULATION SUMMARY' in capsys.readouterr().out


def test_run_without_export(straightMask, tmp_path):
    result = RiverSimRunner().run(
        SimulationParameters(particleCount=100),
        mask=straightMask,
        frames=1,
        doExport=False,
        outputDir=str(tmp_path),
    )
    assert result['exportPath'] is None
    assert os.listdir(tmp_path) == []
