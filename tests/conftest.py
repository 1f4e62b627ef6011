import json
import textwrap
from dataclasses import dataclass

import pytest

from layoutest_lib.bridge import PipelineLocation
from layoutest_lib.pipeline import ModuleSpec, PipelineConfig
from layoutest_lib.runner import RunOptions


def make_fixture(labels, left_top=("0", "0"), right_bottom=("1", "1")):
    """Builds fixture JSON text from {(x, y): label} with decimal-text coordinates."""
    area = {}
    for (x, y), label in labels.items():
        area.setdefault(str(x), {})[str(y)] = label
    return json.dumps(
        {
            "area": area,
            "area_bounds": {
                "left_top": {"x": left_top[0], "y": left_top[1]},
                "right_bottom": {"x": right_bottom[0], "y": right_bottom[1]},
            },
        }
    )


@pytest.fixture
def square_fixture():
    """A 2x2 area, all buildable, bounds covering the whole area."""
    return make_fixture({(x, y): "buildable" for x in (0, 1) for y in (0, 1)})


@dataclass
class StubPipeline:
    location: PipelineLocation

    def write(self, source: str, module: str = "planner"):
        path = f"{self.location.pipeline_dir}/{module}.lua"
        with open(path, "w", encoding="utf-8") as f:
            f.write(textwrap.dedent(source))
        return path

    def options(self, **kwargs) -> RunOptions:
        config = PipelineConfig(modules=[ModuleSpec("planner")])
        return RunOptions(pipeline=config, **kwargs)


@pytest.fixture
def stub_pipeline(tmp_path):
    """An empty pipeline checkout with its data directory, ready for planner.lua."""
    pipeline_dir = tmp_path / "mod"
    data_dir = tmp_path / "factorio-data"
    pipeline_dir.mkdir()
    (data_dir / "core" / "lualib").mkdir(parents=True)
    (data_dir / "base").mkdir()
    (tmp_path / "LICENSE").write_text("test")
    yield StubPipeline(PipelineLocation(str(pipeline_dir), str(data_dir)))
