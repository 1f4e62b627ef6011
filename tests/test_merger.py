import pytest

from layoutest_lib.constants import DIRECTION_UNSET
from layoutest_lib.diagnostics import RunLog
from layoutest_lib.errors import ConflictError, MissingCellError
from layoutest_lib.fixture import parse_fixture
from layoutest_lib.merger import merge_construction_plan
from layoutest_lib.pipeline import PipelineConfig

from conftest import make_fixture


@pytest.fixture
def fixture():
    labels = {(x, y): "can-build" for x in range(4) for y in range(4)}
    labels[(2, 2)] = "oil-well"
    return parse_fixture(
        make_fixture(labels, left_top=("0", "0"), right_bottom=("3", "3"))
    )


def _merge(fixture, plan, out_of_bounds=None):
    run_log = RunLog()
    total = merge_construction_plan(
        fixture.grid, plan, fixture.bounds, PipelineConfig(), run_log, out_of_bounds
    )
    return total, run_log


def test_markers_follow_the_entity_table(fixture):
    plan = {
        0: {0: {"name": "pipe", "direction": 4}, 1: {"name": "pipe_joint", "direction": 0}},
        1: {0: {"name": "output", "direction": 8}, 1: {"name": "pipe_tunnel", "direction": 12}},
        2: {2: {"name": "extractor", "direction": 0}, 0: {"name": "beacon", "direction": 0}},
        3: {
            0: {"name": "power_pole", "direction": 0, "placement_order": 7},
            1: {"name": "heat-pipe", "direction": 0, "placement_order": 2.0},
        },
    }
    total, run_log = _merge(fixture, plan)
    grid = fixture.grid

    assert total == 8
    assert "Planned entities: 8" in run_log
    assert (grid.cell_at(0, 0).marker, grid.cell_at(0, 0).content) == ("+", "pipe")
    assert grid.cell_at(0, 0).direction == 4
    assert grid.cell_at(0, 1).marker == "x"
    assert grid.cell_at(1, 0).marker == "o"
    assert grid.cell_at(1, 1).marker == "t"
    assert (grid.cell_at(2, 2).marker, grid.cell_at(2, 2).content) == ("p", "oil-well")
    assert (grid.cell_at(2, 0).marker, grid.cell_at(2, 0).content) == ("B", "beacon")
    assert (grid.cell_at(3, 0).marker, grid.cell_at(3, 0).content) == ("7", "power_pole")
    assert (grid.cell_at(3, 1).marker, grid.cell_at(3, 1).content) == ("2", "heat-pipe")


def test_out_of_bounds_entities_are_skipped(fixture):
    warnings = []
    plan = {
        -1: {0: {"name": "pipe", "direction": 0}},
        0: {4: {"name": "beacon", "direction": 0}, 1: {"name": "pipe", "direction": 0}},
    }
    total, run_log = _merge(fixture, plan, warnings)

    assert total == 1
    assert "Entity planned out of bounds: pipe at x=-1.0,y=0.0" in run_log
    assert "Entity planned out of bounds: beacon at x=0.0,y=4.0" in run_log
    assert [(w.name, w.x, w.y) for w in warnings] == [("pipe", -1.0, 0.0), ("beacon", 0.0, 4.0)]
    assert fixture.grid.cell_at(0, 4) is None
    assert fixture.grid.cell_at(0, 0).marker is None


def test_double_assignment_is_a_conflict(fixture):
    plan = {
        0: {1: {"name": "pipe", "direction": 0}},
        "0": {1: {"name": "beacon", "direction": 0}},
    }
    with pytest.raises(ConflictError) as excinfo:
        _merge(fixture, plan)
    assert excinfo.value.existing == "+"
    assert "beacon" in excinfo.value.incoming


def test_missing_cell_inside_bounds(fixture):
    plan = {0.5: {0: {"name": "pipe", "direction": 0}}}
    with pytest.raises(MissingCellError):
        _merge(fixture, plan)


def test_sequence_shaped_plan_uses_one_based_keys(fixture):
    plan = [{1: {"name": "pipe", "direction": 0}}]
    total, _ = _merge(fixture, plan)
    assert total == 1
    assert fixture.grid.cell_at(1, 1).marker == "+"


def test_unknown_entity_gets_placeholder_marker(fixture):
    _merge(fixture, {1: {2: {"name": "mystery"}}})
    cell = fixture.grid.cell_at(1, 2)
    assert cell.marker == "?"
    assert cell.content == "can-build"
    assert cell.direction == DIRECTION_UNSET


def test_empty_plan_places_nothing(fixture):
    total, run_log = _merge(fixture, None)
    assert total == 0
    assert run_log.lines == []
