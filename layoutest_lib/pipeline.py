# --- layoutest_lib/pipeline.py ---
"""
The configurable shape of the external planning pipeline: which Lua modules
to load, which entry points to call in which order, and how each planned
entity name becomes a grid marker.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ModuleSpec:
    """A Lua module to ``require``, optionally bound to a global name."""

    name: str
    bind_as: Optional[str] = None


@dataclass(frozen=True)
class StageSpec:
    """One named pipeline entry point.

    ``option`` names the RunOptions flag that enables the stage; a stage
    without one always runs. ``extra_args`` follow the context argument.
    """

    label: str
    entry_point: str
    option: Optional[str] = None
    extra_args: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class MarkerRule:
    """How a planned entity is shown on its cell.

    The marker is either fixed text or, with ``ordinal_field``, the record's
    value for that field. ``content`` replaces the cell label unless None.
    """

    marker: Optional[str] = None
    content: Optional[str] = None
    ordinal_field: Optional[str] = None

    def marker_for(self, record: Dict[str, Any]) -> str:
        if self.ordinal_field is None:
            return self.marker
        value = record.get(self.ordinal_field)
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if value is None:
            raise ValueError(f"Planned entity is missing '{self.ordinal_field}'")
        return str(value)


DEFAULT_MODULES = [
    ModuleSpec("util"),
    ModuleSpec("math2d"),
    ModuleSpec("plib"),
    ModuleSpec("prospector"),
    ModuleSpec("toolbox"),
    ModuleSpec("toolshop"),
    ModuleSpec("plumber-pro"),
    ModuleSpec("electrician"),
    ModuleSpec("heater", bind_as="heater"),
    ModuleSpec("beaconer", bind_as="beaconer"),
]

DEFAULT_SETUP_STAGES = [
    StageSpec("blocking", "populate_blocked_positions_from_area"),
    StageSpec("toolbox", "add_development_toolbox"),
]

DEFAULT_PLANNING_STAGES = [
    StageSpec("plumbing", "plan_plumbing"),
    StageSpec("beaconing", "plan_beacons", option="plan_beacons"),
    StageSpec("heating", "plan_heat_pipes", option="plan_heat_pipes", extra_args=(None,)),
    StageSpec("electricity", "plan_power", option="plan_power_poles"),
]

DEFAULT_MARKER_RULES = {
    "pipe": MarkerRule("+", "pipe"),
    "output": MarkerRule("o", "pipe"),
    "extractor": MarkerRule("p"),
    "pipe_joint": MarkerRule("x", "pipe"),
    "pipe_tunnel": MarkerRule("t", "pipe"),
    "power_pole": MarkerRule(content="power_pole", ordinal_field="placement_order"),
    "beacon": MarkerRule("B", "beacon"),
    "heat-pipe": MarkerRule(content="heat-pipe", ordinal_field="placement_order"),
}


@dataclass
class PipelineConfig:
    modules: List[ModuleSpec] = field(default_factory=lambda: list(DEFAULT_MODULES))
    setup_stages: List[StageSpec] = field(
        default_factory=lambda: list(DEFAULT_SETUP_STAGES)
    )
    planning_stages: List[StageSpec] = field(
        default_factory=lambda: list(DEFAULT_PLANNING_STAGES)
    )
    marker_rules: Dict[str, MarkerRule] = field(
        default_factory=lambda: dict(DEFAULT_MARKER_RULES)
    )
    unknown_marker: str = "?"

    def rule_for(self, name: str) -> MarkerRule:
        return self.marker_rules.get(name, MarkerRule(self.unknown_marker))
