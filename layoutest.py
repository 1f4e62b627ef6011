# --- layoutest.py ---
import argparse
import logging
import os
import time

from layoutest_lib.bridge import locate_pipeline
from layoutest_lib.config_service import DEFAULT_CONFIG_PATH, ConfigService
from layoutest_lib.errors import EnvironmentSetupError
from layoutest_lib.fixture import discover_fixtures
from layoutest_lib.log_utils import setup_logging
from layoutest_lib.rendering.ascii_renderer import ASCIIRenderer
from layoutest_lib.rendering.grid_visual import GridVisual
from layoutest_lib.rendering.png_renderer import save_png
from layoutest_lib.rendering.svg_renderer import render_svg
from layoutest_lib.runner import RunOptions, RunOutcome, run_layout
from layoutest_lib.scheduler import FileWatcher, RefreshScheduler


def write_outputs(outcome: RunOutcome, args, width: int, height: int):
    """Writes the run log, the PNG and SVG grids, and answers --inspect queries."""
    log = logging.getLogger("layoutest.main")
    log_path = f"{args.output}.log"
    try:
        with open(log_path, "w", encoding="utf-8") as f:
            f.write(outcome.diagnostics.log_text + "\n")
        log.info("Saved run log to '%s'", log_path)
    except IOError as e:
        log.error("Could not write run log: %s", e)

    if outcome.diagnostics.failed:
        log.error("Run failed: %s", outcome.diagnostics.error)
        log.info("\n%s", outcome.diagnostics.log_text, extra={"raw": True})
    if outcome.result is None:
        return

    visual = GridVisual(outcome.result, width, height)
    save_png(visual, f"{args.output}.png")
    svg_path = f"{args.output}.svg"
    try:
        with open(svg_path, "w", encoding="utf-8") as f:
            f.write(render_svg(visual))
        log.info("Successfully saved SVG to '%s'", svg_path)
    except IOError as e:
        log.error("Could not write SVG file: %s", e)

    if args.ascii_debug:
        log.info("--- ASCII Debug Output ---")
        renderer = ASCIIRenderer()
        renderer.render_from_result(outcome.result)
        log.info("\n%s", renderer.get_output(), extra={"raw": True})
        log.info("--- End ASCII Debug Output ---")

    for query in args.inspect or []:
        px, py = (float(v) for v in query.split(","))
        print(f"({px}, {py}): {visual.describe(px, py)}")
        covering = visual.footprint_at(px, py)
        if covering is not None:
            print(f"  covered by {covering.entity_name} at X={covering.x}, Y={covering.y}")


def read_fixture(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def watch(args, options: RunOptions, width: int, height: int):
    """Re-runs the layout whenever the pipeline sources or the fixture change."""
    log = logging.getLogger("layoutest.main")
    try:
        location = locate_pipeline(options.pipeline_dir, options.data_dir)
    except EnvironmentSetupError as e:
        log.critical("%s", e)
        return

    def on_result(outcome):
        if outcome is None:
            log.info("Running layout...")
        else:
            write_outputs(outcome, args, width, height)

    scheduler = RefreshScheduler(
        lambda path: run_layout(read_fixture(path), options, location),
        on_result,
        debounce=0.2,
    )
    watchers = [
        FileWatcher(location.pipeline_dir, lambda _: scheduler.request(args.input)),
        FileWatcher(
            os.path.dirname(os.path.abspath(args.input)),
            lambda _: scheduler.request(args.input),
            pattern=os.path.basename(args.input),
        ),
    ]
    for watcher in watchers:
        watcher.start()
    scheduler.request(args.input)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        log.info("Stopping watch mode.")
    finally:
        for watcher in watchers:
            watcher.stop()
        scheduler.close()


def get_cli_args():
    """Configures and parses command-line arguments."""
    p = argparse.ArgumentParser(
        description="Runs the Lua planning pipeline on a fixture and draws the planned grid."
    )
    p.add_argument("-i", "--input", help="Path to the fixture JSON file.")
    p.add_argument("-o", "--output", default="layout", help="Base name for output files.")
    p.add_argument("--list", metavar="DIR", help="List the fixtures in a directory and exit.")
    p.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to the settings file.")
    # Pipeline arguments
    g_pipe = p.add_argument_group("Pipeline")
    g_pipe.add_argument("--pipeline-dir", help="Directory holding the pipeline's Lua modules.")
    g_pipe.add_argument("--data-dir", help="Runtime data directory (base/, core/lualib/).")
    g_pipe.add_argument("--no-beacons", action="store_true", help="Skip beacon placement.")
    g_pipe.add_argument("--no-heat-pipes", action="store_true", help="Skip heat pipe placement.")
    g_pipe.add_argument("--no-power-poles", action="store_true", help="Skip power pole placement.")
    g_pipe.add_argument(
        "--trace-line",
        type=int,
        metavar="LINE",
        help="Capture a Lua traceback whenever this line number executes.",
    )
    g_pipe.add_argument(
        "--watch",
        action="store_true",
        help="Re-run whenever the pipeline sources or the fixture change.",
    )
    # Rendering arguments
    g_render = p.add_argument_group("Rendering")
    g_render.add_argument("--width", type=int, help="Canvas width in pixels.")
    g_render.add_argument("--height", type=int, help="Canvas height in pixels.")
    g_render.add_argument(
        "--inspect",
        action="append",
        metavar="PX,PY",
        help="Report the cell under a canvas pixel (repeatable).",
    )
    # Logging arguments
    g_log = p.add_argument_group("Logging & Output")
    g_log.add_argument(
        "-v", "--verbose", action="store_true", help="Enable INFO logging."
    )
    g_log.add_argument(
        "--color-logs", action="store_true", help="Enable colored logging."
    )
    g_log.add_argument(
        "--log-file", metavar="FILE", help="Redirect log output to a file."
    )
    g_log.add_argument(
        "--ascii-debug",
        action="store_true",
        help="Print an ASCII view of the planned grid.",
    )
    g_log.add_argument(
        "-d",
        "--debug",
        nargs="?",
        const="all",
        dest="debug_topics",
        metavar="TOPICS",
        help="Enable DEBUG logging (all,fixture,bridge,script,merge,render,watch,config).",
    )
    return p.parse_args()


def main():
    """Main entry point for the layoutest CLI."""
    args = get_cli_args()
    log_level = logging.INFO if args.verbose else logging.WARNING
    if args.debug_topics:
        log_level = logging.DEBUG

    setup_logging(log_level, args.color_logs, args.debug_topics, args.log_file)
    log = logging.getLogger("layoutest.main")

    log.info("--- LAYOUTEST CLI Initialized ---")
    log.debug("Arguments received: %s", vars(args))

    if args.list:
        for path in discover_fixtures(args.list):
            print(path)
        return

    if not args.input:
        log.critical("--input is required unless --list is used.")
        return

    settings = ConfigService(args.config).get_settings()
    options = RunOptions.from_settings(settings)
    if args.pipeline_dir:
        options.pipeline_dir = args.pipeline_dir
    if args.data_dir:
        options.data_dir = args.data_dir
    if args.trace_line is not None:
        options.trace_line = args.trace_line
    options.plan_beacons = options.plan_beacons and not args.no_beacons
    options.plan_heat_pipes = options.plan_heat_pipes and not args.no_heat_pipes
    options.plan_power_poles = options.plan_power_poles and not args.no_power_poles

    render = settings.get("Render", {})
    width = args.width or int(render.get("width", 1200))
    height = args.height or int(render.get("height", 900))

    if args.watch:
        watch(args, options, width, height)
        return

    try:
        fixture_text = read_fixture(args.input)
    except IOError as e:
        log.critical("Could not read fixture '%s': %s", args.input, e)
        return

    outcome = run_layout(fixture_text, options)
    log.info("--- Run Results ---")
    log.info(
        "Planned %d entities, %d out of bounds, %d stage failures.",
        outcome.diagnostics.planned_entities,
        len(outcome.diagnostics.out_of_bounds),
        len(outcome.diagnostics.stage_failures),
    )
    write_outputs(outcome, args, width, height)
    log.info("--- Processing complete. ---")


if __name__ == "__main__":
    main()
