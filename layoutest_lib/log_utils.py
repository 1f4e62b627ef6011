import logging

LOGGER_ROOT = "layoutest"

# Logger topics below "layoutest." that -d/--debug can enable one by one.
TOPICS = ("main", "fixture", "bridge", "script", "merge", "render", "watch", "config")
TOPIC_WIDTH = max(len(t) for t in TOPICS)

ANSI_LEVEL_COLORS = {
    logging.DEBUG: "\033[38;5;245m",  # Grey
    logging.INFO: "\033[38;5;117m",  # Sky Blue
    logging.WARNING: "\033[38;5;221m",  # Amber
    logging.ERROR: "\033[38;5;203m",  # Red
    logging.CRITICAL: "\033[38;5;213m",  # Pink
}
ANSI_BOLD = "\033[1m"
ANSI_RESET = "\033[0m"


class RichLogFormatter(logging.Formatter):
    """
    Aligned console output: ``LEVEL:topic   : message`` on every line.

    Records logged with ``extra={"raw": True}`` (run logs, ASCII grids) are
    emitted without the prefix.
    """

    def __init__(self, use_color=False):
        super().__init__()
        self.use_color = use_color

    def _paint(self, text, code):
        return f"{code}{text}{ANSI_RESET}" if self.use_color else text

    def format(self, record):
        text = super().format(record)
        if getattr(record, "raw", False):
            return text

        level = self._paint(f"{record.levelname[:5]:<5}", ANSI_LEVEL_COLORS.get(record.levelno, ""))
        topic = record.name.rsplit(".", 1)[-1][:TOPIC_WIDTH]
        prefix = f"{level}:{self._paint(f'{topic:<{TOPIC_WIDTH}}', ANSI_BOLD)}: "
        return "\n".join(prefix + line for line in text.split("\n"))


def resolve_topics(debug_topics):
    """Expands a comma-separated topic list ("all", names or prefixes) to topic names."""
    requested = [t.strip() for t in debug_topics.split(",") if t.strip()]
    if "all" in requested:
        return set(TOPICS)
    return {topic for r in requested for topic in TOPICS if topic.startswith(r)}


def setup_logging(level, color_logs, debug_topics, log_file):
    """Configures the "layoutest" logger tree for the CLI."""
    root_logger = logging.getLogger(LOGGER_ROOT)
    for h in root_logger.handlers[:]:
        root_logger.removeHandler(h)
        h.close()
    root_logger.setLevel(level)

    console = logging.StreamHandler()
    console.setFormatter(RichLogFormatter(use_color=color_logs))
    root_logger.addHandler(console)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        except OSError as e:
            root_logger.error("Could not open log file %s: %s", log_file, e)
        else:
            file_handler.setFormatter(RichLogFormatter(use_color=False))
            root_logger.addHandler(file_handler)
            logging.getLogger(f"{LOGGER_ROOT}.main").info("Logging to file: %s", log_file)

    if debug_topics:
        for topic in sorted(resolve_topics(debug_topics)):
            logging.getLogger(f"{LOGGER_ROOT}.{topic}").setLevel(logging.DEBUG)
