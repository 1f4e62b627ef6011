import logging

import pytest

from layoutest_lib.log_utils import RichLogFormatter, resolve_topics, setup_logging


@pytest.mark.parametrize(
    "requested, expected",
    [
        ("all", {"main", "fixture", "bridge", "script", "merge", "render", "watch", "config"}),
        ("bridge, merge", {"bridge", "merge"}),
        ("m", {"main", "merge"}),
        ("nothing", set()),
    ],
)
def test_resolve_topics(requested, expected):
    assert resolve_topics(requested) == expected


def test_formatter_prefixes_every_line():
    record = logging.LogRecord("layoutest.merge", logging.WARNING, __file__, 1, "a\nb", None, None)
    assert RichLogFormatter().format(record) == "WARNI:merge  : a\nWARNI:merge  : b"


def test_formatter_leaves_raw_records_alone():
    record = logging.LogRecord("layoutest.main", logging.INFO, __file__, 1, "  0| + ", None, None)
    record.raw = True
    assert RichLogFormatter(use_color=True).format(record) == "  0| + "


def test_setup_logging_enables_debug_topics(tmp_path):
    log_file = tmp_path / "run.txt"
    setup_logging(logging.WARNING, False, "bridge", str(log_file))
    try:
        assert logging.getLogger("layoutest").level == logging.WARNING
        assert logging.getLogger("layoutest.bridge").level == logging.DEBUG
        logging.getLogger("layoutest.bridge").debug("session opened")
        for h in logging.getLogger("layoutest").handlers:
            h.flush()
        assert "DEBUG:bridge : session opened" in log_file.read_text()
    finally:
        logging.getLogger("layoutest.bridge").setLevel(logging.NOTSET)
        root = logging.getLogger("layoutest")
        for h in root.handlers[:]:
            root.removeHandler(h)
            h.close()
