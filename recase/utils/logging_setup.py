import logging
import sys


def setup_logging(level_str: str = "WARNING") -> None:
    """Route diagnostics to stderr; stdout is reserved for restored text."""
    numeric_level = getattr(logging, level_str.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level_str}")

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)-5.5s] [%(name)-20.20s]: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    logging.getLogger("recase").debug("Logging initialized at level %s", level_str.upper())


def visible(text: str) -> str:
    return text.replace("\n", "<n>")
