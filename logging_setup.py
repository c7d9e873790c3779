import logging

LOGGER_NAME = "plot_harvests"


def configure_logging(level: str = "INFO") -> logging.Logger:
    log = logging.getLogger(LOGGER_NAME)
    # Avoid duplicate attachment on reload
    if not any(getattr(h, "_plot_harvests", False) for h in log.handlers):
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        h._plot_harvests = True  # type: ignore[attr-defined]
        log.addHandler(h)
    log.setLevel(getattr(logging, level.upper(), logging.INFO))
    return log


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


__all__ = ["LOGGER_NAME", "configure_logging", "get_logger"]
