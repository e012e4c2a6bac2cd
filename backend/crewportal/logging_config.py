"""Logging setup: custom TRACE level and VERBOSE mode."""

import logging

# Custom TRACE level
logging.TRACE = 5
logging.addLevelName(logging.TRACE, "TRACE")


# Add trace method to standard Logger class for all instances
def trace_method(self, msg, *args, **kwargs):
    if self.isEnabledFor(logging.TRACE):
        self._log(logging.TRACE, msg, args, **kwargs)


logging.Logger.trace = trace_method


def configure_logging(level_name: str) -> None:
    """Configure the root logger once; VERBOSE raises HTTP and connector detail."""
    log_level_str = level_name.upper()
    log_level = logging.TRACE if log_level_str == "TRACE" else getattr(logging, log_level_str, logging.INFO)
    if logging.getLogger().hasHandlers():
        return

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)-8s - %(message)s'
    )
    root = logging.getLogger()

    if log_level_str == "VERBOSE":
        root_level = logging.DEBUG
        http_level = logging.DEBUG
        connectors_level = logging.TRACE
        sync_level = logging.DEBUG
        root.info("VERBOSE mode enabled: HTTP details and connector traces active for debugging.")
    elif log_level_str == "TRACE":
        root_level = http_level = connectors_level = sync_level = logging.TRACE
    else:
        root_level = log_level
        http_level = logging.WARNING
        connectors_level = logging.DEBUG if root_level <= logging.DEBUG else root_level
        sync_level = root_level

    root.setLevel(root_level)
    logging.getLogger("httpcore").setLevel(http_level)
    logging.getLogger("httpx").setLevel(http_level)
    logging.getLogger("crewportal.connectors").setLevel(connectors_level)
    logging.getLogger("crewportal.services.sync_service").setLevel(sync_level)
    logging.getLogger("crewportal.services.reconciler").setLevel(sync_level)

    if log_level_str == "TRACE":
        root.trace("Trace logging enabled at startup (verbose details).")
    else:
        root.debug("Debug logging enabled at startup.")
