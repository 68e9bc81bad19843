from .logging import collect_diagnostics, configure_logging, get_logger

__all__ = ["collect_diagnostics", "configure_logging", "get_logger"]
