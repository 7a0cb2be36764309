import logging

_CONFIGURED = False


def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging once per process.

    httpx/httpcore log every request at INFO, which drowns out sync logs
    during a reconciliation pass, so they are capped at WARNING.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    _CONFIGURED = True
