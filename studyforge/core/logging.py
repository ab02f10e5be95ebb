import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """
    Configure le logger racine une seule fois (appelé par create_app).
    Les modules utilisent ensuite logging.getLogger(__name__).
    """
    root = logging.getLogger()
    numeric = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(numeric, int):
        numeric = logging.INFO

    if not root.handlers:
        logging.basicConfig(level=numeric, format=LOG_FORMAT)
    root.setLevel(numeric)

    # le client HTTP d'openai est bavard en DEBUG
    logging.getLogger("httpx").setLevel(max(numeric, logging.WARNING))
