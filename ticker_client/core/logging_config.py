import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO", *, verbose_transport: bool = False) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # python-socketio and python-engineio log every packet at INFO
    transport_level = logging.DEBUG if verbose_transport else logging.WARNING
    logging.getLogger("socketio").setLevel(transport_level)
    logging.getLogger("engineio").setLevel(transport_level)
