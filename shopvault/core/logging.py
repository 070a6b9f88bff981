"""
ShopVault — Logging setup
"""
import logging

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s - %(message)s"


def configure_logging(level: str = "INFO"):
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)
    # SQLAlchemy echoes through its own logger; keep it quiet unless DB_ECHO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
