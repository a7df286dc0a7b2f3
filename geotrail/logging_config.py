import logging
import os
from datetime import datetime

from geotrail.config import LOG_DIR


def setup_logging(level=logging.INFO, log_dir=LOG_DIR):
    """
    Configure root logging: a dated file under ``log_dir`` plus the console.

    Calling it more than once is harmless, ``basicConfig`` only acts the first time.
    """
    # Create logs directory
    os.makedirs(log_dir, exist_ok=True)

    # Create log file with today's date
    log_filename = os.path.join(log_dir, f'geotrail_{datetime.now().strftime("%Y%m%d")}.log')

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_filename, encoding="utf-8"),
            logging.StreamHandler()
        ]
    )

    # urllib3 logs every connection at DEBUG; keep it quiet
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return logging.getLogger("geotrail")
