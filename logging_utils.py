# Logging setup shared by the command line scripts

import os
import logging


def setup_logging(log_path, level=logging.INFO):
    """
    Log to a file in the experiment directory and to the console
    """
    log_dir = os.path.dirname(log_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.FileHandler(log_path, mode="a"),
            logging.StreamHandler(),
        ],
        force=True,
    )
    logging.info(f"Logging to {log_path}")
