import logging
import os
import sys

import config

FORMAT = '%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ('urllib3', 'werkzeug')


def setup_logging(level=None, log_dir=None):
    """Configure the root logger once, before the app starts serving.

    Console output goes to stderr; when ``log_dir`` (or ``LOG_DIR``) is set,
    everything is also written to ``schedule_master.log`` in that directory.
    """
    level = (level or config.LOG_LEVEL).upper()
    log_dir = log_dir if log_dir is not None else config.LOG_DIR

    root = logging.getLogger()
    root.setLevel(level)
    # Avoid duplicate handlers when called again (e.g. by the reloader)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(fmt=FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(log_dir, 'schedule_master.log'), encoding='utf-8')
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.captureWarnings(True)
