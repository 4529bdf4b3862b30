
import logging
import os
from datetime import datetime

def setup_logger(name):
    """
    Module logger for the report pipelines

    Everything at DEBUG and above goes to the daily analysis_reports log under
    logs/; INFO and above is echoed to the console. Calling it again for the
    same name returns the logger already set up.

    Parameters
    name (str) : Usually the calling module's __name__

    Returns:
    logging.Logger : Configured Logger Instance
    """

    os.makedirs('logs',exist_ok=True)

    # Create Logger
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)

    # Modules re-imported by tests would otherwise stack handlers
    if logger.handlers:
        return logger

    # Configs for how logs will appear in logs/
    file_format = logging.Formatter(
        '%(levelname)s : %(name)s : %(funcName)s : %(lineno)d : %(message)s'
    )

    log_file = f'logs/analysis_reports_{datetime.now().strftime("%m%d%Y")}.log'
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(file_format)

    # Console logs configs
    console_format = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    )
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(console_format)


    # Add the config to the Logger obj
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger
