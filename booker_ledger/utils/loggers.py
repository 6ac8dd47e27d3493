import logging

FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name="booker_ledger", level=logging.INFO):
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(level)
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(FORMAT))
        logger.addHandler(ch)
    return logger
