import functools

from loguru import logger


def log_job(func):
    """
    A decorator that logs scheduled job entry, exit, and exceptions.

    Exceptions are logged with traceback and re-raised unchanged so the
    scheduler records them too.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger.debug(f"Entering job {func.__qualname__}")
        try:
            result = func(*args, **kwargs)
        except Exception:
            logger.exception(f"Job {func.__qualname__} failed")
            raise
        logger.debug(f"Job {func.__qualname__} done")
        return result

    return wrapper
