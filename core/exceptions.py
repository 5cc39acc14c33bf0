import logging

from core import sentry

logger = logging.getLogger(__name__)


def capture_exception(exception: BaseException, scope=None, **scope_args):
    """
    Sends the exception to Sentry if it's configured, and always logs it
    with its traceback.
    """
    logger.error(
        "%s: %s",
        exception.__class__.__name__,
        exception,
        exc_info=(type(exception), exception, exception.__traceback__),
    )
    sentry.capture_exception(exception, scope, **scope_args)
