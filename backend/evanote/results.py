from loguru import logger

from .exceptions import EvaNoteError
from .schemas import ActionResult

GENERIC_ERROR_MESSAGE = "Une erreur inattendue s'est produite."


def failure_result(error: Exception, operation: str) -> ActionResult:
    """
    Turn an exception raised inside a service operation into a failed ActionResult.

    Domain errors keep their user message and code, with the internal context
    going to the log only. Anything else is logged with its traceback and
    reported with a generic message.
    """
    if isinstance(error, EvaNoteError):
        logger.warning(f"{operation} failed: {error.code} {error.context}")
        return ActionResult.fail(error.user_message, error.code)

    logger.opt(exception=error).error(f"Unexpected error in {operation}: {type(error).__name__}")
    return ActionResult.fail(GENERIC_ERROR_MESSAGE, "internal_error")
