import logging
import time


def with_retries(
    operation_to_retry,
    log: logging.Logger,
    max_attempts=5,
    delay=2,
    retry_on=(Exception,),
):
    """
    Retry an operation with exponential backoff on transient errors.
    Only used at startup; the sync loop itself relies on the next pass to retry.

    :param operation_to_retry: The function/operation to retry
    :param log: The logger used to report attempts and failures.
    :param max_attempts: Maximum number of retry attempts
    :param delay: Initial delay between retries (exponentially increased)
    :param retry_on: Exception types considered transient.
        Other exceptions propagate immediately.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            log.info("Attempt: %s", attempt)
            return operation_to_retry()
        except retry_on as e:
            log.error(e)
            if attempt == max_attempts:
                raise
            time.sleep(delay * 2 ** (attempt - 1))
