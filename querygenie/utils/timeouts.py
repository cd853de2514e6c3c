from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Callable, TypeVar

from querygenie.errors import PersistenceError

T = TypeVar("T")

# Writes that outlive their timeout keep running here; the caller stops waiting for them
_write_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="querygenie-write")


def run_with_timeout(fn: Callable[..., T], timeout: float, *args: Any, **kwargs: Any) -> T:
    """
    Run a blocking write and wait at most `timeout` seconds for it.

    Raises PersistenceError on timeout or on any error raised by `fn`.
    The underlying operation is not cancelled on timeout.
    """
    future = _write_pool.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as e:
        raise PersistenceError("Save operation timed out") from e
    except Exception as e:
        raise PersistenceError(f"Save operation failed: {e}") from e
