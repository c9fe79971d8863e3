import inspect
import logging
import sys
from datetime import datetime
from functools import wraps
from typing import Any, Callable, TypeVar

import structlog


def add_code_info(logger: logging.Logger, method_name: str, event_dict: Any) -> dict[str, Any]:
    # processor -> _process_event -> _proxy_to_logger -> BoundLogger.<level> -> caller
    frame = inspect.currentframe()
    for _ in range(5):
        if frame is None:
            return event_dict
        frame = frame.f_back
    if frame is None:
        return event_dict
    event_dict["code_func"] = frame.f_code.co_name
    event_dict["code_line"] = frame.f_lineno
    return event_dict


structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_code_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.EventRenamer(to="msg"),
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)


def init(debug: bool = False):
    """
    Route the stdlib root logger to stderr. structlog renders the JSON line,
    so the handler only prints the message.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)


R = TypeVar("R")


def timestamped(log_args: list[str] = []):
    def decorator(func: Callable[..., R]) -> Callable[..., Any]:
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> R:
                start_time = datetime.now()
                try:
                    return await func(*args, **kwargs)
                finally:
                    duration = "{:.4f}s".format((datetime.now() - start_time).total_seconds())
                    logged_args = {arg: kwargs[arg] for arg in log_args if arg in kwargs}
                    structlog.get_logger().info(
                        "execution_time",
                        function=f"{func.__module__}:{func.__name__}",
                        duration=duration,
                        **logged_args,
                    )

            return async_wrapper
        else:

            @wraps(func)
            def wrapper(*args: Any, **kwargs: Any) -> R:
                start_time = datetime.now()
                try:
                    return func(*args, **kwargs)
                finally:
                    duration = "{:.4f}s".format((datetime.now() - start_time).total_seconds())
                    logged_args = {arg: kwargs[arg] for arg in log_args if arg in kwargs}
                    structlog.get_logger().info(
                        "execution_time",
                        function=f"{func.__module__}:{func.__name__}",
                        duration=duration,
                        **logged_args,
                    )

            return wrapper

    return decorator
