""" Timing functionality for comptpfa.

Timing logs are controlled by the configuration file comptpfa.cfg, which should be
placed in the current working directory (where the python script is initiated).
All logging-related information is located in a section in the cfg-file with
heading logging; see sample file below.

By default, timing is switched off. It can be turned on by setting the keyword
'active' to True.

The functions are classified as relevant for the following (overlapping) categories

    all: Used to log all decorated functions.
    assembly: Assembly of the residual and Jacobian.
    geometry: Transmissibilities and pore volumes.
    numerics: Dynamic data and the Newton loop.
    matrix: Linear solves.

Example logging section of comptpfa.cfg:

    [logging]
    # Activate logging. Without this, the rest of the section has no effect
    active: True
    # multiple sections are separated by commas:
    sections: assembly, numerics

"""
import functools
import logging
import time

import comptpfa as ct

__all__ = ["time_logger"]


_config: dict = ct.config.get("logging", {})
active_sections = [
    s.strip().lower() for s in _config.get("sections", "all").split(",")
]
logger_is_active = _config.get("active", "false").strip().lower() == "true"
always_log = "all" in active_sections

t_logger = logging.getLogger("comptpfa.timer")

if logger_is_active and not t_logger.hasHandlers():
    # Add handler to write to file.
    t_logger.setLevel(logging.INFO)
    time_handler = logging.FileHandler(_config.get("file", "ComptpfaTimings.log"))
    time_handler.setLevel(logging.INFO)
    time_handler.setFormatter(logging.Formatter("%(message)s"))
    t_logger.addHandler(time_handler)


def time_logger(sections):
    """A decorator that measures elapsed time for a function.

    Parameters:
        sections: List of the categories the decorated function belongs to.

    """

    def inner_func(func):
        @functools.wraps(func)
        def log_time(*args, **kwargs):
            if not logger_is_active:
                return func(*args, **kwargs)
            elif always_log or any(s in active_sections for s in sections):
                name = f"{func.__qualname__} in module {func.__module__}."
                t_logger.info(f"Calling {name}")

                start_time = time.perf_counter()
                value = func(*args, **kwargs)
                run_time = time.perf_counter() - start_time

                t_logger.info(f"Finished {name} Elapsed time: {run_time:.8f} s")
                return value
            else:
                return func(*args, **kwargs)

        return log_time

    return inner_func
