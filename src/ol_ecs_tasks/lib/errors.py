"""Exception types raised while building and launching ECS task definitions."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any


class ConfigurationError(ValueError):
    """The caller supplied a configuration that violates a task definition invariant."""


class PlatformProvisioningError(RuntimeError):
    """A backing AWS resource could not be created."""


class LaunchError(RuntimeError):
    """ECS accepted a RunTask call but reported failures for the requested task."""

    def __init__(self, failures: list[dict[str, Any]]):
        self.failures = failures
        super().__init__(f"Failed to start task: {failures}")


@contextmanager
def provisioning_errors(description: str) -> Iterator[None]:
    """Re-raise errors from resource creation as PlatformProvisioningError.

    Configuration errors are passed through untouched so that callers can tell bad
    input apart from a failing backend.

    :param description: Human readable name of the resource being provisioned.
    :type description: str

    :raises PlatformProvisioningError: If the wrapped block raises anything other than
        a ConfigurationError or PlatformProvisioningError.
    """
    try:
        yield
    except (ConfigurationError, PlatformProvisioningError):
        raise
    except Exception as exc:
        msg = f"Unable to provision {description}"
        raise PlatformProvisioningError(msg) from exc
