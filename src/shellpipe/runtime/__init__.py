"""Process orchestration for command stages."""

from shellpipe.runtime.command_runner import (
    CommandEvent,
    CommandRunner,
    EchoedOutputStream,
    ProcessOutputStream,
    run,
)
from shellpipe.runtime.environment import build_environment
from shellpipe.runtime.process import AsyncioProcessSpawner, ProcessSpawner
from shellpipe.runtime.timeout_policy import TimeoutDomain, get_timeout_policy_registry

__all__ = [
    "AsyncioProcessSpawner",
    "CommandEvent",
    "CommandRunner",
    "EchoedOutputStream",
    "ProcessOutputStream",
    "ProcessSpawner",
    "TimeoutDomain",
    "build_environment",
    "get_timeout_policy_registry",
    "run",
]
