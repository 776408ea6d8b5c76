"""Central timeout policy definitions and resolution helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from shellpipe.config.settings import settings


class TimeoutDomain(str, Enum):
    """Kinds of command invocation with distinct timeout behavior."""

    TRANSFORM = "transform"
    EXECUTE = "execute"


@dataclass(frozen=True, slots=True)
class SignalPolicy:
    """Process signaling behavior when a timeout expires."""

    terminate_grace_seconds: float


@dataclass(frozen=True, slots=True)
class TimeoutPolicy:
    """Resolved policy for a timeout domain.

    ``default_timeout_seconds`` of None means commands run without a limit
    unless a timeout is requested explicitly.
    """

    domain: TimeoutDomain
    default_timeout_seconds: float | None
    min_timeout_seconds: float
    max_timeout_seconds: float
    use_process_group: bool
    signal: SignalPolicy


@dataclass(frozen=True, slots=True)
class TimeoutContext:
    """Context used to resolve the timeout for a command run."""

    domain: TimeoutDomain
    command: str
    requested_timeout_seconds: float | None = None


class TimeoutPolicyRegistry:
    """Registry that resolves timeout policies and per-run limits."""

    def __init__(
        self,
        policies: dict[TimeoutDomain, TimeoutPolicy] | None = None,
        *,
        default_timeout_seconds: float | None = None,
        terminate_grace_seconds: float = 5.0,
    ) -> None:
        self._policies = policies or {
            domain: TimeoutPolicy(
                domain=domain,
                default_timeout_seconds=default_timeout_seconds,
                min_timeout_seconds=0.01,
                max_timeout_seconds=86400.0,
                use_process_group=True,
                signal=SignalPolicy(terminate_grace_seconds=terminate_grace_seconds),
            )
            for domain in TimeoutDomain
        }

    def policy_for(self, domain: TimeoutDomain) -> TimeoutPolicy:
        """Return policy for a specific timeout domain."""
        return self._policies[domain]

    def timeout_for(self, context: TimeoutContext) -> float | None:
        """Resolve the timeout for a run, or None when unlimited."""
        policy = self.policy_for(context.domain)

        requested = context.requested_timeout_seconds
        if requested is None:
            requested = policy.default_timeout_seconds
        if requested is None:
            return None

        return self._clamp(
            requested,
            policy.min_timeout_seconds,
            policy.max_timeout_seconds,
        )

    def terminate_grace_seconds(self, domain: TimeoutDomain) -> float:
        """Return the grace period between SIGTERM and SIGKILL."""
        return self.policy_for(domain).signal.terminate_grace_seconds

    @staticmethod
    def _clamp(value: float, minimum: float, maximum: float) -> float:
        return max(minimum, min(value, maximum))


_DEFAULT_TIMEOUT_POLICY_REGISTRY: TimeoutPolicyRegistry | None = None


def get_timeout_policy_registry() -> TimeoutPolicyRegistry:
    """Return shared timeout policy registry, built from settings on first use."""
    global _DEFAULT_TIMEOUT_POLICY_REGISTRY
    if _DEFAULT_TIMEOUT_POLICY_REGISTRY is None:
        _DEFAULT_TIMEOUT_POLICY_REGISTRY = TimeoutPolicyRegistry(
            default_timeout_seconds=settings.timeout_seconds,
            terminate_grace_seconds=settings.terminate_grace_seconds,
        )
    return _DEFAULT_TIMEOUT_POLICY_REGISTRY


def reset_timeout_policy_registry() -> None:
    """Drop the shared registry so the next lookup re-reads settings."""
    global _DEFAULT_TIMEOUT_POLICY_REGISTRY
    _DEFAULT_TIMEOUT_POLICY_REGISTRY = None
