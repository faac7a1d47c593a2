"""Circuit breaker with a count-based sliding failure-rate window."""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Optional, Protocol, Union

from src.models.data_models import CircuitState, HalfOpenToken


class Clock(Protocol):
    """Clock interface for testable time management."""

    def now(self) -> float:
        """Return current time in seconds."""
        ...


class MonotonicClock:
    """Default clock implementation using time.monotonic."""

    def now(self) -> float:
        """Return current monotonic time in seconds."""
        return time.monotonic()


@dataclass
class CircuitBreakerState:
    """Internal state for a single dependency circuit."""
    state: CircuitState = CircuitState.CLOSED
    # True marks a failed call; newest on the right
    window: Deque[bool] = field(default_factory=deque)
    opened_at: float = 0.0
    half_open_in_flight: int = 0
    half_open_successes: int = 0
    # Bumped on every transition; trial tokens carry the value they were issued under
    episode: int = 0


class CircuitBreaker:
    """
    Circuit breaker with CLOSED/OPEN/HALF_OPEN states per dependency.

    - CLOSED: calls pass; outcomes are recorded in a sliding window of the
      last ``window_size`` calls. Once at least ``minimum_calls`` are recorded
      and the failure rate reaches ``failure_rate_threshold`` the circuit opens.
    - OPEN: calls are rejected until ``cooldown_seconds`` have elapsed.
    - HALF_OPEN: up to ``half_open_max_calls`` trial calls are admitted.
      A trial failure reopens the circuit; once every admitted trial has
      succeeded the circuit closes.

    State is shared by all requests to a dependency. Transitions happen under
    a lock held only for the bookkeeping, never across I/O.
    """

    def __init__(
        self,
        window_size: int = 10,
        minimum_calls: int = 5,
        failure_rate_threshold: float = 0.5,
        cooldown_seconds: float = 10.0,
        half_open_max_calls: int = 1,
        clock: Optional[Clock] = None,
        logger: Optional['StructuredLogger'] = None
    ):
        """
        Initialize circuit breaker.

        Args:
            window_size: Number of most recent calls considered for the failure rate
            minimum_calls: Calls required in the window before the rate is evaluated
            failure_rate_threshold: Failure ratio (0-1] that opens the circuit
            cooldown_seconds: Time to wait before admitting half-open trial calls
            half_open_max_calls: Trial calls admitted while half-open
            clock: Clock interface for time management (defaults to MonotonicClock)
            logger: Optional structured logger for state transitions
        """
        if window_size < 1:
            raise ValueError(f"window_size must be positive, got: {window_size}")
        if not 1 <= minimum_calls <= window_size:
            raise ValueError(
                f"minimum_calls must be between 1 and window_size, got: {minimum_calls}"
            )
        if not 0.0 < failure_rate_threshold <= 1.0:
            raise ValueError(
                f"failure_rate_threshold must be in (0, 1], got: {failure_rate_threshold}"
            )
        if half_open_max_calls < 1:
            raise ValueError(f"half_open_max_calls must be positive, got: {half_open_max_calls}")

        self.window_size = window_size
        self.minimum_calls = minimum_calls
        self.failure_rate_threshold = failure_rate_threshold
        self.cooldown_seconds = cooldown_seconds
        self.half_open_max_calls = half_open_max_calls
        self.clock = clock or MonotonicClock()
        self.logger = logger
        self._circuits: Dict[str, CircuitBreakerState] = {}
        self._lock = threading.Lock()

    def _get_circuit(self, dependency: str) -> CircuitBreakerState:
        """Get or create circuit state for dependency. Caller holds the lock."""
        if dependency not in self._circuits:
            self._circuits[dependency] = CircuitBreakerState(
                window=deque(maxlen=self.window_size)
            )
        return self._circuits[dependency]

    def should_allow(self, dependency: str) -> Union[bool, HalfOpenToken]:
        """
        Check if a call should be allowed for dependency.

        Args:
            dependency: Dependency identifier

        Returns:
            - True if circuit is CLOSED (allow call)
            - False if circuit is OPEN or the half-open trial budget is spent
            - HalfOpenToken if this call is a half-open trial
        """
        with self._lock:
            circuit = self._get_circuit(dependency)
            current_time = self.clock.now()

            if circuit.state == CircuitState.CLOSED:
                return True

            if circuit.state == CircuitState.OPEN:
                if current_time - circuit.opened_at < self.cooldown_seconds:
                    return False
                self._transition(dependency, circuit, CircuitState.HALF_OPEN)

            # HALF_OPEN
            if circuit.half_open_in_flight >= self.half_open_max_calls:
                return False
            circuit.half_open_in_flight += 1
            return HalfOpenToken(
                dependency=dependency,
                timestamp=current_time,
                episode=circuit.episode
            )

    def record_success(self, dependency: str, token: Optional[HalfOpenToken] = None) -> None:
        """
        Record a successful call for dependency.

        Args:
            dependency: Dependency identifier
            token: HalfOpenToken if this was a half-open trial call
        """
        with self._lock:
            circuit = self._get_circuit(dependency)

            if circuit.state == CircuitState.HALF_OPEN:
                if not self._is_current_trial(circuit, token):
                    # Admitted before the circuit opened, or by an earlier half-open episode
                    return
                circuit.half_open_successes += 1
                if circuit.half_open_successes >= self.half_open_max_calls:
                    self._transition(dependency, circuit, CircuitState.CLOSED)
                return

            if circuit.state == CircuitState.CLOSED:
                circuit.window.append(False)

    def record_failure(self, dependency: str, token: Optional[HalfOpenToken] = None) -> None:
        """
        Record a failed call for dependency.

        Args:
            dependency: Dependency identifier
            token: HalfOpenToken if this was a half-open trial call
        """
        with self._lock:
            circuit = self._get_circuit(dependency)

            if circuit.state == CircuitState.HALF_OPEN:
                if self._is_current_trial(circuit, token):
                    # Failed trial - reopen and restart the cooldown
                    self._transition(dependency, circuit, CircuitState.OPEN)
                return

            if circuit.state == CircuitState.CLOSED:
                circuit.window.append(True)
                if self._failure_rate_exceeded(circuit):
                    self._transition(dependency, circuit, CircuitState.OPEN)

    def release(self, dependency: str, token: HalfOpenToken) -> None:
        """Return an unused half-open trial permit (the call was abandoned)."""
        with self._lock:
            circuit = self._get_circuit(dependency)
            if (circuit.state == CircuitState.HALF_OPEN
                    and self._is_current_trial(circuit, token)
                    and circuit.half_open_in_flight > 0):
                circuit.half_open_in_flight -= 1

    @staticmethod
    def _is_current_trial(circuit: CircuitBreakerState, token: Optional[HalfOpenToken]) -> bool:
        return token is not None and token.episode == circuit.episode

    def _failure_rate_exceeded(self, circuit: CircuitBreakerState) -> bool:
        calls = len(circuit.window)
        if calls < self.minimum_calls:
            return False
        failures = sum(1 for failed in circuit.window if failed)
        return failures / calls >= self.failure_rate_threshold

    def _transition(
        self,
        dependency: str,
        circuit: CircuitBreakerState,
        new_state: CircuitState
    ) -> None:
        circuit.state = new_state
        circuit.episode += 1
        circuit.half_open_in_flight = 0
        circuit.half_open_successes = 0
        if new_state == CircuitState.OPEN:
            circuit.opened_at = self.clock.now()
        elif new_state == CircuitState.CLOSED:
            circuit.window.clear()

        if self.logger:
            self.logger.circuit_breaker_state(source=dependency, state=new_state.value)

    def state(self, dependency: str) -> CircuitState:
        """
        Get current circuit state for dependency.

        Args:
            dependency: Dependency identifier

        Returns:
            Current CircuitState (CLOSED, OPEN, or HALF_OPEN)
        """
        with self._lock:
            return self._get_circuit(dependency).state

    def reset(self, dependency: str) -> None:
        """Reset circuit breaker for dependency."""
        with self._lock:
            if dependency in self._circuits:
                del self._circuits[dependency]
