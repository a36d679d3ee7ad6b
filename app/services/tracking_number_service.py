"""Tracking number generation.

A tracking number is 16 characters over ``[A-Z0-9]``. Each call mixes the
shipment fields with four fresh entropy values (monotonic clock, wall clock,
a fast pseudo-random int and a secure random 64-bit int), so identical
shipments requested twice still get different codes.

Two strategies produce the code:
- ``Sha256CodeStrategy``: SHA-256 of the composite input, first 8 digest
  bytes as uppercase hex.
- ``FallbackCodeStrategy``: the composite input itself, uppercased and
  stripped to ``[A-Z0-9]``, then truncated or padded with clock digits.

``select_code_strategy()`` picks the strategy once, at construction time,
based on whether SHA-256 is available in this interpreter. If the selected
strategy still fails at call time the generator degrades to the fallback for
that call. Only a failure of both surfaces as ``GenerationAppError``.
"""

from __future__ import annotations

import hashlib
import logging
import random
import re
import secrets
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, NoReturn

from app.core.errors import GenerationAppError

logger = logging.getLogger(__name__)

TRACKING_NUMBER_LENGTH = 16
TRACKING_NUMBER_PATTERN = re.compile(r"^[A-Z0-9]{16}$")

_NON_ALPHANUMERIC = re.compile(r"[^A-Z0-9]")
_HEX_DIGITS = "0123456789ABCDEF"

# Per-thread fast PRNG; each worker thread seeds its own instance from the OS.
_thread_local = threading.local()


def _fast_random() -> random.Random:
    rng = getattr(_thread_local, "rng", None)
    if rng is None:
        rng = random.Random()
        _thread_local.rng = rng
    return rng


class HashUnavailableError(RuntimeError):
    """Raised when the SHA-256 primitive cannot be used in this process."""


@dataclass(frozen=True)
class EntropySample:
    """Per-call entropy mixed into the composite input."""

    monotonic_ns: int
    wall_clock_ms: int
    fast_random: int
    secure_random: int


class EntropySource:
    """Samples fresh entropy on every call; safe for concurrent callers."""

    def sample(self) -> EntropySample:
        return EntropySample(
            monotonic_ns=time.monotonic_ns(),
            wall_clock_ms=time.time_ns() // 1_000_000,
            # Signed 32-bit and 64-bit ranges
            fast_random=_fast_random().getrandbits(32) - (1 << 31),
            secure_random=secrets.randbits(64) - (1 << 63),
        )


@dataclass(frozen=True)
class ShipmentFields:
    origin: str
    destination: str
    weight: float
    customer_id: str


class CodeStrategy(ABC):
    """Turns shipment fields plus entropy into a 16-character code."""

    name: str = "abstract"

    @abstractmethod
    def build(self, fields: ShipmentFields, entropy: EntropySample) -> str:
        raise NotImplementedError


def _sha256_digest(data: bytes) -> bytes:
    try:
        hasher = hashlib.new("sha256")
    except ValueError as exc:
        raise HashUnavailableError("SHA-256 is not available") from exc
    hasher.update(data)
    return hasher.digest()


class Sha256CodeStrategy(CodeStrategy):
    """Primary strategy: hex of the first 8 bytes of a SHA-256 digest.

    ``digest`` can be replaced by a narrower hash; results shorter than 16
    characters are padded with pseudo-random hex digits.
    """

    name = "sha256"

    def __init__(self, digest: Callable[[bytes], bytes] = _sha256_digest) -> None:
        self._digest = digest

    @staticmethod
    def composite_input(fields: ShipmentFields, entropy: EntropySample) -> str:
        return (
            f"{fields.origin}{fields.destination}{fields.weight:.3f}{fields.customer_id}"
            f"{entropy.monotonic_ns}{entropy.wall_clock_ms}"
            f"{entropy.fast_random}{entropy.secure_random}"
        )

    def build(self, fields: ShipmentFields, entropy: EntropySample) -> str:
        data = self.composite_input(fields, entropy).encode("utf-8", errors="surrogatepass")
        code = self._digest(data)[:8].hex().upper()
        if len(code) < TRACKING_NUMBER_LENGTH:
            rng = _fast_random()
            code += "".join(
                rng.choice(_HEX_DIGITS)
                for _ in range(TRACKING_NUMBER_LENGTH - len(code))
            )
        return code[:TRACKING_NUMBER_LENGTH]


class FallbackCodeStrategy(CodeStrategy):
    """Hash-free strategy: clean the composite input down to ``[A-Z0-9]``."""

    name = "fallback"

    def __init__(self, clock_ns: Callable[[], int] = time.monotonic_ns) -> None:
        self._clock_ns = clock_ns

    @staticmethod
    def composite_input(fields: ShipmentFields, entropy: EntropySample) -> str:
        # ".0f" keeps inf/nan and overflowing weights printable instead of raising
        return (
            f"{fields.origin}{fields.destination}{fields.weight * 1000:.0f}"
            f"{fields.customer_id[:8]}"
            f"{entropy.monotonic_ns}{entropy.wall_clock_ms}{entropy.fast_random}"
        )

    def build(self, fields: ShipmentFields, entropy: EntropySample) -> str:
        code = _NON_ALPHANUMERIC.sub("", self.composite_input(fields, entropy).upper())
        while len(code) < TRACKING_NUMBER_LENGTH:
            code += str(self._clock_ns())
        return code[:TRACKING_NUMBER_LENGTH]


def sha256_available() -> bool:
    """Capability check for the primary strategy."""
    try:
        hashlib.new("sha256")
    except ValueError:
        return False
    return True


def select_code_strategy() -> CodeStrategy:
    """Pick the strategy for this process: SHA-256 when available."""
    if sha256_available():
        return Sha256CodeStrategy()
    logger.warning("tracking.strategy_selected", extra={"strategy": FallbackCodeStrategy.name})
    return FallbackCodeStrategy()


class GenerationObserver(ABC):
    """Receives generation outcomes; implementations must be thread-safe."""

    @abstractmethod
    def record_generated(self, duration_seconds: float, strategy: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def record_fallback(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def record_failure(self) -> None:
        raise NotImplementedError


class NullGenerationObserver(GenerationObserver):
    def record_generated(self, duration_seconds: float, strategy: str) -> None:
        pass

    def record_fallback(self) -> None:
        pass

    def record_failure(self) -> None:
        pass


class TrackingNumberGenerator:
    """Produces tracking numbers for shipments.

    The generator holds no per-call state. It is safe to share one instance
    across worker threads.
    """

    def __init__(
        self,
        *,
        strategy: CodeStrategy | None = None,
        fallback: CodeStrategy | None = None,
        entropy: EntropySource | None = None,
        observer: GenerationObserver | None = None,
    ) -> None:
        self._strategy = strategy or select_code_strategy()
        self._fallback = fallback or FallbackCodeStrategy()
        self._entropy = entropy or EntropySource()
        self._observer = observer or NullGenerationObserver()

    @property
    def strategy_name(self) -> str:
        return self._strategy.name

    def generate(
        self,
        origin: str,
        destination: str,
        weight: float,
        customer_id: str,
    ) -> str:
        """Generate a 16-character ``[A-Z0-9]`` tracking number.

        Inputs are not validated; any strings and any float are accepted.

        Raises:
            GenerationAppError: If entropy cannot be sampled or both the
                selected and the fallback strategy fail.
        """
        start = time.perf_counter()
        fields = ShipmentFields(origin, destination, weight, customer_id)

        try:
            entropy = self._entropy.sample()
        except Exception as exc:
            self._fail(exc, stage="entropy")

        strategy = self._strategy
        try:
            code = strategy.build(fields, entropy)
        except Exception as exc:
            logger.warning(
                "tracking.primary_failed",
                extra={
                    "strategy": strategy.name,
                    "error_type": type(exc).__name__,
                    "fallback": self._fallback.name,
                },
            )
            self._observer.record_fallback()
            strategy = self._fallback
            try:
                code = strategy.build(fields, entropy)
            except Exception as fallback_exc:
                self._fail(fallback_exc, stage="fallback")

        duration = time.perf_counter() - start
        self._observer.record_generated(duration, strategy.name)
        logger.info(
            "tracking.generated",
            extra={
                "tracking_number": code,
                "origin_country_id": origin,
                "destination_country_id": destination,
                "customer_id": customer_id,
                "strategy": strategy.name,
                "duration_ms": round(duration * 1000, 3),
            },
        )
        return code

    def _fail(self, exc: Exception, *, stage: str) -> NoReturn:
        self._observer.record_failure()
        logger.error(
            "tracking.generation_failed",
            extra={"stage": stage, "error_type": type(exc).__name__, "error_msg": str(exc)},
        )
        raise GenerationAppError(
            code="TRACKING_NUMBER_GENERATION_FAILED",
            message="Unable to generate tracking number. Please try again.",
        ) from exc
