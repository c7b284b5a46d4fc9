"""
Fallback transcript generator.

Used when live recognition is unconfigured or the attempt failed. Produces a
deterministic placeholder after an artificial delay that stands in for
network latency. Never raises (cancellation aside).
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Sequence

from constants import FALLBACK_DEFAULT_SEED, FALLBACK_DELAY_S, FALLBACK_PHRASES


class FallbackTranscriber:
    """
    Deterministic placeholder transcriber.

    The same seed always yields the same phrase, independent of the audio
    and of how many times transcribe() was called.
    """

    def __init__(
        self,
        *,
        delay_s: float = FALLBACK_DELAY_S,
        seed: int | None = None,
        phrases: Sequence[str] = FALLBACK_PHRASES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not phrases or not all(phrases):
            raise ValueError("fallback phrases must be non-empty strings")
        self._delay_s = max(0.0, delay_s)
        self._seed = FALLBACK_DEFAULT_SEED if seed is None else seed
        self._phrases = tuple(phrases)
        self._sleep = sleep

    @property
    def delay_s(self) -> float:
        return self._delay_s

    def pick(self) -> str:
        # The default seed maps to the first phrase so an unconfigured
        # install shows the "configure your key" hint.
        if self._seed == FALLBACK_DEFAULT_SEED:
            return self._phrases[0]
        return random.Random(self._seed).choice(self._phrases)

    async def transcribe(self, audio: bytes) -> str:  # pylint: disable=unused-argument
        if self._delay_s > 0:
            await self._sleep(self._delay_s)
        return self.pick()
