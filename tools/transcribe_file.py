# tools/transcribe_file.py
"""
Transcribe one audio file with the configured service and print the text.

    DOUBAO_ASR_APP_KEY=... DOUBAO_ASR_ACCESS_TOKEN=... \
        python tools/transcribe_file.py hello.wav

Without credentials this prints the fallback transcript. Use --strict to
exit non-zero instead.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

from config import AppConfig
from observability import logger
from services.transcription_service import TranscriptionService


async def _run(path: Path, *, strict: bool) -> int:
    config = AppConfig.load_from_env()
    logger.configure(config.log_level)
    service = TranscriptionService(config)
    audio = path.read_bytes()

    if strict:
        result = await service.attempt(audio)
        if not result.ok:
            print(f"transcription failed: {result.error}", file=sys.stderr)
            return 1
        print(result.text)
        return 0

    print(await service.transcribe(audio))
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("path", type=Path, help="raw PCM16 mono 16kHz file or a WAV file")
    parser.add_argument("--strict", action="store_true", help="fail instead of printing the fallback text")
    args = parser.parse_args()

    load_dotenv()
    return asyncio.run(_run(args.path, strict=args.strict))


if __name__ == "__main__":
    sys.exit(main())
