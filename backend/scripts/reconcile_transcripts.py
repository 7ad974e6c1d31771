#!/usr/bin/env python3
"""Reconstruye transcripciones ordenadas a partir de `transcripts.jsonl`."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path

from callbridge.channels.voice.reconcile import load_records, reconcile, transcript_for_call
from callbridge.core.config import settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Ordena los fragmentos de transcripción por sesión y pista usando sequenceId. "
            "Los fragmentos finales cierran su posición; los parciales repetidos se descartan."
        )
    )
    parser.add_argument(
        "--input",
        default=settings.transcript_log_path,
        help=f"Archivo JSONL de transcripciones (default: {settings.transcript_log_path}).",
    )
    parser.add_argument("--call-sid", help="Limita la salida a una llamada.")
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="text (default) imprime una línea por pista; json emite los segmentos completos.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    source = Path(args.input).expanduser()
    if not source.exists():
        print(f"[reconcile] ERROR: no existe {source}", file=sys.stderr)
        return 1

    records = load_records(source)
    transcripts = transcript_for_call(records, args.call_sid) if args.call_sid else reconcile(records)

    if not transcripts:
        print("[reconcile] Sin transcripciones para los filtros indicados.", file=sys.stderr)
        return 0

    for transcript in transcripts:
        if args.format == "json":
            print(json.dumps(asdict(transcript), ensure_ascii=False))
            continue
        marker = "" if transcript.complete else " (parcial)"
        print(
            f"[{transcript.call_sid}] {transcript.transcription_sid} {transcript.track}{marker}: "
            f"{transcript.text}"
        )
    return 0


if __name__ == "__main__":  # pragma: no cover - script manual
    sys.exit(main())
