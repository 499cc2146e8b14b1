"""
Command-line interface for voxai.

Synthesizes speech without running the HTTP server (unmetered: the CLI
runs the pipeline directly and never touches the credit ledger), lists
voices, and can start the API server.

Usage Examples:
    # Direct synthesis
    voxai "Hello there" --voice Kore --out hello.wav

    # Batch synthesis, one line per item
    voxai --file lines.txt --out out_dir/

    # Transcribe a clip and re-speak it
    voxai --mode convert --audio clip.mp3 --out converted.wav

    # Dub a clip into Spanish
    voxai --mode dub --audio clip.mp3 --language Spanish --out dubbed.wav

    # Dry run: validate and show cost without calling the model
    voxai --text "Test" --dry-run --json

    # Voice catalog
    voxai --voices --query calm

    # Serve the API
    voxai --serve --port 3000

Environment Variables:
    VOXAI_SETTINGS: Settings file (default config/settings.yaml)
    GEMINI_API_KEY: Gemini API key
"""

from __future__ import annotations

import argparse
import asyncio
import json
import mimetypes
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from voxai.core.config import VoxServiceConfig, load_settings, settings_path
from voxai.core.logging import configure_logging, get_logger, info, set_request_id
from voxai.services.errors import VoxError
from voxai.tts.model import get_speech_model
from voxai.tts.pipeline import GenerationPipeline, GenerationRequest, Mode, Upload
from voxai.tts.voices import get_voice, list_voices
from voxai.utils.audio import pcm16_duration_seconds


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="voxai CLI (serverless speech generation)")

    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--file", help="Batch input file (1 line = 1 item)")
    parser.add_argument("--audio", help="Audio clip for convert/dub modes")
    parser.add_argument("--mode", choices=[m.value for m in Mode], default=Mode.DIRECT.value,
                        help="Generation mode")

    parser.add_argument("--out", help="Output path (file or dir in batch mode)")

    parser.add_argument("--voice", help="Voice id override")
    parser.add_argument("--language", help="Dub target language")

    parser.add_argument("--dry-run", action="store_true",
                        help="Validate and summarize without calling the model")
    parser.add_argument("--json", action="store_true", help="Print JSON summary")

    parser.add_argument("--voices", action="store_true", help="List available voices")
    parser.add_argument("--query", help="Filter --voices by name or tag")

    parser.add_argument("--serve", action="store_true", help="Run the HTTP API")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=3000)

    return parser.parse_args(argv)


def _build_requests(args: argparse.Namespace, config: VoxServiceConfig) -> List[GenerationRequest]:
    mode = Mode(args.mode)
    voice_id = args.voice or config.model.default_voice
    get_voice(voice_id)

    if mode is not Mode.DIRECT:
        if not args.audio:
            raise SystemExit(f"--audio is required for {mode.value} mode.")
        path = Path(args.audio)
        mime_type = mimetypes.guess_type(path.name)[0] or "audio/wav"
        upload = Upload(data=path.read_bytes(), mime_type=mime_type)
        return [GenerationRequest(mode=mode, upload=upload, voice_id=voice_id,
                                  target_language=args.language)]

    text = args.text or args.text_pos
    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        lines = Path(args.file).read_text(encoding="utf-8").splitlines()
        items = [line.strip() for line in lines if line.strip()]
        if not items:
            raise SystemExit("Input file is empty.")
        return [GenerationRequest(mode=mode, text=t, voice_id=voice_id) for t in items]

    if not text:
        raise SystemExit("Provide --text or a positional text.")
    return [GenerationRequest(mode=mode, text=text, voice_id=voice_id)]


def _resolve_output_paths(args: argparse.Namespace, count: int) -> List[Path]:
    if args.file:
        out_dir = Path(args.out or "out")
        out_dir.mkdir(parents=True, exist_ok=True)
        return [out_dir / f"item_{i + 1:03d}.wav" for i in range(count)]

    out_path = Path(args.out or "out.wav")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    return [out_path]


def _summary_for_request(req: GenerationRequest, config: VoxServiceConfig) -> dict:
    summary = {
        "mode": req.mode.value,
        "voice": req.voice_id,
    }
    if req.mode is Mode.DIRECT:
        summary["chars"] = len(req.text)
        summary["cost"] = len(req.text)
    else:
        summary["upload_bytes"] = len(req.upload.data) if req.upload else 0
        summary["mime_type"] = req.upload.mime_type if req.upload else None
        summary["cost"] = None  # known only after transcription
        if req.mode is Mode.DUB:
            summary["target_language"] = req.target_language or config.model.default_target_language
    return summary


def _print(payload: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def main(argv: Optional[List[str]] = None, pipeline: Optional[GenerationPipeline] = None) -> int:
    """
    CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
        pipeline: Pipeline to use instead of one built from settings.

    Returns:
        Exit code (0 for success, 1 for generation errors).
    """
    args = _parse_args(argv)

    if args.voices:
        voices = [v.to_dict() for v in list_voices(args.query)]
        if args.json:
            print(json.dumps({"voices": voices}, ensure_ascii=False))
        else:
            for v in voices:
                print(f"{v['id']:<8} {v['gender']:<7} {v['name']}  [{', '.join(v['tags'])}]")
        return 0

    if args.serve:
        import uvicorn
        uvicorn.run("voxai.main:app", host=args.host, port=args.port)
        return 0

    configure_logging()
    log = get_logger("voxai.cli")
    set_request_id(str(uuid4())[:12])

    config = load_settings(settings_path(), missing_ok=True).get_service_config()

    try:
        requests = _build_requests(args, config)
    except VoxError as e:
        _print(e.to_dict(), args.json)
        return 1
    out_paths = _resolve_output_paths(args, len(requests))

    if pipeline is None:
        # Model clients connect lazily, so a dry run never reaches the network.
        pipeline = GenerationPipeline(
            get_speech_model(config.model),
            max_chars=config.billing.max_chars,
            default_target_language=config.model.default_target_language,
        )

    if args.dry_run:
        try:
            for req in requests:
                pipeline.check_preconditions(req)
        except VoxError as e:
            _print(e.to_dict(), args.json)
            return 1
        payload = {"ok": True, "dry_run": True, "items": [_summary_for_request(r, config) for r in requests]}
        if not args.json:
            info(log, "dry_run", items=len(requests))
        _print(payload, args.json)
        print("DRY_RUN_OK")
        return 0

    results = []
    for req, out_path in zip(requests, out_paths):
        info(log, "generate_start", mode=req.mode.value, voice=req.voice_id, out=str(out_path))
        outcome = asyncio.run(pipeline.run(req))
        if not outcome.completed:
            err = outcome.error.to_dict() if outcome.error else {"ok": False, "error": outcome.state.value}
            _print(err, args.json)
            return 1

        out_path.write_bytes(outcome.wav)
        results.append({
            "out": str(out_path),
            "bytes": len(outcome.wav),
            "sample_rate": outcome.sample_rate,
            "seconds": round(pcm16_duration_seconds(len(outcome.pcm), outcome.sample_rate), 3),
            "text": outcome.text,
            "cost": outcome.cost,
        })

    _print({"ok": True, "dry_run": False, "items": results}, args.json)
    print("CLI_OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
