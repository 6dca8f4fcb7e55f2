"""Visual Novel Engine — launcher. Plays a script in the terminal or starts the API server."""

import argparse
import asyncio
import logging
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13015")
LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")


def _print_line(display) -> None:
    if display.show_continue:
        label = f"{display.speaker}: " if display.speaker else ""
        print(f"{label}{display.text}", flush=True)


async def play(args: argparse.Namespace) -> None:
    from vn_engine import config
    from vn_engine.errors import StreamError
    from vn_engine.ingest import StreamIngestor
    from vn_engine.playback import PlaybackController, PlaybackState
    from vn_engine.scene import RecordingCanvas, Scene
    from vn_engine.stream import HttpEventSource, ScriptedEventSource

    config.init_config(args.data_dir)
    settings = config.get_config()
    scene = Scene(RecordingCanvas(), hidden_characters=settings.hidden_characters)
    controller = PlaybackController(scene, settings, on_display=_print_line)
    if not controller.auto_mode:
        controller.toggle_auto_mode()

    if args.stream or args.simulate:
        if args.stream:
            source = HttpEventSource(
                args.stream,
                body={"message": args.message},
                api_key=os.getenv("VN_API_KEY", ""),
            )
        else:
            source = ScriptedEventSource(args.simulate.read_text(), delay=0.05)
        ingestor = StreamIngestor(controller, timeout=settings.stream_timeout)
        try:
            choices = await ingestor.consume(source)
        except StreamError as e:
            print(f"\n[stream failed] {e}", file=sys.stderr)
            choices = []
    else:
        controller.load_script(args.script.read_text())
        await controller.start_playback()
        choices = controller.transition_points

    while controller.state not in (PlaybackState.ENDED, PlaybackState.IDLE):
        await asyncio.sleep(0.05)

    if choices:
        print("\nWhat next?")
        for i, choice in enumerate(choices, start=1):
            print(f"  {i}. {choice}")


def serve(args: argparse.Namespace) -> None:
    env = os.environ.copy()
    env["DATA_DIR"] = str(args.data_dir.resolve())
    print(f"Starting API on http://localhost:{PORT} ...")
    proc = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "vn_engine.app:app", "--reload", "--host", HOST, "--port", PORT],
        cwd=ROOT, env=env,
    )
    try:
        proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        proc.terminate()
        proc.wait()


def main():
    parser = argparse.ArgumentParser(description="Visual Novel Engine launcher")
    parser.add_argument("--data-dir", type=Path, default=Path(os.getenv("DATA_DIR", "data")),
                        help="Settings directory (default: ./data)")
    parser.add_argument("--script", type=Path, help="Play a script file in the terminal")
    parser.add_argument("--simulate", type=Path,
                        help="Play a script file as if it were streaming in")
    parser.add_argument("--stream", default=os.getenv("VN_STREAM_URL"),
                        help="Play a story streamed from this SSE endpoint")
    parser.add_argument("--message", default="Continue the story",
                        help="Message sent to the stream endpoint")
    args = parser.parse_args()

    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    if args.script or args.simulate or args.stream:
        try:
            asyncio.run(play(args))
        except KeyboardInterrupt:
            pass
    else:
        serve(args)


if __name__ == "__main__":
    main()
