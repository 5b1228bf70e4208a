"""Narrative Tracker — dev launcher. Starts the API, or replays a transcript offline."""

import argparse
import asyncio
import json
import logging
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def load_transcript(path: Path) -> list[tuple[str, str]]:
    """Read a transcript: a JSON list of strings or {author, text} objects."""
    entries = json.loads(path.read_text())
    result = []
    for entry in entries:
        if isinstance(entry, str):
            result.append(("narrator", entry))
        else:
            result.append((entry.get("author", "narrator"), entry["text"]))
    return result


async def replay(transcript: Path, data_dir: Path, conversation_id: str) -> None:
    from backend.app import create_registry
    from narrative_tracker.context import render_context_block

    registry = create_registry(data_dir)
    storage = registry.storage
    storage.delete_conversation(conversation_id)
    tracker = await registry.get(conversation_id)

    for author, text in load_transcript(transcript):
        message = storage.append_message(conversation_id, author, text)
        events = await tracker.ingest(message)
        kinds = ", ".join(e.kind.value for e in events if e.kind.value != "contextUpdated")
        print(f"#{message.index:<4} {kinds or '-'}")

    await registry.close()
    print()
    print(render_context_block(tracker.store))
    opened = [name for name, gate in tracker.gates.gates.items() if gate.state == "unlocked"]
    print(f"\nGates open: {', '.join(opened) or 'none'}")


def main():
    parser = argparse.ArgumentParser(description="Narrative Tracker dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--replay", type=Path, default=None, metavar="TRANSCRIPT",
                        help="Replay a JSON transcript through a fresh tracker and print the result")
    parser.add_argument("--conversation", default="replay",
                        help="Conversation id used by --replay (default: replay)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    if args.replay:
        asyncio.run(replay(args.replay, args.data_dir or ROOT / "data", args.conversation))
        return

    # Build env for the subprocess so the backend picks up the same data dir
    env = os.environ.copy()
    if args.data_dir:
        env["DATA_DIR"] = str(args.data_dir.resolve())

    procs: list[subprocess.Popen] = []

    def shutdown(*_):
        print("\nShutting down...")
        for p in procs:
            p.terminate()
        for p in procs:
            p.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    procs.append(subprocess.Popen(
        ["uv", "run", "uvicorn", "backend.app:app", "--reload", "--host", HOST, "--port", BACKEND_PORT],
        cwd=ROOT, env=env,
    ))

    for p in procs:
        p.wait()


if __name__ == "__main__":
    main()
