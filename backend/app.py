import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from backend import config
from backend.routes import router
from narrative_tracker.consumers import RumorMill
from narrative_tracker.storage import Storage
from narrative_tracker.tracker import ConversationTracker, TrackerRegistry

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_registry(data_dir: Path) -> TrackerRegistry:
    """Registry whose trackers read settings from config.json and carry a rumor mill."""
    registry = TrackerRegistry(Storage(data_dir), settings=lambda: config.get_config(data_dir))

    def attach_rumors(tracker: ConversationTracker) -> None:
        settings = config.get_config(data_dir)
        mill = RumorMill(
            tracker.bus,
            tracker.gates,
            lambda: tracker.store,
            cooldown=settings["rumor_cooldown"],
            count=settings["rumor_count"],
            seed=tracker.conversation_id,
        )
        mill.refresh(tracker.cursor)
        tracker.extensions["rumors"] = mill

    registry.on_open.append(attach_rumors)
    return registry


def resolve_data_dir(data_dir: Path | None = None) -> Path:
    return data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))


def create_app(data_dir: Path | None = None) -> FastAPI:
    resolved = resolve_data_dir(data_dir)
    registry = create_registry(resolved)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await registry.close()

    app = FastAPI(title="Narrative Tracker", lifespan=lifespan)
    app.state.data_dir = resolved
    app.state.registry = registry
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
