import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(ROOT_DIR / ".env")

import uvicorn  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

from database.base import init_db  # noqa: E402
from handlers.health_handler import router as health_router  # noqa: E402
from handlers.project_handler import router as project_router  # noqa: E402
from handlers.timeline_handler import router as timeline_router  # noqa: E402

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


def _attach_file_handler(
    logger_name: str,
    log_file_path: Path,
    level_name: str | None = None,
) -> None:
    logger_level = (level_name or LOG_LEVEL).upper()
    logger_level_value = getattr(logging, logger_level, logging.INFO)

    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setLevel(logger_level_value)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    target_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(log_file_path)
        for handler in target_logger.handlers
    ):
        target_logger.addHandler(file_handler)
    target_logger.setLevel(logger_level_value)


EDITOR_LOG_FILE = os.getenv("EDITOR_LOG_FILE", "").strip()
EDITOR_LOG_LEVEL = os.getenv("EDITOR_LOG_LEVEL", LOG_LEVEL).strip()
if EDITOR_LOG_FILE:
    editor_log_path = Path(EDITOR_LOG_FILE)
    if not editor_log_path.is_absolute():
        editor_log_path = ROOT_DIR / editor_log_path
    _attach_file_handler("operators", editor_log_path, level_name=EDITOR_LOG_LEVEL)
    _attach_file_handler("handlers", editor_log_path, level_name=EDITOR_LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Screen Recording Editor Backend", lifespan=lifespan)


app.include_router(health_router)
app.include_router(project_router)
app.include_router(timeline_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:4173",
        "http://localhost:5173",
        "http://localhost:5174",
    ],
    allow_origin_regex=r"^null$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
