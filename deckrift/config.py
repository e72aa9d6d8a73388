from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parent.parent
SAVE_VERSION = 1

_TRUE = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    data_dir: Path = ROOT / "data"
    saves_dir: Path = ROOT / "saves"
    log_level: str = "INFO"
    instant_kill_bosses: bool = True
    seed: Optional[int] = None

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        seed = os.environ.get("DECKRIFT_SEED")
        return cls(
            data_dir=Path(os.environ.get("DECKRIFT_DATA_DIR", str(ROOT / "data"))),
            saves_dir=Path(os.environ.get("DECKRIFT_SAVES_DIR", str(ROOT / "saves"))),
            log_level=os.environ.get("DECKRIFT_LOG_LEVEL", "INFO").upper(),
            instant_kill_bosses=os.environ.get("DECKRIFT_INSTANT_KILL_BOSSES", "true").lower() in _TRUE,
            seed=int(seed) if seed else None,
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
