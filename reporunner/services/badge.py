"""Status badge: an SVG showing whether the latest job succeeded."""

import logging
from enum import Enum
from html import escape
from pathlib import Path
from typing import Optional

from ..schemas.job import JobState

logger = logging.getLogger(__name__)

BADGE_FILE_NAME = "status.svg"


class BadgeState(str, Enum):
    OK = "OK"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def from_job_state(cls, state: Optional[JobState]) -> "BadgeState":
        if state == JobState.COMPLETED:
            return cls.OK
        if state == JobState.FAILED:
            return cls.FAILED
        return cls.UNKNOWN


_COLORS = {
    BadgeState.OK: "#26a269",
    BadgeState.FAILED: "#c01c28",
    BadgeState.UNKNOWN: "#5e5c64",
}

_TEMPLATE = """<?xml version="1.0" encoding="UTF-8" standalone="no"?>
<svg width="280" height="36" version="1.1" xmlns="http://www.w3.org/2000/svg" xmlns:svg="http://www.w3.org/2000/svg">
  <path style="fill:#5e5c64" d="M 137.99998,36 H 7.999996 C 3.568002,36 0,32.431994 0,28 V 8 C 0,3.568002 3.568002,0 7.999996,0 V 0 H 137.99998" />
  <path style="fill:{color}" d="m 137.99998,0 h 133.99998 c 4.43199,0 7.99997,3.568002 7.99997,8 v 20 c 0,4.431994 -3.56798,8 -7.99997,8 H 137.99998" />
  <text style="font-size:28px;font-family:sans-serif;fill:#ffffff;stroke-width:8" x="8" y="28">{name}</text>
  <text style="font-size:28px;font-family:sans-serif;fill:#ffffff;stroke-width:8" x="146" y="28">{status}</text>
</svg>"""


def render_badge(state: BadgeState, name: str) -> str:
    return _TEMPLATE.format(color=_COLORS[state], name=escape(name), status=state.value)


class Badge:
    """Writes ``<work_dir>/status.svg``."""

    def __init__(self, work_dir: Path | str, name: str = "Status") -> None:
        self.path = Path(work_dir) / BADGE_FILE_NAME
        self.name = name

    def write(self, state: BadgeState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(render_badge(state, self.name), encoding="utf-8")
        logger.debug(f"Badge set to {state.value}")

    def read(self) -> str:
        if not self.path.exists():
            return render_badge(BadgeState.UNKNOWN, self.name)
        return self.path.read_text(encoding="utf-8")
