"""Raw fetch artifacts: HTML body on disk plus a JSON sidecar and a ``snapshots`` row."""

import asyncio
import json
import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession

from edgescore.core.config import get_settings
from edgescore.models.snapshot import Snapshot

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^a-zA-Z0-9_.-]+")


@dataclass(frozen=True)
class SnapshotMeta:
    source_id: str
    sport: str
    url: str
    fetch_method: str
    http_status: int | None
    duration_ms: int
    size_bytes: int
    fetched_at: datetime
    html_path: str


def _safe(part: str) -> str:
    return _UNSAFE.sub("-", part).strip("-") or "unknown"


class SnapshotStore:
    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root if root is not None else get_settings().snapshot_dir)

    def _html_path(self, source_id: str, sport: str, fetched_at: datetime) -> Path:
        stamp = fetched_at.strftime("%Y%m%dT%H%M%S%fZ")
        return self.root / _safe(source_id) / _safe(sport) / f"{stamp}.html"

    @staticmethod
    def _write(html_path: Path, html: str, meta: SnapshotMeta) -> None:
        html_path.parent.mkdir(parents=True, exist_ok=True)
        html_path.write_text(html, encoding="utf-8")
        meta_payload = asdict(meta)
        meta_payload["fetched_at"] = meta.fetched_at.isoformat()
        html_path.with_suffix(".json").write_text(json.dumps(meta_payload, indent=2), encoding="utf-8")

    async def save(
        self,
        db: AsyncSession,
        *,
        source_id: str,
        sport: str,
        url: str,
        fetch_method: str,
        http_status: int | None,
        duration_ms: int,
        html: str,
        fetched_at: datetime,
    ) -> SnapshotMeta:
        html_path = self._html_path(source_id, sport, fetched_at)
        meta = SnapshotMeta(
            source_id=source_id,
            sport=sport,
            url=url,
            fetch_method=fetch_method,
            http_status=http_status,
            duration_ms=duration_ms,
            size_bytes=len(html.encode("utf-8")),
            fetched_at=fetched_at,
            html_path=str(html_path),
        )
        await asyncio.to_thread(self._write, html_path, html, meta)

        db.add(
            Snapshot(
                source_slug=source_id,
                sport=sport,
                url=url,
                fetch_method=fetch_method,
                http_status=http_status,
                duration_ms=duration_ms,
                size_bytes=meta.size_bytes,
                html_path=meta.html_path,
                fetched_at=fetched_at,
            )
        )
        await db.flush()
        logger.info(
            "Snapshot saved",
            extra={"source": source_id, "sport": sport, "size_bytes": meta.size_bytes, "html_path": meta.html_path},
        )
        return meta

    async def load(self, html_path: str | Path) -> str:
        return await asyncio.to_thread(Path(html_path).read_text, encoding="utf-8")
