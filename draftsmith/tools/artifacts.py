"""Version-safe persistence of generated content."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

from draftsmith.errors import PersistenceGuardRejection
from draftsmith.tools.read_write import DocumentStore
from draftsmith.utils.frontmatter import parse_frontmatter, serialize_frontmatter
from draftsmith.utils.versions import decide_write

ProvenanceStatus = Literal["ai_suggestion", "generated", "user"]


class ArtifactMetadata(BaseModel):
    """Frontmatter written ahead of every generated document."""

    type: str = Field(description="Content type, e.g. character, chapter, outline")
    scope_id: str = Field(description="Owning scope, e.g. a book or character id")
    status: ProvenanceStatus = Field("generated", description="Provenance of the body")
    sources: list[str] = Field(
        default_factory=list,
        description="Context documents used as generation input",
    )
    created: Optional[str] = None
    modified: Optional[str] = None
    extra: dict = Field(default_factory=dict, description="Additional frontmatter keys")

    def to_frontmatter(self, now: str, created: Optional[str] = None) -> dict:
        data = {
            "type": self.type,
            "scope_id": self.scope_id,
            "status": self.status,
            "created": self.created or created or now,
            "modified": now,
            "sources": list(self.sources),
        }
        data.update(self.extra)
        return data


@dataclass
class WriteResult:
    """Outcome of one artifact write."""

    status: Literal["written", "versioned", "overwritten", "rejected", "failed"]
    path: Optional[str] = None
    canonical_path: Optional[str] = None
    snapshot: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status in ("written", "versioned", "overwritten")


class VersionedArtifactWriter:
    """Writes generated documents without destroying existing work.

    Occupied canonical slots receive a versioned sibling (``name_v2.md``,
    ``name_v3.md``...). Only ``regenerate_artifact`` replaces a canonical
    file, and only when explicitly confirmed. Neither path ever replaces a
    populated body with a blank one.

    The check-then-write sequence is not transactional: two concurrent writes
    to one slot can both pick the same version name.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    async def write_artifact(
        self,
        slot_dir: str,
        canonical_name: str,
        metadata: ArtifactMetadata,
        content: str,
    ) -> WriteResult:
        """Write to the canonical slot, or a versioned alternate if occupied."""
        return await self._write(slot_dir, canonical_name, metadata, content, overwrite=False)

    async def regenerate_artifact(
        self,
        slot_dir: str,
        canonical_name: str,
        metadata: ArtifactMetadata,
        content: str,
        confirmed: bool = False,
    ) -> WriteResult:
        """Replace the canonical slot after explicit confirmation.

        The previous file is snapshotted into ``.drafts`` first.

        Raises:
            ValueError: If the overwrite was not confirmed
        """
        if not confirmed:
            raise ValueError("Regenerating over an existing file requires confirmation")
        return await self._write(slot_dir, canonical_name, metadata, content, overwrite=True)

    async def _write(
        self,
        slot_dir: str,
        canonical_name: str,
        metadata: ArtifactMetadata,
        content: str,
        overwrite: bool,
    ) -> WriteResult:
        canonical_path = str(Path(slot_dir) / canonical_name)

        existing_names = await asyncio.to_thread(self.store.list_names, slot_dir)
        existing_frontmatter: dict = {}
        existing_body: Optional[str] = None
        if canonical_name in existing_names:
            success, raw, error = await asyncio.to_thread(self.store.read, canonical_path)
            if not success:
                return WriteResult(status="failed", canonical_path=canonical_path, error=error)
            existing_frontmatter, existing_body = parse_frontmatter(raw)

        try:
            decision = decide_write(
                canonical_name, existing_names, existing_body, content, overwrite=overwrite
            )
        except PersistenceGuardRejection as e:
            return WriteResult(
                status="rejected",
                canonical_path=canonical_path,
                error=str(e),
            )

        target_path = str(Path(slot_dir) / decision.target_name)
        now = datetime.now(timezone.utc).isoformat()

        snapshot_name = None
        created = None
        if decision.overwrites:
            created = existing_frontmatter.get("created")
            success, snapshot_name, error = await asyncio.to_thread(
                self.store.snapshot, canonical_path
            )
            if not success:
                return WriteResult(status="failed", canonical_path=canonical_path, error=error)

        document = serialize_frontmatter(metadata.to_frontmatter(now, created=created), content)
        success, error = await asyncio.to_thread(self.store.write, target_path, document)
        if not success:
            return WriteResult(status="failed", canonical_path=canonical_path, error=error)

        if decision.overwrites:
            status = "overwritten"
        elif decision.versioned:
            status = "versioned"
        else:
            status = "written"

        return WriteResult(
            status=status,
            path=target_path,
            canonical_path=canonical_path,
            snapshot=snapshot_name,
        )
