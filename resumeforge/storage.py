# storage.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from gridfs import GridFSBucket
from gridfs.errors import NoFile
from pymongo.database import Database

from resumeforge.errors import NotFound

logger = logging.getLogger(__name__)


@dataclass
class StoredFile:
    file_id: ObjectId
    filename: str
    content_type: str
    data: bytes
    metadata: Dict[str, Any]


class ResumeStorage:
    """Uploaded resumes and rendered PDFs, kept in two GridFS buckets."""

    def __init__(self, db: Database):
        self.resumes = GridFSBucket(db, bucket_name="resumes")
        self.optimized = GridFSBucket(db, bucket_name="optimized")

    def _save(self, bucket: GridFSBucket, data: bytes, filename: str,
              content_type: str, metadata: Dict[str, Any]) -> ObjectId:
        meta = {**metadata, "contentType": content_type}
        file_id = bucket.upload_from_stream(filename, data, metadata=meta)
        logger.info("Stored %s (%d bytes) as %s", filename, len(data), file_id)
        return file_id

    def _open(self, bucket: GridFSBucket, file_id, what: str) -> StoredFile:
        try:
            oid = file_id if isinstance(file_id, ObjectId) else ObjectId(str(file_id))
            grid_out = bucket.open_download_stream(oid)
        except (InvalidId, NoFile):
            raise NotFound(f"{what} not found")
        meta = grid_out.metadata or {}
        return StoredFile(
            file_id=oid,
            filename=grid_out.filename,
            content_type=meta.get("contentType") or "application/octet-stream",
            data=grid_out.read(),
            metadata=meta,
        )

    def save_resume(self, user: Dict[str, Any], data: bytes, filename: str, content_type: str) -> ObjectId:
        return self._save(self.resumes, data, f"{user['_id']}-{filename}", content_type, {
            "userId": user["_id"],
            "email": user.get("email"),
            "originalFilename": filename,
        })

    def save_optimized(self, user: Dict[str, Any], data: bytes,
                       original_filename: Optional[str]) -> ObjectId:
        created = datetime.now(timezone.utc)
        name = f"{user['_id']}-optimized-{int(created.timestamp())}.pdf"
        return self._save(self.optimized, data, name, "application/pdf", {
            "userId": user["_id"],
            "createdAt": created,
            "originalFilename": original_filename,
        })

    def open_resume(self, file_id) -> StoredFile:
        return self._open(self.resumes, file_id, "Resume")

    def open_optimized(self, file_id) -> StoredFile:
        return self._open(self.optimized, file_id, "Optimized resume")

    def delete_resume(self, file_id) -> bool:
        """Drop a replaced upload. Returns False when it was already gone."""
        try:
            oid = file_id if isinstance(file_id, ObjectId) else ObjectId(str(file_id))
            self.resumes.delete(oid)
        except (InvalidId, NoFile):
            logger.warning("Resume %s already removed", file_id)
            return False
        logger.info("Deleted resume %s", oid)
        return True
