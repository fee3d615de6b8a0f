"""
RxScribe Backend: Record Persistence Collaborator
==================================================

What:  The boundary to the health-record store: create_record(fields,
       attachment) -> record_id.
How:   RecordStore is the abstract contract the save flow depends on.
       SQLRecordStore is the default adapter: it writes the optional
       attachment through FileService, inserts a HealthRecord row and
       commits, all or nothing.
Who:   HandwritingSession.save(); built per request by the records route.

Atomicity:
    attachment written → row inserted → commit
    Any failure after the attachment is written removes the file and rolls
    the session back, so a failed save leaves nothing behind.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.record import HealthRecord
from app.schemas.records import RecordFields, UploadedImage
from app.services.file_service import FileService, file_service

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Contract of the external record-persistence collaborator."""

    @abstractmethod
    async def create_record(
        self,
        fields: RecordFields,
        attachment: Optional[UploadedImage] = None,
    ) -> str:
        """
        Persist one record and return its identifier.

        Raises:
            Any exception on failure; nothing may be left persisted.
        """
        ...


class SQLRecordStore(RecordStore):
    """RecordStore backed by the health_records table."""

    def __init__(self, db: AsyncSession, files: Optional[FileService] = None):
        self.db = db
        self.files = files or file_service

    async def create_record(
        self,
        fields: RecordFields,
        attachment: Optional[UploadedImage] = None,
    ) -> str:
        absolute_path: Optional[str] = None
        relative_path: Optional[str] = None

        if attachment is not None:
            absolute_path, relative_path = await self.files.store_file(
                attachment.content, attachment.extension
            )

        try:
            record = HealthRecord(
                id=uuid.uuid4(),
                owner_id=fields.owner_id,
                title=fields.title,
                type=fields.type,
                date=fields.date,
                provider=fields.provider,
                notes=fields.notes,
                attachment_path=relative_path,
                attachment_mime_type=attachment.mime_type if attachment is not None else None,
            )
            self.db.add(record)
            await self.db.flush()
            await self.db.commit()
        except Exception:
            logger.error("Failed to insert %s record for owner %s", fields.type, fields.owner_id)
            await self.db.rollback()
            if absolute_path:
                await self.files.cleanup_file(absolute_path)
            raise

        logger.info(
            "Record %s created (type=%s, notes=%d chars, attachment=%s)",
            record.id,
            record.type,
            len(record.notes),
            "yes" if relative_path else "no",
        )
        return str(record.id)
