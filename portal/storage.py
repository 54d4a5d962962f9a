"""Disk storage for uploaded assignment files."""

import logging
import os
import re
import secrets
import time
from dataclasses import dataclass

from fastapi import HTTPException, Request, UploadFile, status

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = 'application/pdf'
CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class StoredFile:
    stored_name: str
    original_name: str
    path: str
    size: int
    mime_type: str


def sanitize_filename(filename: str) -> str:
    base = os.path.basename(filename or '')
    safe = re.sub(r'\s+', '_', base)
    safe = re.sub(r'[^a-zA-Z0-9_.-]', '', safe)
    return safe or 'upload.pdf'


class UploadStorage:
    def __init__(self, root: str, max_bytes: int):
        self.root = root
        self.max_bytes = max_bytes
        os.makedirs(self.root, exist_ok=True)

    def describe_limit(self) -> str:
        return f'{self.max_bytes // (1024 * 1024)}MB'

    def save(self, upload: UploadFile) -> StoredFile:
        if upload is None or not upload.filename:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f'Please upload a PDF file (max {self.describe_limit()}).',
            )

        if (upload.content_type or '').lower() != PDF_MIME_TYPE:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Only PDF files are allowed.',
            )

        stored_name = f'{int(time.time() * 1000)}_{secrets.token_hex(4)}_{sanitize_filename(upload.filename)}'
        path = os.path.join(self.root, stored_name)
        size = 0

        with open(path, 'wb') as destination:
            while True:
                chunk = upload.file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > self.max_bytes:
                    break
                destination.write(chunk)

        if size > self.max_bytes:
            self.delete(path)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f'File too large. Maximum size is {self.describe_limit()}.',
            )

        if size == 0:
            self.delete(path)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Uploaded file is empty.',
            )

        return StoredFile(
            stored_name=stored_name,
            original_name=upload.filename,
            path=path,
            size=size,
            mime_type=PDF_MIME_TYPE,
        )

    def delete(self, path: str | None) -> None:
        if not path:
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        except OSError:
            logger.exception('Failed to delete stored file %s', path)


def get_storage(request: Request) -> UploadStorage:
    return request.app.state.storage
