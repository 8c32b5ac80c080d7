import os
import re
import tempfile
import uuid
from typing import Tuple

import magic
from fastapi import HTTPException, UploadFile

from penalty_review.core import config

DOC_ID = re.compile(r"^[0-9a-f]{12}$")


def _doc_dir(doc_id: str) -> str:
    if not DOC_ID.match(doc_id):
        raise HTTPException(status_code=404, detail="Document not found")
    return os.path.join(config.DATA_DIR, doc_id)


async def save_secure(file: UploadFile) -> Tuple[str, str]:
    """Store an upload as DATA_DIR/<doc_id>/original.<ext> after extension and MIME checks."""
    _, ext = os.path.splitext(file.filename or "")
    ext = ext.lower()
    if ext not in config.ALLOWED_EXTENSIONS:
        raise HTTPException(status_code=400, detail="Only .docx or .pdf allowed")

    with tempfile.NamedTemporaryFile(delete=False) as tmp:
        while True:
            chunk = await file.read(1 << 20)  # 1 MB
            if not chunk:
                break
            tmp.write(chunk)
        tmp_path = tmp.name

    file_mime = magic.Magic(mime=True).from_file(tmp_path)
    if file_mime not in config.MIME_ALLOW[ext]:
        os.remove(tmp_path)
        raise HTTPException(status_code=400, detail=f"Unexpected MIME type: {file_mime} for {ext}")

    doc_id = uuid.uuid4().hex[:12]
    doc_dir = _doc_dir(doc_id)
    os.makedirs(doc_dir, mode=0o700, exist_ok=True)
    dest = os.path.join(doc_dir, f"original{ext}")
    os.replace(tmp_path, dest)
    return doc_id, dest


def find_original(doc_id: str) -> str:
    doc_dir = _doc_dir(doc_id)
    if not os.path.isdir(doc_dir):
        raise HTTPException(status_code=404, detail="Document not found")
    originals = sorted(f for f in os.listdir(doc_dir) if f.startswith("original."))
    if not originals:
        raise HTTPException(status_code=404, detail="No original file found")
    return os.path.join(doc_dir, originals[0])
