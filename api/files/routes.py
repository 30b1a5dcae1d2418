"""
Routes/endpoints for the Files API

HTTP   URI                             Action
----   ---                             ------
POST   /api/v1/files                   Upload a file
GET    /api/v1/files                   List all files
GET    /api/v1/files/[id]              Download a file
PUT    /api/v1/files/[id]              Replace a file
DELETE /api/v1/files/[id]              Delete a file
"""

import mimetypes
import uuid
from email.utils import format_datetime
from urllib.parse import quote

from fastapi import APIRouter, File, Header, Request, Response, UploadFile, status

from api.files.deps import FileStorageServiceDep
from api.files.exceptions import InvalidInput, PayloadTooLarge
from api.files.models import FilePublic, FileRecord
from core.deps import SettingsDep
from core.models import MessageResponse
from core.utils import as_utc

router = APIRouter(prefix="/files", tags=["File Endpoints"])


def _read_upload(file: UploadFile, max_size: int) -> bytes:
    """Read the uploaded content, refusing anything over max_size bytes"""
    data = file.file.read(max_size + 1)
    if len(data) > max_size:
        raise PayloadTooLarge(file.size or len(data), max_size)
    return data


def _content_type(file: UploadFile) -> str | None:
    if file.content_type:
        return file.content_type
    guessed, _ = mimetypes.guess_type(file.filename or "")
    return guessed or "application/octet-stream"


def _parse_if_match(if_match: str | None) -> int | None:
    """Turn an If-Match header ('"3"', 'W/"3"', '3' or '*') into a version"""
    if if_match is None or if_match.strip() == "*":
        return None
    value = if_match.strip()
    if value.startswith("W/"):
        value = value[2:]
    try:
        return int(value.strip('"'))
    except ValueError as e:
        raise InvalidInput(f"Invalid If-Match header: {if_match}") from e


def _to_public(request: Request, record: FileRecord) -> FilePublic:
    url = str(request.url_for("get_file", file_id=str(record.id)))
    return FilePublic.from_record(record, url=url)


def _content_disposition(name: str) -> str:
    if name.isascii():
        escaped = name.replace("\\", "\\\\").replace('"', '\\"')
        return f'inline; filename="{escaped}"'
    return f"inline; filename*=UTF-8''{quote(name)}"


@router.post(
    "",
    response_model=FilePublic,
    status_code=status.HTTP_201_CREATED,
    tags=["File Endpoints"],
)
def upload_file(
    request: Request,
    service: FileStorageServiceDep,
    settings: SettingsDep,
    file: UploadFile = File(..., description="File to upload"),
) -> FilePublic:
    """
    Upload a new file.
    """
    data = _read_upload(file, settings.MAX_UPLOAD_SIZE)
    record = service.store(file.filename, _content_type(file), data)
    return _to_public(request, record)


@router.get(
    "",
    response_model=list[FilePublic],
    status_code=status.HTTP_200_OK,
    tags=["File Endpoints"],
)
def list_files(request: Request, service: FileStorageServiceDep) -> list[FilePublic]:
    """
    Retrieve a list of all stored files (metadata only).
    """
    return [_to_public(request, record) for record in service.list_files()]


@router.get(
    "/{file_id}",
    status_code=status.HTTP_200_OK,
    tags=["File Endpoints"],
    response_class=Response,
)
def get_file(file_id: uuid.UUID, service: FileStorageServiceDep) -> Response:
    """
    Download a file. The ETag is the file's version and can be sent
    back in If-Match when replacing the file.
    """
    record = service.get_file(file_id)
    last_modified = as_utc(record.updated_at)
    return Response(
        content=record.data,
        media_type=record.content_type,
        headers={
            "Content-Disposition": _content_disposition(record.name),
            "ETag": f'"{record.version}"',
            "Last-Modified": format_datetime(last_modified, usegmt=True),
        },
    )


@router.put(
    "/{file_id}",
    response_model=FilePublic,
    tags=["File Endpoints"],
)
def update_file(
    file_id: uuid.UUID,
    request: Request,
    service: FileStorageServiceDep,
    settings: SettingsDep,
    file: UploadFile = File(..., description="Replacement file"),
    if_match: str | None = Header(default=None),
) -> FilePublic:
    """
    Replace the name, content type and content of a file.
    Send If-Match with the version from a previous read to reject
    the update when someone else changed the file in between.
    """
    expected_version = _parse_if_match(if_match)
    data = _read_upload(file, settings.MAX_UPLOAD_SIZE)
    record = service.update_file(
        file_id,
        file.filename,
        _content_type(file),
        data,
        expected_version=expected_version,
    )
    return _to_public(request, record)


@router.delete(
    "/{file_id}",
    response_model=MessageResponse,
    tags=["File Endpoints"],
)
def delete_file(file_id: uuid.UUID, service: FileStorageServiceDep) -> MessageResponse:
    """
    Delete a file.
    """
    service.delete_file(file_id)
    return MessageResponse(message="File deleted successfully")
