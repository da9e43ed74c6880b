"""File storage: images, CSV sheets and PDFs attached to training reports, plus profile pictures."""
import logging
from datetime import datetime

from botocore.exceptions import ClientError
from fastapi import APIRouter, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import Response
from pymongo.errors import DuplicateKeyError

from app.api.deps import CurrentUser
from app.config import settings
from app.models.audit import AuditAction, EntityType
from app.models.file import ProfilePic, SignedUploadRequest, StoredFile
from app.models.user import User, UserRole
from app.services import storage
from app.services.audit import record_audit
from app.services.lookups import safe_object_id

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_LIST_LIMIT = 200


def serialize_file(f: StoredFile, url: str | None = None) -> dict:
    return {
        "id": str(f.id),
        "original_name": f.original_name,
        "key": f.key,
        "mime_type": f.mime_type,
        "file_type": f.file_type,
        "size": f.size,
        "folder": f.folder,
        "owner_id": f.owner_id,
        "url": url or f.public_url,
        "created_at": f.created_at.isoformat(),
    }


async def _get_file(file_id: str, user: User) -> StoredFile:
    oid = safe_object_id(file_id)
    stored = await StoredFile.get(oid) if oid else None
    if not stored:
        raise HTTPException(status_code=404, detail="File not found")
    if stored.owner_id != str(user.id) and user.role != UserRole.AUTHORITY:
        raise HTTPException(status_code=403, detail="Forbidden")
    return stored


async def _read_upload(file: UploadFile) -> bytes:
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if len(content) > settings.max_upload_size_mb * 1024 * 1024:
        raise HTTPException(status_code=400, detail=f"File exceeds {settings.max_upload_size_mb}MB limit")
    return content


async def _store_upload(file: UploadFile, content: bytes, *, folder: str, owner_id: str, key_prefix: str) -> StoredFile:
    mime_type = file.content_type or "application/octet-stream"
    key = storage.build_key(key_prefix, file.filename or "")
    url = await storage.put_object(key, content, mime_type)
    stored = StoredFile(
        original_name=file.filename or key.rsplit("/", 1)[-1],
        key=key,
        mime_type=mime_type,
        file_type=storage.file_type_for(mime_type),
        size=len(content),
        bucket=settings.s3_bucket_uploads,
        public_url=url if settings.s3_public_bucket else None,
        owner_id=owner_id,
        folder=folder,
    )
    try:
        await stored.insert()
    except DuplicateKeyError:
        try:
            await storage.delete_object(key)
        except ClientError as e:
            logger.warning("Could not remove colliding upload %s: %s", key, e)
        raise HTTPException(status_code=409, detail="Upload collided with an existing file, retry")
    return stored


@router.post("/upload", status_code=201)
async def upload_file(
    request: Request,
    user: CurrentUser,
    file: UploadFile = File(...),
    folder: str = Form("uploads"),
):
    content = await _read_upload(file)
    stored = await _store_upload(file, content, folder=folder, owner_id=str(user.id), key_prefix=folder)
    await record_audit(
        AuditAction.FILE_UPLOADED,
        actor=user,
        entity_type=EntityType.FILE,
        entity_id=str(stored.id),
        metadata={"key": stored.key, "file_type": stored.file_type, "size": stored.size},
        request=request,
    )
    return {"success": True, "file": serialize_file(stored)}


@router.post("/upload-profile", status_code=201)
async def upload_profile_picture(
    request: Request,
    user: CurrentUser,
    file: UploadFile = File(...),
    user_id: str | None = Form(None),
):
    """Store an image and make it the user's current profile picture."""
    target_id = user_id or str(user.id)
    if target_id != str(user.id):
        if user.role != UserRole.AUTHORITY:
            raise HTTPException(status_code=403, detail="Cannot change another user's profile picture")
        oid = safe_object_id(target_id)
        if not oid or not await User.get(oid):
            raise HTTPException(status_code=404, detail="User not found")
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image files are allowed for profile pictures")

    content = await _read_upload(file)
    stored = await _store_upload(
        file, content, folder="profiles", owner_id=target_id, key_prefix=f"profiles/{target_id}"
    )

    profile = await ProfilePic.find_one(ProfilePic.user_id == target_id)
    if profile:
        profile.file_id = str(stored.id)
        profile.public_url = stored.public_url
        profile.updated_at = datetime.utcnow()
        await profile.save()
    else:
        profile = ProfilePic(user_id=target_id, file_id=str(stored.id), public_url=stored.public_url)
        await profile.insert()

    await record_audit(
        AuditAction.FILE_UPLOADED,
        actor=user,
        entity_type=EntityType.FILE,
        entity_id=str(stored.id),
        note="profile picture",
        metadata={"key": stored.key, "profile_user_id": target_id},
        request=request,
    )
    access_url = stored.public_url or await storage.presigned_get_url(
        stored.key, bucket=stored.bucket, minutes=settings.s3_profile_url_expire_minutes
    )
    return {"success": True, "user_id": target_id, "public_url": access_url, "file_id": str(stored.id)}


@router.get("/profile/{user_id}")
async def get_profile_picture(user_id: str, user: CurrentUser):
    profile = await ProfilePic.find_one(ProfilePic.user_id == user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile picture not found")

    access_url = profile.public_url
    if not access_url:
        oid = safe_object_id(profile.file_id)
        stored = await StoredFile.get(oid) if oid else None
        if stored:
            access_url = await storage.presigned_get_url(
                stored.key, bucket=stored.bucket, minutes=settings.s3_profile_url_expire_minutes
            )
    return {
        "success": True,
        "user_id": user_id,
        "public_url": access_url,
        "updated_at": profile.updated_at.isoformat(),
    }


@router.post("/signed-url")
async def signed_upload_url(data: SignedUploadRequest, user: CurrentUser):
    """Presigned PUT for direct mobile uploads; the caller later reports the key on a report."""
    key = storage.build_key(data.folder, data.file_name)
    upload_url = await storage.presigned_put_url(key, data.content_type)
    return {
        "success": True,
        "signed_url": upload_url,
        "key": key,
        "public_url": storage.public_url(key),
        "expires_in": settings.s3_upload_url_expire_minutes * 60,
    }


@router.get("/")
async def list_files(
    user: CurrentUser,
    folder: str | None = None,
    file_type: str | None = None,
    owner: str | None = None,
    limit: int = Query(50, ge=1),
    skip: int = Query(0, ge=0),
):
    """Newest first. Only authorities may filter by another owner; everyone else sees their own files."""
    query = {}
    if user.role == UserRole.AUTHORITY:
        if owner:
            query["owner_id"] = owner
    else:
        query["owner_id"] = str(user.id)
    if file_type:
        query["file_type"] = file_type
    if folder:
        query["folder"] = folder
    files = (
        await StoredFile.find(query)
        .sort(-StoredFile.created_at)
        .skip(skip)
        .limit(min(limit, MAX_LIST_LIMIT))
        .to_list()
    )
    return {"success": True, "files": [serialize_file(f) for f in files], "count": len(files)}


@router.get("/{file_id}")
async def get_file(file_id: str, user: CurrentUser):
    stored = await _get_file(file_id, user)
    url = stored.public_url or await storage.presigned_get_url(stored.key, bucket=stored.bucket)
    return {"success": True, "file": serialize_file(stored, url)}


@router.get("/{file_id}/content")
async def download_file(file_id: str, user: CurrentUser):
    stored = await _get_file(file_id, user)
    body = await storage.get_object(stored.key, bucket=stored.bucket)
    return Response(
        content=body,
        media_type=stored.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{stored.original_name}"'},
    )


@router.delete("/{file_id}")
async def delete_file(file_id: str, user: CurrentUser, request: Request):
    stored = await _get_file(file_id, user)
    try:
        await storage.delete_object(stored.key, bucket=stored.bucket)
    except ClientError as e:
        # Metadata stays so the object is never orphaned.
        logger.error("S3 delete failed for %s: %s", stored.key, e)
        raise HTTPException(status_code=502, detail="Could not delete file from storage")
    await stored.delete()
    await record_audit(
        AuditAction.FILE_DELETED,
        actor=user,
        entity_type=EntityType.FILE,
        entity_id=file_id,
        metadata={"key": stored.key},
        request=request,
    )
    return {"success": True, "message": "File deleted"}
