from unittest.mock import MagicMock

import pytest
from beanie import PydanticObjectId
from botocore.exceptions import ClientError

from app.config import settings
from app.models.audit import AuditAction, AuditLog
from app.models.file import ProfilePic, StoredFile
from app.models.user import UserRole
from app.services import storage
from tests.conftest import auth_headers


@pytest.fixture
def s3(monkeypatch):
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://signed.example/object"
    client.get_object.return_value = {"Body": MagicMock(read=MagicMock(return_value=b"name,district\n"))}
    monkeypatch.setattr(storage, "get_s3", lambda: client)
    monkeypatch.setattr(settings, "s3_public_bucket", False)
    return client


@pytest.mark.parametrize(
    "mime_type, expected",
    [
        ("image/png", "image"),
        ("IMAGE/JPEG", "image"),
        ("text/csv", "csv"),
        ("application/pdf", "pdf"),
        ("application/zip", "other"),
        ("", "other"),
    ],
)
def test_file_type_for(mime_type, expected):
    assert storage.file_type_for(mime_type) == expected


def test_build_key_drops_original_name():
    key = storage.build_key("/reports/photos/", "Flood Drill Photo.JPG")

    assert key.startswith("reports/photos/")
    assert key.endswith(".jpg")
    assert "Flood" not in key
    assert storage.build_key("", "sheet.csv").startswith("uploads/")


async def test_delete_object_raises_on_s3_refusal(s3):
    s3.delete_object.side_effect = ClientError({"Error": {"Code": "AccessDenied"}}, "DeleteObject")
    with pytest.raises(ClientError):
        await storage.delete_object("uploads/x.jpg")


async def test_delete_object_tolerates_missing_key(s3):
    s3.delete_object.side_effect = ClientError({"Error": {"Code": "NoSuchKey"}}, "DeleteObject")
    await storage.delete_object("uploads/gone.jpg")


async def test_upload_list_and_delete(client, trainer, s3):
    uploaded = await client.post(
        "/api/files/upload",
        files={"file": ("attendance.csv", b"name,district\n", "text/csv")},
        data={"folder": "sheets"},
        headers=auth_headers(trainer),
    )
    assert uploaded.status_code == 201
    file = uploaded.json()["file"]
    assert file["file_type"] == "csv"
    assert file["size"] == 14
    assert file["key"].startswith("sheets/")
    s3.put_object.assert_called_once()
    assert s3.put_object.call_args.kwargs["ContentType"] == "text/csv"

    listed = await client.get("/api/files/", headers=auth_headers(trainer))
    assert listed.json()["count"] == 1

    fetched = await client.get(f"/api/files/{file['id']}", headers=auth_headers(trainer))
    assert fetched.json()["file"]["url"] == "https://signed.example/object"

    content = await client.get(f"/api/files/{file['id']}/content", headers=auth_headers(trainer))
    assert content.content == b"name,district\n"

    deleted = await client.delete(f"/api/files/{file['id']}", headers=auth_headers(trainer))
    assert deleted.status_code == 200
    s3.delete_object.assert_called_once()
    assert await StoredFile.find_all().count() == 0
    assert await AuditLog.find(AuditLog.action == AuditAction.FILE_DELETED).count() == 1


async def test_empty_upload_rejected(client, trainer, s3):
    response = await client.post(
        "/api/files/upload",
        files={"file": ("empty.pdf", b"", "application/pdf")},
        headers=auth_headers(trainer),
    )
    assert response.status_code == 400
    s3.put_object.assert_not_called()


async def test_files_are_private_to_owner(client, trainer, authority, make_user, s3):
    uploaded = await client.post(
        "/api/files/upload",
        files={"file": ("photo.png", b"\x89PNG", "image/png")},
        headers=auth_headers(trainer),
    )
    file_id = uploaded.json()["file"]["id"]
    other = await make_user(UserRole.TRAINER)

    assert (await client.get(f"/api/files/{file_id}", headers=auth_headers(other))).status_code == 403
    assert (await client.get("/api/files/", headers=auth_headers(other))).json()["count"] == 0
    assert (await client.get(f"/api/files/{file_id}", headers=auth_headers(authority))).status_code == 200


async def test_signed_upload_url(client, trainer, s3):
    response = await client.post(
        "/api/files/signed-url",
        json={"file_name": "drill.jpg", "content_type": "image/jpeg", "folder": "reports"},
        headers=auth_headers(trainer),
    )
    body = response.json()
    assert body["signed_url"] == "https://signed.example/object"
    assert body["key"].startswith("reports/")
    assert body["public_url"].endswith(body["key"])
    assert s3.generate_presigned_url.call_args.args[0] == "put_object"


async def test_failed_s3_delete_keeps_metadata(client, trainer, s3):
    uploaded = await client.post(
        "/api/files/upload",
        files={"file": ("drill.pdf", b"%PDF-1.4", "application/pdf")},
        headers=auth_headers(trainer),
    )
    file_id = uploaded.json()["file"]["id"]
    s3.delete_object.side_effect = ClientError({"Error": {"Code": "AccessDenied"}}, "DeleteObject")

    response = await client.delete(f"/api/files/{file_id}", headers=auth_headers(trainer))

    assert response.status_code == 502
    assert response.json()["success"] is False
    assert await StoredFile.find_all().count() == 1
    assert await AuditLog.find(AuditLog.action == AuditAction.FILE_DELETED).count() == 0


async def test_delete_succeeds_when_object_already_gone(client, trainer, s3):
    uploaded = await client.post(
        "/api/files/upload",
        files={"file": ("drill.pdf", b"%PDF-1.4", "application/pdf")},
        headers=auth_headers(trainer),
    )
    s3.delete_object.side_effect = ClientError({"Error": {"Code": "NoSuchKey"}}, "DeleteObject")

    response = await client.delete(f"/api/files/{uploaded.json()['file']['id']}", headers=auth_headers(trainer))

    assert response.status_code == 200
    assert await StoredFile.find_all().count() == 0


async def test_signed_get_uses_stored_bucket(client, trainer, s3):
    stored = StoredFile(
        original_name="archive.csv",
        key="sheets/archive.csv",
        mime_type="text/csv",
        file_type="csv",
        size=10,
        bucket="ndma-archive",
        owner_id=str(trainer.id),
    )
    await stored.insert()

    response = await client.get(f"/api/files/{stored.id}", headers=auth_headers(trainer))

    assert response.status_code == 200
    assert s3.generate_presigned_url.call_args.kwargs["Params"] == {"Bucket": "ndma-archive", "Key": "sheets/archive.csv"}


async def test_list_files_filters(client, trainer, authority, make_user, s3, monkeypatch):
    other = await make_user(UserRole.TRAINER)
    for name, mime, owner in [
        ("a.png", "image/png", trainer),
        ("b.csv", "text/csv", trainer),
        ("c.png", "image/png", trainer),
        ("d.png", "image/png", other),
    ]:
        await client.post(
            "/api/files/upload", files={"file": (name, b"data", mime)}, headers=auth_headers(owner)
        )

    images = await client.get("/api/files/?file_type=image", headers=auth_headers(trainer))
    assert images.json()["count"] == 2

    paged = await client.get("/api/files/?limit=1&skip=1", headers=auth_headers(trainer))
    assert paged.json()["count"] == 1

    # owner filter is ignored for non-authorities
    spoofed = await client.get(f"/api/files/?owner={other.id}", headers=auth_headers(trainer))
    assert {f["owner_id"] for f in spoofed.json()["files"]} == {str(trainer.id)}

    by_owner = await client.get(f"/api/files/?owner={other.id}", headers=auth_headers(authority))
    assert by_owner.json()["count"] == 1
    assert (await client.get("/api/files/", headers=auth_headers(authority))).json()["count"] == 4

    monkeypatch.setattr("app.api.files.MAX_LIST_LIMIT", 2)
    capped = await client.get("/api/files/?limit=500", headers=auth_headers(authority))
    assert capped.json()["count"] == 2

    bad = await client.get("/api/files/?skip=-1", headers=auth_headers(authority))
    assert bad.status_code == 400


async def test_profile_picture_upload_and_fetch(client, trainee, s3):
    first = await client.post(
        "/api/files/upload-profile",
        files={"file": ("me.jpg", b"\xff\xd8first", "image/jpeg")},
        headers=auth_headers(trainee),
    )
    assert first.status_code == 201
    assert first.json()["user_id"] == str(trainee.id)
    assert first.json()["public_url"] == "https://signed.example/object"

    second = await client.post(
        "/api/files/upload-profile",
        files={"file": ("me2.jpg", b"\xff\xd8second", "image/jpeg")},
        headers=auth_headers(trainee),
    )
    assert await ProfilePic.find_all().count() == 1
    profile = await ProfilePic.find_one(ProfilePic.user_id == str(trainee.id))
    assert profile.file_id == second.json()["file_id"]

    stored = await StoredFile.get(PydanticObjectId(profile.file_id))
    assert stored.folder == "profiles"
    assert stored.key.startswith(f"profiles/{trainee.id}/")

    fetched = await client.get(f"/api/files/profile/{trainee.id}", headers=auth_headers(trainee))
    assert fetched.status_code == 200
    assert fetched.json()["public_url"] == "https://signed.example/object"
    assert s3.generate_presigned_url.call_args.kwargs["ExpiresIn"] == settings.s3_profile_url_expire_minutes * 60


async def test_profile_picture_rules(client, trainer, trainee, authority, s3):
    not_image = await client.post(
        "/api/files/upload-profile",
        files={"file": ("cv.pdf", b"%PDF", "application/pdf")},
        headers=auth_headers(trainee),
    )
    assert not_image.status_code == 400
    s3.put_object.assert_not_called()

    for_someone_else = await client.post(
        "/api/files/upload-profile",
        files={"file": ("x.png", b"\x89PNG", "image/png")},
        data={"user_id": str(trainer.id)},
        headers=auth_headers(trainee),
    )
    assert for_someone_else.status_code == 403

    by_authority = await client.post(
        "/api/files/upload-profile",
        files={"file": ("x.png", b"\x89PNG", "image/png")},
        data={"user_id": str(trainee.id)},
        headers=auth_headers(authority),
    )
    assert by_authority.status_code == 201
    assert by_authority.json()["user_id"] == str(trainee.id)

    missing = await client.get(f"/api/files/profile/{trainer.id}", headers=auth_headers(trainer))
    assert missing.status_code == 404
