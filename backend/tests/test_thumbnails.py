import os
from pathlib import Path

import pytest
from PIL import Image

from app.schemas.file import FileCreate
from app.services.errors import MalformedJobError, SourceMissingError
from app.services.thumbnails import generate_thumbnails
from tests.conftest import b64, png_bytes


def _width(path: str) -> int:
    with Image.open(path) as img:
        return img.width


@pytest.mark.asyncio
async def test_generates_three_widths_beside_original(service, session_factory, storage):
    image = await service.create("alice", FileCreate(name="cat.png", type="image", data=b64(png_bytes(800, 400))))

    result = await generate_thumbnails(
        {"owner_id": "alice", "file_id": str(image.id)}, session_factory=session_factory, storage=storage
    )

    assert result["failed"] == []
    assert result["thumbnails"] == {
        str(w): f"{image.local_path}_{w}" for w in (500, 250, 100)
    }
    for width in (500, 250, 100):
        path = f"{image.local_path}_{width}"
        assert _width(path) == width
        with Image.open(path) as img:
            assert img.format == "PNG"
            assert img.height == width // 2


@pytest.mark.asyncio
async def test_reprocessing_is_idempotent(service, session_factory, storage):
    image = await service.create("alice", FileCreate(name="cat.png", type="image", data=b64(png_bytes())))
    params = {"owner_id": "alice", "file_id": str(image.id)}

    first = await generate_thumbnails(params, session_factory=session_factory, storage=storage)
    snapshot = {p: Path(p).read_bytes() for p in first["thumbnails"].values()}
    second = await generate_thumbnails(params, session_factory=session_factory, storage=storage)

    assert second == first
    assert {p: Path(p).read_bytes() for p in second["thumbnails"].values()} == snapshot
    assert sorted(os.listdir(storage.base_path)) == sorted(
        [os.path.basename(image.local_path)] + [os.path.basename(p) for p in snapshot]
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "params",
    [
        {"owner_id": "alice"},
        {"file_id": "1"},
        {"owner_id": "alice", "file_id": ""},
        {"owner_id": "alice", "file_id": "not-a-number"},
    ],
)
async def test_malformed_jobs_fail(session_factory, storage, params):
    with pytest.raises(MalformedJobError):
        await generate_thumbnails(params, session_factory=session_factory, storage=storage)


@pytest.mark.asyncio
async def test_missing_source_fails_without_artifacts(service, session_factory, storage):
    image = await service.create("alice", FileCreate(name="cat.png", type="image", data=b64(png_bytes())))
    before = sorted(os.listdir(storage.base_path))

    for params in (
        {"owner_id": "alice", "file_id": str(image.id + 100)},
        {"owner_id": "bob", "file_id": str(image.id)},
    ):
        with pytest.raises(SourceMissingError):
            await generate_thumbnails(params, session_factory=session_factory, storage=storage)

    assert sorted(os.listdir(storage.base_path)) == before


@pytest.mark.asyncio
async def test_folder_is_not_a_source(service, session_factory, storage):
    folder = await service.create("alice", FileCreate(name="dir", type="folder"))

    with pytest.raises(SourceMissingError):
        await generate_thumbnails(
            {"owner_id": "alice", "file_id": str(folder.id)}, session_factory=session_factory, storage=storage
        )


@pytest.mark.asyncio
async def test_one_failed_width_does_not_stop_the_others(service, session_factory, storage):
    image = await service.create("alice", FileCreate(name="cat.png", type="image", data=b64(png_bytes())))
    real_derive = storage.derive_thumbnail

    async def flaky_derive(path, width):
        if width == 250:
            raise OSError("disk full")
        return await real_derive(path, width)

    storage.derive_thumbnail = flaky_derive

    result = await generate_thumbnails(
        {"owner_id": "alice", "file_id": str(image.id)}, session_factory=session_factory, storage=storage
    )

    assert result["failed"] == [250]
    assert set(result["thumbnails"]) == {"500", "100"}
    assert os.path.exists(f"{image.local_path}_500")
    assert not os.path.exists(f"{image.local_path}_250")
    assert os.path.exists(f"{image.local_path}_100")


@pytest.mark.asyncio
async def test_non_image_bytes_fail_every_width_but_job_completes(service, session_factory, storage):
    entry = await service.create("alice", FileCreate(name="fake.png", type="image", data=b64(b"not an image")))

    result = await generate_thumbnails(
        {"owner_id": "alice", "file_id": str(entry.id)}, session_factory=session_factory, storage=storage
    )

    assert result == {"file_id": str(entry.id), "thumbnails": {}, "failed": [500, 250, 100]}
