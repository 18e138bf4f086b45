from __future__ import annotations

import asyncio
import io
import re
from pathlib import Path

import pytest

from app.core.config import Settings
from app.core.errors import (
    BadInput,
    Forbidden,
    MalformedMedia,
    NotFound,
    PayloadTooLarge,
    ProcessingFailed,
    StorageUnavailable,
    UnsupportedMediaType,
)
from app.ingest.probe import Orientation
from app.services.ingest_service import UploadedArtifact, VideoIngestService
from tests.fakes import FakeRunner, FakeStorage, FakeVideoStore, make_video

PAYLOAD = b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 2048


@pytest.fixture()
def scratch_root(tmp_path: Path) -> Path:
    root = tmp_path / "scratch"
    root.mkdir()
    (root / "unrelated.txt").write_text("left alone")
    return root


@pytest.fixture()
def settings(scratch_root: Path) -> Settings:
    return Settings(scratch_root=scratch_root, max_video_upload_bytes=1 << 20)


def _artifact(payload: bytes = PAYLOAD, *, media_type: str = "video/mp4", size: int | None = None) -> UploadedArtifact:
    return UploadedArtifact(source=io.BytesIO(payload), media_type=media_type, size=len(payload) if size is None else size)


def _ingest(service: VideoIngestService, *, owner_id: str = "user-1", video_id: str = "vid-1", artifact=None):
    return asyncio.run(service.ingest(owner_id=owner_id, video_id=video_id, artifact=artifact or _artifact()))


def _scratch_entries(root: Path) -> set[str]:
    return {entry.name for entry in root.iterdir()}


@pytest.mark.parametrize(
    "width, height, orientation",
    [
        (1920, 1080, Orientation.landscape),
        (1080, 1920, Orientation.portrait),
        (1000, 1000, Orientation.other),
    ],
)
def test_ingest_publishes_under_orientation_partition(settings, scratch_root, width, height, orientation):
    runner = FakeRunner(width=width, height=height)
    storage = FakeStorage()
    video = make_video()
    store = FakeVideoStore(video)
    service = VideoIngestService(settings, storage, store, runner=runner)

    reference = _ingest(service)

    assert reference.orientation is orientation
    assert re.fullmatch(rf"videos/{orientation.value}/[0-9a-f]{{64}}\.mp4", reference.key)
    assert reference.url == f"https://reelcast-test.s3.us-east-1.amazonaws.com/{reference.key}"
    body, content_type = storage.objects[reference.key]
    assert body == b"faststart:" + PAYLOAD
    assert content_type == "video/mp4"
    assert video.video_url == reference.url
    assert store.updates == [{"video_url": reference.url, "thumbnail_url": None}]
    assert _scratch_entries(scratch_root) == {"unrelated.txt"}


def test_ingest_probes_the_remuxed_file(settings):
    runner = FakeRunner()
    service = VideoIngestService(settings, FakeStorage(), FakeVideoStore(make_video()), runner=runner)

    _ingest(service)

    commands = [command for command, _ in runner.calls]
    assert commands == ["ffmpeg", "ffprobe"]
    assert [path.name for path in runner.probed] == ["vid-1.processed.mp4"]


def test_record_is_written_only_after_the_object_is_stored(settings):
    video = make_video()
    storage = FakeStorage()
    seen: list[str | None] = []
    storage.on_put = lambda key: seen.append(video.video_url)
    service = VideoIngestService(settings, storage, FakeVideoStore(video), runner=FakeRunner())

    _ingest(service)

    assert seen == [None]


def test_oversized_upload_is_rejected_before_any_scratch_write(settings, scratch_root):
    runner = FakeRunner()
    store = FakeVideoStore(make_video())
    service = VideoIngestService(settings, FakeStorage(), store, runner=runner)

    with pytest.raises(PayloadTooLarge):
        _ingest(service, artifact=_artifact(size=(1 << 20) + 1))

    assert _scratch_entries(scratch_root) == {"unrelated.txt"}
    assert runner.calls == []
    assert store.updates == []


def test_payload_too_large_is_bad_input(settings):
    service = VideoIngestService(settings, FakeStorage(), FakeVideoStore(make_video()), runner=FakeRunner())
    with pytest.raises(BadInput):
        _ingest(service, artifact=_artifact(size=(1 << 20) + 1))


def test_non_mp4_upload_is_rejected(settings, scratch_root):
    runner = FakeRunner()
    service = VideoIngestService(settings, FakeStorage(), FakeVideoStore(make_video()), runner=runner)

    with pytest.raises(UnsupportedMediaType):
        _ingest(service, artifact=_artifact(media_type="video/quicktime"))

    assert runner.calls == []
    assert _scratch_entries(scratch_root) == {"unrelated.txt"}


def test_missing_video_id_is_bad_input(settings):
    service = VideoIngestService(settings, FakeStorage(), FakeVideoStore(make_video()), runner=FakeRunner())
    with pytest.raises(BadInput):
        _ingest(service, video_id="")


def test_unknown_video_is_not_found(settings, scratch_root):
    runner = FakeRunner()
    service = VideoIngestService(settings, FakeStorage(), FakeVideoStore(), runner=runner)

    with pytest.raises(NotFound):
        _ingest(service)

    assert runner.calls == []
    assert _scratch_entries(scratch_root) == {"unrelated.txt"}


def test_non_owner_is_forbidden(settings, scratch_root):
    runner = FakeRunner()
    video = make_video(user_id="someone-else")
    service = VideoIngestService(settings, FakeStorage(), FakeVideoStore(video), runner=runner)

    with pytest.raises(Forbidden):
        _ingest(service)

    assert runner.calls == []
    assert video.video_url is None


@pytest.mark.parametrize("partial_output", [False, True])
def test_remux_failure_leaves_record_untouched_and_cleans_scratch(settings, scratch_root, partial_output):
    runner = FakeRunner(remux_exit=1, remux_stderr="moov atom not found\n", remux_partial_output=partial_output)
    storage = FakeStorage()
    video = make_video()
    store = FakeVideoStore(video)
    service = VideoIngestService(settings, storage, store, runner=runner)

    with pytest.raises(ProcessingFailed) as excinfo:
        _ingest(service)

    assert excinfo.value.detail == "moov atom not found"
    assert video.video_url is None
    assert store.updates == []
    assert storage.objects == {}
    assert _scratch_entries(scratch_root) == {"unrelated.txt"}


def test_probe_failure_cleans_remuxed_file(settings, scratch_root):
    runner = FakeRunner(probe_exit=1)
    store = FakeVideoStore(make_video())
    service = VideoIngestService(settings, FakeStorage(), store, runner=runner)

    with pytest.raises(ProcessingFailed):
        _ingest(service)

    assert store.updates == []
    assert _scratch_entries(scratch_root) == {"unrelated.txt"}


def test_missing_geometry_is_malformed_media(settings, scratch_root):
    runner = FakeRunner(height=None)
    store = FakeVideoStore(make_video())
    service = VideoIngestService(settings, FakeStorage(), store, runner=runner)

    with pytest.raises(MalformedMedia):
        _ingest(service)

    assert store.updates == []
    assert _scratch_entries(scratch_root) == {"unrelated.txt"}


def test_storage_failure_leaves_record_untouched_and_cleans_scratch(settings, scratch_root):
    storage = FakeStorage(fail=True)
    video = make_video()
    store = FakeVideoStore(video)
    service = VideoIngestService(settings, storage, store, runner=FakeRunner())

    with pytest.raises(StorageUnavailable):
        _ingest(service)

    assert video.video_url is None
    assert store.updates == []
    assert _scratch_entries(scratch_root) == {"unrelated.txt"}


def test_record_update_failure_is_storage_unavailable(settings, scratch_root):
    storage = FakeStorage()
    store = FakeVideoStore(make_video(), fail_update=True)
    service = VideoIngestService(settings, storage, store, runner=FakeRunner())

    with pytest.raises(StorageUnavailable) as excinfo:
        _ingest(service)

    assert excinfo.value.detail["key"] in storage.objects
    assert _scratch_entries(scratch_root) == {"unrelated.txt"}


class _BrokenSource(io.RawIOBase):
    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        raise OSError("client went away")


def test_scratch_write_failure_is_storage_unavailable(settings, scratch_root):
    runner = FakeRunner()
    artifact = UploadedArtifact(source=_BrokenSource(), media_type="video/mp4", size=10)
    service = VideoIngestService(settings, FakeStorage(), FakeVideoStore(make_video()), runner=runner)

    with pytest.raises(StorageUnavailable):
        _ingest(service, artifact=artifact)

    assert runner.calls == []
    assert _scratch_entries(scratch_root) == {"unrelated.txt"}


def test_cleanup_failure_does_not_mask_the_original_error(settings, monkeypatch):
    runner = FakeRunner(remux_exit=1, remux_stderr="Invalid data found")
    service = VideoIngestService(settings, FakeStorage(), FakeVideoStore(make_video()), runner=runner)

    def _refuse(self, missing_ok=False):
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "unlink", _refuse)

    with pytest.raises(ProcessingFailed) as excinfo:
        _ingest(service)

    assert excinfo.value.detail == "Invalid data found"


def test_each_ingest_gets_a_fresh_key(settings):
    service = VideoIngestService(settings, FakeStorage(), FakeVideoStore(make_video()), runner=FakeRunner())

    first = _ingest(service)
    second = _ingest(service)

    assert first.key != second.key


def test_record_read_failure_is_storage_unavailable(settings, scratch_root):
    runner = FakeRunner()
    service = VideoIngestService(settings, FakeStorage(), FakeVideoStore(make_video(), fail_get=True), runner=runner)

    with pytest.raises(StorageUnavailable) as excinfo:
        _ingest(service)

    assert excinfo.value.detail == {"video_id": "vid-1"}
    assert runner.calls == []
    assert _scratch_entries(scratch_root) == {"unrelated.txt"}


def test_publish_failure_is_logged_with_request_context(settings, monkeypatch):
    events = []
    service = VideoIngestService(settings, FakeStorage(fail=True), FakeVideoStore(make_video()), runner=FakeRunner())
    monkeypatch.setattr(service, "logger", _RecordingLogger(events))

    with pytest.raises(StorageUnavailable):
        _ingest(service)

    failures = [fields for name, fields in events if name == "ingest_publish_failed"]
    assert len(failures) == 1
    assert failures[0]["video_id"] == "vid-1"
    assert failures[0]["owner_id"] == "user-1"


class _RecordingLogger:
    def __init__(self, events, **context):
        self.events = events
        self.context = context

    def bind(self, **context):
        return _RecordingLogger(self.events, **{**self.context, **context})

    def _record(self, event, **fields):
        self.events.append((event, {**self.context, **fields}))

    info = warning = error = debug = _record
