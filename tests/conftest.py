import pytest

from . import PATCHED_MODULES, FakeEsp, FakeRun, fake_copy


@pytest.fixture
def fake_run(monkeypatch):
    fake = FakeRun()
    for module in PATCHED_MODULES:
        monkeypatch.setattr(f"{module}.run", fake)

    return fake


@pytest.fixture
def disk_image(tmp_path):
    image_path = tmp_path / "confer-image_1.0.0.raw"
    image_path.write_bytes(b"\x00" * 4096)
    return str(image_path)


@pytest.fixture
def fake_esp(monkeypatch, fake_run):
    """
    Wire a fake ESP into the mount and copy commands. Tests set the ESP
    contents through `fake_esp.files`
    """
    esp = FakeEsp({})
    fake_run.on("sudo mount", esp.mount)
    fake_run.on("sudo umount", esp.umount)
    fake_run.on("sudo cp", fake_copy)
    monkeypatch.setattr("tasks.util.mount.disk_partitions", esp.disk_partitions)
    return esp
