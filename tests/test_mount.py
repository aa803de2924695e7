from os import listdir, makedirs
from os.path import exists, join

import pytest

from tasks.util.mount import cleanup_stale_mounts, is_mounted, loop_mount


def test_loop_mount(fake_run, fake_esp, disk_image, tmp_path):
    fake_esp.files = {"EFI/BOOT/BOOTX64.EFI": b"MZ"}

    with loop_mount(disk_image, 1048576, 524288000, mount_root=str(tmp_path)) as mnt:
        assert is_mounted(mnt)
        assert exists(join(mnt, "EFI", "BOOT", "BOOTX64.EFI"))
        mount_point = mnt

    assert fake_esp.mount_cmds == [
        "sudo mount -o loop,offset=1048576,sizelimit=524288000,ro {} {}".format(
            disk_image, mount_point
        )
    ]
    assert fake_run.ran("sudo umount") == [f"sudo umount {mount_point}"]
    assert fake_esp.mounted == []
    assert not exists(mount_point)


def test_loop_mount_unmounts_on_error(fake_run, fake_esp, disk_image, tmp_path):
    with pytest.raises(ValueError):
        with loop_mount(disk_image, 0, 512, mount_root=str(tmp_path)) as mnt:
            mount_point = mnt
            raise ValueError("boom")

    assert fake_run.ran("sudo umount") == [f"sudo umount {mount_point}"]
    assert fake_esp.mounted == []
    assert not exists(mount_point)


def test_loop_mount_failure(fake_run, disk_image, tmp_path):
    fake_run.on_output("sudo mount", returncode=32, stderr=b"mount: wrong fs type")

    with pytest.raises(RuntimeError, match="Error mounting disk image"):
        with loop_mount(disk_image, 0, 512, mount_root=str(tmp_path)):
            pass

    assert fake_run.ran("sudo umount") == []
    assert listdir(tmp_path) == ["confer-image_1.0.0.raw"]


def test_cleanup_stale_mounts(fake_run, fake_esp, tmp_path):
    fake_esp.files = {"EFI/Linux/confer.efi": b"MZ"}

    stale_mount = join(str(tmp_path), ".esp-mount-stale")
    makedirs(stale_mount)
    fake_esp.mount(f"sudo mount -o loop,ro disk.raw {stale_mount}")
    stale_dir = join(str(tmp_path), ".esp-mount")
    makedirs(stale_dir)
    makedirs(join(str(tmp_path), "mkosi.output"))

    cleanup_stale_mounts(mount_root=str(tmp_path))

    assert fake_run.ran("sudo umount") == [f"sudo umount {stale_mount}"]
    assert fake_esp.mounted == []
    assert sorted(listdir(tmp_path)) == ["mkosi.output"]

    # Cleaning up again is a no-op
    cleanup_stale_mounts(mount_root=str(tmp_path))
    assert len(fake_run.ran("sudo umount")) == 1


def test_loop_mount_umount_failure_keeps_error(fake_run, disk_image, tmp_path):
    fake_run.on_output("sudo umount", returncode=32, stderr=b"target is busy")

    with pytest.raises(ValueError, match="boom"):
        with loop_mount(disk_image, 0, 512, mount_root=str(tmp_path)) as mnt:
            mount_point = mnt
            raise ValueError("boom")

    assert fake_run.ran("sudo umount") == [f"sudo umount {mount_point}"]
    # Still mounted, so we leave the mount point for `inv clean`
    assert exists(mount_point)


def test_loop_mount_umount_failure(fake_run, disk_image, tmp_path):
    fake_run.on_output("sudo umount", returncode=32, stderr=b"target is busy")

    with pytest.raises(RuntimeError, match="Error unmounting"):
        with loop_mount(disk_image, 0, 512, mount_root=str(tmp_path)):
            pass
