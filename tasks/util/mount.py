from contextlib import contextmanager
from glob import glob
from os import rmdir
from os.path import join, realpath
from psutil import disk_partitions
from shutil import rmtree
from subprocess import run
from tasks.util.env import ESP_MOUNT_PREFIX, PROJ_ROOT
from tempfile import mkdtemp


def is_mounted(mount_point):
    """
    Work out whether a directory is currently a mount point
    """
    mount_point = realpath(mount_point)
    return any(
        realpath(part.mountpoint) == mount_point
        for part in disk_partitions(all=True)
    )


def umount(mount_point):
    result = run("sudo umount {}".format(mount_point), shell=True, capture_output=True)
    if result.returncode != 0:
        print(
            "ERROR: error unmounting {}: {}".format(
                mount_point, result.stderr.decode("utf-8").strip()
            )
        )
        raise RuntimeError("Error unmounting!")


def release_mount(mount_point):
    umount(mount_point)
    rmdir(mount_point)


@contextmanager
def loop_mount(disk_image, offset, size, mount_root=None):
    """
    Mount a byte range of a disk image read-only using a loop device

    The mount point is a fresh temporary directory under `mount_root`
    (defaults to the project root). The range is unmounted, and the mount
    point removed, on every exit path out of the `with` block.
    """
    mount_point = mkdtemp(
        prefix="{}-".format(ESP_MOUNT_PREFIX),
        dir=PROJ_ROOT if mount_root is None else mount_root,
    )

    mount_cmd = "sudo mount -o loop,offset={},sizelimit={},ro {} {}".format(
        offset, size, disk_image, mount_point
    )
    result = run(mount_cmd, shell=True, capture_output=True)
    if result.returncode != 0:
        rmdir(mount_point)
        print(
            "ERROR: error mounting {} (offset: {}, size: {}): {}".format(
                disk_image, offset, size, result.stderr.decode("utf-8").strip()
            )
        )
        raise RuntimeError("Error mounting disk image!")

    try:
        yield mount_point
    except BaseException:
        # Keep the original error if we also fail to unmount
        try:
            release_mount(mount_point)
        except RuntimeError:
            print(f"ERROR: {mount_point} is still mounted, run `inv clean`")
        raise

    release_mount(mount_point)


def cleanup_stale_mounts(mount_root=None, debug=False):
    """
    Unmount and remove any ESP mount point left behind by an interrupted run

    It is safe to call this method repeatedly.
    """
    mount_root = PROJ_ROOT if mount_root is None else mount_root
    for mount_point in glob(join(mount_root, "{}*".format(ESP_MOUNT_PREFIX))):
        if is_mounted(mount_point):
            if debug:
                print("Unmounting stale mount point {}".format(mount_point))
            umount(mount_point)

        if debug:
            print("Removing stale mount point {}".format(mount_point))
        rmtree(mount_point)
