from json import dumps as json_dumps
from os import listdir, makedirs, remove
from os.path import dirname, isdir, join
from shutil import copy, rmtree
from subprocess import CalledProcessError, CompletedProcess
from types import SimpleNamespace

ESP_TYPE_GUID = "C12A7328-F81F-11D2-BA4B-00A0C93EC93B"
LINUX_TYPE_GUID = "4F68BCE3-E8CD-4DB1-96E7-FBCAF984B709"

# Every module that shells out through `subprocess.run`
PATCHED_MODULES = [
    "tasks.util.env",
    "tasks.util.mkosi",
    "tasks.util.mount",
    "tasks.util.partition",
    "tasks.util.qemu",
    "tasks.util.requirements",
    "tasks.util.uki",
]


class FakeRun:
    """
    Stand-in for `subprocess.run` that records every shell command

    Handlers are matched by command prefix, and return a
    (returncode, stdout, stderr) tuple, or None for a successful command with
    no output.
    """

    def __init__(self):
        self.cmds = []
        self.handlers = []

    def on(self, prefix, handler):
        self.handlers.append((prefix, handler))

    def on_output(self, prefix, stdout=b"", returncode=0, stderr=b""):
        self.on(prefix, lambda cmd: (returncode, stdout, stderr))

    def ran(self, prefix):
        return [cmd for cmd in self.cmds if cmd.startswith(prefix)]

    def __call__(self, cmd, shell=False, check=False, capture_output=False, **kwargs):
        self.cmds.append(cmd)

        returncode, stdout, stderr = 0, b"", b""
        for prefix, handler in self.handlers:
            if cmd.startswith(prefix):
                result = handler(cmd)
                if result is not None:
                    returncode, stdout, stderr = result
                break

        if check and returncode != 0:
            raise CalledProcessError(returncode, cmd, stdout, stderr)

        return CompletedProcess(cmd, returncode, stdout, stderr)


class FakeEsp:
    """
    Fake loop-mounted ESP: "mounting" populates the mount point with `files`
    and "unmounting" empties it again
    """

    def __init__(self, files):
        self.files = files
        self.mounted = []
        self.mount_cmds = []

    def mount(self, cmd):
        mount_point = cmd.split()[-1]
        for rel_path, contents in self.files.items():
            file_path = join(mount_point, rel_path)
            makedirs(dirname(file_path), exist_ok=True)
            with open(file_path, "wb") as fh:
                fh.write(contents)

        self.mounted.append(mount_point)
        self.mount_cmds.append(cmd)

    def umount(self, cmd):
        mount_point = cmd.split()[-1]
        if mount_point not in self.mounted:
            return 32, b"", "umount: {}: not mounted.".format(mount_point).encode()

        for entry in listdir(mount_point):
            entry_path = join(mount_point, entry)
            if isdir(entry_path):
                rmtree(entry_path)
            else:
                remove(entry_path)

        self.mounted.remove(mount_point)

    def disk_partitions(self, all=False):
        return [SimpleNamespace(mountpoint=mount_point) for mount_point in self.mounted]


def make_sfdisk_json(partitions, sector_size=512):
    partition_table = {
        "label": "gpt",
        "id": "6D6A1C2B-6C0E-4F8B-8E7A-2F6B0C4F9B11",
        "device": "disk.raw",
        "unit": "sectors",
        "firstlba": 2048,
        "lastlba": 8388574,
        "partitions": [
            {
                "node": "disk.raw{}".format(ind + 1),
                "start": start,
                "size": size,
                "type": part_type,
            }
            for ind, (start, size, part_type) in enumerate(partitions)
        ],
    }
    if sector_size is not None:
        partition_table["sectorsize"] = sector_size

    return json_dumps({"partitiontable": partition_table}).encode("utf-8")


def fake_copy(cmd):
    _, _, src_path, dst_path = cmd.split()
    copy(src_path, dst_path)


def fake_objcopy(sections):
    """
    Fake `objcopy --dump-section ...` for a binary with the given sections
    """

    def handler(cmd):
        dumps = [
            arg.split("=", 1) for arg in cmd.split()[1:-1] if arg != "--dump-section"
        ]
        for section_name, _ in dumps:
            if section_name not in sections:
                return (
                    1,
                    b"",
                    "objcopy: error: can't dump section '{}' - it does not "
                    "exist".format(section_name).encode(),
                )

        for section_name, dst_path in dumps:
            with open(dst_path, "wb") as fh:
                fh.write(sections[section_name])

    return handler
