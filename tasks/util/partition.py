from json import loads as json_loads
from os.path import exists
from subprocess import run
from tasks.util.toml import read_image_config


def get_partition_table(disk_image):
    """
    Parse the partition table of a disk image using `sfdisk --json`

    Returns the `partitiontable` object, which contains the list of
    `partitions` (each with a `type`, `start`, and `size` in sectors) and,
    for recent versions of sfdisk, the table's logical `sectorsize`.
    """
    if not exists(disk_image):
        print(f"ERROR: disk image {disk_image} not found. Run `inv image.build` first")
        raise RuntimeError("Disk image not found!")

    result = run("sfdisk -J {}".format(disk_image), shell=True, capture_output=True)
    if result.returncode != 0:
        print(
            "ERROR: error reading partition table: {}".format(
                result.stderr.decode("utf-8").strip()
            )
        )
        raise RuntimeError("Error reading partition table!")

    return json_loads(result.stdout.decode("utf-8"))["partitiontable"]


def find_partitions_by_type(partition_table, type_guid):
    """
    Return all partitions whose type matches `type_guid` (case-insensitive),
    in partition table order
    """
    return [
        part
        for part in partition_table.get("partitions", [])
        if part.get("type", "").upper() == type_guid.upper()
    ]


def get_sector_size(partition_table, sector_size=None):
    if sector_size is not None:
        return int(sector_size)

    if "sectorsize" in partition_table:
        return int(partition_table["sectorsize"])

    return int(read_image_config("esp.sector_size"))


def get_esp_range(disk_image, sector_size=None, allow_multiple=None):
    """
    Get the byte offset and byte size of the EFI System Partition (ESP)

    The sector size is, in order of preference: the `sector_size` argument,
    the sector size reported in the partition table, and the default value in
    the image config. If more than one partition has the ESP type, we fail
    unless `allow_multiple` is set, in which case we pick the first one.
    """
    if allow_multiple is None:
        allow_multiple = read_image_config("esp.allow_multiple")

    partition_table = get_partition_table(disk_image)
    esps = find_partitions_by_type(
        partition_table, read_image_config("esp.type_guid")
    )

    if len(esps) == 0:
        print(f"ERROR: no EFI System Partition found in {disk_image}")
        raise RuntimeError("No ESP found!")

    if len(esps) > 1 and not allow_multiple:
        print(
            "ERROR: found {} EFI System Partitions in {} (expected one)".format(
                len(esps), disk_image
            )
        )
        raise RuntimeError("Multiple ESPs found!")

    esp = esps[0]
    print("  ESP at sector {}, size {} sectors".format(esp["start"], esp["size"]))

    sector_size = get_sector_size(partition_table, sector_size)
    return int(esp["start"]) * sector_size, int(esp["size"]) * sector_size
