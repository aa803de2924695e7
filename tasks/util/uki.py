from glob import glob
from os import getgid, getuid, remove, walk
from os.path import exists, isfile, join, relpath
from subprocess import run
from tasks.util.mount import loop_mount
from tasks.util.partition import get_esp_range
from tasks.util.toml import read_image_config

# PE sections of a Unified Kernel Image that we need for direct kernel boot
UKI_KERNEL_SECTION = ".linux"
UKI_INITRD_SECTION = ".initrd"
UKI_CMDLINE_SECTION = ".cmdline"


def list_esp_files(esp_root, limit=None):
    """
    List (up to `limit`) files in the ESP, relative to its root
    """
    esp_files = []
    for dir_path, dir_names, file_names in walk(esp_root):
        dir_names.sort()
        for file_name in sorted(file_names):
            esp_files.append(relpath(join(dir_path, file_name), esp_root))
            if limit is not None and len(esp_files) >= limit:
                return esp_files

    return esp_files


def find_uki(esp_root, search_dirs=None):
    """
    Find a UKI in a mounted ESP

    We look for `*.efi` files in each of the search directories in order
    (by default `EFI/Linux` and then any directory under `EFI`), and return
    the first match in lexicographic order, or `None` if there is no match.
    """
    if search_dirs is None:
        search_dirs = read_image_config("uki.search_dirs")

    for search_dir in search_dirs:
        candidates = sorted(
            path
            for path in glob(join(esp_root, search_dir, "**", "*.efi"), recursive=True)
            if isfile(path)
        )
        if len(candidates) > 0:
            return candidates[0]

    return None


def copy_to_user(src_path, dst_path):
    """
    Copy a root-owned file and hand it over to the invoking user
    """
    run("sudo cp {} {}".format(src_path, dst_path), shell=True, check=True)
    run(
        "sudo chown {}:{} {}".format(getuid(), getgid(), dst_path),
        shell=True,
        check=True,
    )


def extract_uki(disk_image, uki_path, mount_root=None, debug=False):
    """
    Extract the UKI from the ESP of a disk image into `uki_path`

    The ESP is always unmounted before returning, also if we could not find
    the UKI or the copy failed.
    """
    print("Extracting UKI from ESP partition...")
    esp_offset, esp_size = get_esp_range(disk_image)

    with loop_mount(disk_image, esp_offset, esp_size, mount_root=mount_root) as esp:
        if debug:
            print("  ESP mounted at {}".format(esp))
        print("  ESP contents:")
        for esp_file in list_esp_files(esp, limit=read_image_config("uki.list_limit")):
            print("    {}".format(esp_file))

        esp_uki_path = find_uki(esp)
        if esp_uki_path is None:
            print("ERROR: could not find UKI in ESP")
            raise RuntimeError("UKI not found in ESP!")

        print("  Found UKI at: {}".format(relpath(esp_uki_path, esp)))
        copy_to_user(esp_uki_path, uki_path)

    print("✓ UKI extracted to {}".format(uki_path))


def dump_pe_sections(binary_path, sections, debug=False):
    """
    Dump the raw contents of PE sections into files using objcopy

    `sections` is a dictionary of section_name: dst_path pairs. All sections
    are dumped with one objcopy invocation, which fails if any of the sections
    does not exist in the binary.
    """
    objcopy_cmd = ["objcopy"]
    for section_name, dst_path in sections.items():
        objcopy_cmd.append("--dump-section {}={}".format(section_name, dst_path))
    objcopy_cmd.append(binary_path)
    objcopy_cmd = " ".join(objcopy_cmd)

    if debug:
        print(objcopy_cmd)
    result = run(objcopy_cmd, shell=True, capture_output=True)
    if result.returncode != 0:
        print(
            "ERROR: error dumping sections from {}: {}".format(
                binary_path, result.stderr.decode("utf-8").strip()
            )
        )
        raise RuntimeError("Error dumping PE sections!")


def split_uki(uki_path, kernel_path, initrd_path, raw_cmdline_path, debug=False):
    """
    Split a UKI into its kernel, initrd, and (raw) kernel command line
    """
    if not exists(uki_path):
        print(f"ERROR: UKI {uki_path} not found")
        raise RuntimeError("UKI not found!")

    sections = {
        UKI_KERNEL_SECTION: kernel_path,
        UKI_INITRD_SECTION: initrd_path,
        UKI_CMDLINE_SECTION: raw_cmdline_path,
    }
    try:
        dump_pe_sections(uki_path, sections, debug=debug)
    except RuntimeError:
        # Never leave a half-processed cmdline behind
        if exists(raw_cmdline_path):
            remove(raw_cmdline_path)
        raise


def sanitize_cmdline(raw_cmdline):
    """
    Strip the null bytes that pad the `.cmdline` section of a UKI

    All other bytes are kept, in order. Note that the result is only the base
    command line: we append run-time parameters (e.g. proxy-hash=<hash>) to
    it when booting the VM.
    """
    return raw_cmdline.replace(b"\x00", b"")


def write_cmdline(raw_cmdline_path, cmdline_path):
    """
    Sanitize the raw cmdline dump into `cmdline_path` and remove the raw dump
    """
    with open(raw_cmdline_path, "rb") as fh:
        raw_cmdline = fh.read()

    cmdline = sanitize_cmdline(raw_cmdline)
    with open(cmdline_path, "wb") as fh:
        fh.write(cmdline)

    remove(raw_cmdline_path)

    return cmdline.decode("utf-8", errors="replace")
