from tasks.util.env import get_file_size_str
from tasks.util.uki import extract_uki, split_uki, write_cmdline


def get_raw_cmdline_path(cmdline_path):
    return "{}.raw".format(cmdline_path)


def extract_boot_artifacts(artifacts, mount_root=None, debug=False):
    """
    Extract the kernel, initrd, and base cmdline for direct kernel boot

    `artifacts` is a dictionary with (at least) the `raw`, `uki`, `kernel`,
    `initrd`, and `cmdline` paths (see `get_artifact_paths`). The steps are
    strictly sequential:
    1. Extract the UKI from the ESP of the raw disk image
    2. Split the UKI's .linux, .initrd, and .cmdline PE sections
    3. Strip the null padding from the cmdline
    """
    extract_uki(artifacts["raw"], artifacts["uki"], mount_root=mount_root, debug=debug)

    print("Extracting boot artifacts from UKI...")
    raw_cmdline_path = get_raw_cmdline_path(artifacts["cmdline"])
    split_uki(
        artifacts["uki"],
        artifacts["kernel"],
        artifacts["initrd"],
        raw_cmdline_path,
        debug=debug,
    )
    cmdline = write_cmdline(raw_cmdline_path, artifacts["cmdline"])

    print(
        "✓ Kernel extracted to {} ({})".format(
            artifacts["kernel"], get_file_size_str(artifacts["kernel"])
        )
    )
    print(
        "✓ Initrd extracted to {} ({})".format(
            artifacts["initrd"], get_file_size_str(artifacts["initrd"])
        )
    )
    print("✓ Cmdline saved to {}".format(artifacts["cmdline"]))
    print("  {}".format(cmdline))

    return cmdline
