from invoke import task
from tasks.util.boot import extract_boot_artifacts
from tasks.util.env import get_artifact_paths, get_file_size_str, get_image_version
from tasks.util.mkosi import build_image, copy_lock_files
from tasks.util.qemu import convert_to_qcow2
from tasks.util.requirements import get_lock_files


@task(default=True)
def build(ctx, image_version=None, debug=False):
    """
    Build the confidential VM disk image (TDX/SEV-SNP) with dm-verity

    The optional `--image-version` flag overrides the `ImageVersion=` entry
    in `mkosi.conf`. After building the raw image, we extract the boot
    artifacts for direct kernel boot and convert the image to qcow2.
    """
    if image_version is None:
        image_version = get_image_version()
    artifacts = get_artifact_paths(image_version)

    copy_lock_files(get_lock_files(), debug=debug)

    print("Building confidential VM disk image with dm-verity...")
    print("Image version: {}".format(image_version))
    build_image(image_version, debug=debug)

    print("")
    print("Extracting boot artifacts for direct kernel boot...")
    extract_boot_artifacts(artifacts, debug=debug)

    print("")
    do_convert(artifacts, debug=debug)

    print("")
    print("=== Build Complete ===")
    print("Output files for direct kernel boot:")
    print("  {}  - Use with QEMU -kernel".format(artifacts["kernel"]))
    print("  {}  - Use with QEMU -initrd".format(artifacts["initrd"]))
    print("  {}  - Use with QEMU -drive".format(artifacts["qcow2"]))
    print(
        "  {}  - Base cmdline (append proxy-hash=<hash> at runtime)".format(
            artifacts["cmdline"]
        )
    )


def do_convert(artifacts, debug=False):
    print("Converting to compressed qcow2...")
    convert_to_qcow2(artifacts["raw"], artifacts["qcow2"], debug=debug)
    print(
        "✓ Converted to {} ({})".format(
            artifacts["qcow2"], get_file_size_str(artifacts["qcow2"])
        )
    )


@task
def convert(ctx, image_version=None, debug=False):
    """
    Convert the raw disk image into a zstd-compressed qcow2 image
    """
    do_convert(get_artifact_paths(image_version), debug=debug)
