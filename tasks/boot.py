from invoke import task
from tasks.util.boot import extract_boot_artifacts
from tasks.util.env import get_artifact_paths


@task
def extract(ctx, image_version=None, debug=False):
    """
    Extract kernel, initrd, and cmdline from the disk image for direct boot

    The cmdline file only contains the base kernel command line. When booting
    the VM we still need to append the run-time parameters (i.e.
    `proxy-hash=<hash>`).
    """
    extract_boot_artifacts(get_artifact_paths(image_version), debug=debug)
