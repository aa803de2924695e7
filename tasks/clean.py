from invoke import task
from os import remove
from os.path import exists
from shutil import rmtree
from tasks.util.boot import get_raw_cmdline_path
from tasks.util.env import (
    MKOSI_CACHE_DIR,
    MKOSI_EXTRA_DIR,
    MKOSI_OUTPUT_DIR,
    get_artifact_paths,
)
from tasks.util.mount import cleanup_stale_mounts


@task(default=True)
def clean(ctx, image_version=None, debug=False):
    """
    Remove build artifacts (and any stale ESP mount from an interrupted run)
    """
    print("Cleaning build artifacts...")

    # Resolve the artifact names before removing anything
    artifacts = get_artifact_paths(image_version)

    cleanup_stale_mounts(debug=debug)

    for nuked_dir in [MKOSI_OUTPUT_DIR, MKOSI_CACHE_DIR, MKOSI_EXTRA_DIR]:
        if exists(nuked_dir):
            if debug:
                print(f"Removing {nuked_dir}")
            rmtree(nuked_dir)

    nuked_files = [
        artifacts["qcow2"],
        artifacts["uki"],
        artifacts["kernel"],
        artifacts["initrd"],
        artifacts["cmdline"],
        get_raw_cmdline_path(artifacts["cmdline"]),
    ]
    for nuked_file in nuked_files:
        if exists(nuked_file):
            if debug:
                print(f"Removing {nuked_file}")
            remove(nuked_file)

    print("Clean complete")
