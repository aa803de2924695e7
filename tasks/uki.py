from invoke import task
from tasks.util.env import get_artifact_paths
from tasks.util.uki import extract_uki


@task
def extract(ctx, image_version=None, debug=False):
    """
    Extract the UKI from the ESP partition of the raw disk image

    Mounting the ESP requires sudo. The extracted UKI is owned by the calling
    user.
    """
    artifacts = get_artifact_paths(image_version)
    extract_uki(artifacts["raw"], artifacts["uki"], debug=debug)
