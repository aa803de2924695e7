from invoke import task
from tasks.util.env import print_dotted_line
from tasks.util.mkosi import copy_lock_files
from tasks.util.requirements import (
    REQUIREMENT_SETS,
    freeze_requirements,
    get_lock_file,
    get_lock_files,
)


@task
def freeze(ctx, name=None, debug=False):
    """
    Generate the frozen Python requirements for the guest image

    Each requirement set is installed in a fresh venv, and the output of
    `pip freeze` written to `requirements-<name>.lock`. Use `--name` to only
    freeze one set, must be one in: vllm, attestation, docling.
    """
    names = list(REQUIREMENT_SETS.keys()) if name is None else [name]

    print("Generating frozen Python requirements...")
    for req_name in names:
        print("")
        print("==> Freezing {} dependencies...".format(req_name))
        num_pinned = freeze_requirements(req_name, debug=debug)
        print(
            "Created {} with {} pinned packages".format(
                get_lock_file(req_name), num_pinned
            )
        )


@task
def copy(ctx, debug=False):
    """
    Copy the requirement lock files into the mkosi extra tree
    """
    print_dotted_line("Copying requirement lock files into mkosi.extra")
    copy_lock_files(get_lock_files(), debug=debug)
    print("Success!")
