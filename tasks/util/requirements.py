from os.path import join
from subprocess import run
from tasks.util.env import PROJ_ROOT
from tasks.util.versions import (
    DOCLING_SERVE_VERSION,
    PYTHON_VERSION,
    PYTORCH_INDEX_URL,
    VLLM_VERSION,
)

# vLLM, the attestation SDK, and docling are frozen (and installed in the
# guest) separately due to dependency conflicts between them
REQUIREMENT_SETS = {
    "vllm": {
        "packages": [f"vllm=={VLLM_VERSION}"],
    },
    "attestation": {
        "packages": ["nv-attestation-sdk"],
    },
    "docling": {
        "packages": [f"docling-serve=={DOCLING_SERVE_VERSION}"],
        "extra_index_url": PYTORCH_INDEX_URL,
    },
}


def get_lock_file(name):
    return join(PROJ_ROOT, f"requirements-{name}.lock")


def get_lock_files():
    return [get_lock_file(name) for name in REQUIREMENT_SETS]


def freeze_requirements(name, debug=False):
    """
    Install a requirement set in a clean venv and pin every package it pulls
    into `requirements-<name>.lock`. Returns the number of pinned packages
    """
    if name not in REQUIREMENT_SETS:
        print(
            "Unrecognised requirement set '{}'. Must be one in: {}".format(
                name, list(REQUIREMENT_SETS.keys())
            )
        )
        raise RuntimeError("Unrecognised requirement set")

    req_set = REQUIREMENT_SETS[name]
    venv_dir = f"/tmp/{name}-freeze"
    pip_path = join(venv_dir, "bin", "pip")
    lock_file = get_lock_file(name)

    run(f"rm -rf {venv_dir}", shell=True, check=True)
    try:
        run(f"python{PYTHON_VERSION} -m venv {venv_dir}", shell=True, check=True)

        pip_cmds = [f"{pip_path} install --upgrade pip"]
        pip_install_cmd = [
            f"{pip_path} install",
            (
                "--extra-index-url {}".format(req_set["extra_index_url"])
                if "extra_index_url" in req_set
                else ""
            ),
            " ".join(req_set["packages"]),
        ]
        pip_cmds.append(" ".join(pip_install_cmd))
        for pip_cmd in pip_cmds:
            result = run(pip_cmd, shell=True, capture_output=True)
            assert result.returncode == 0, print(result.stderr.decode("utf-8").strip())
            if debug:
                print(result.stdout.decode("utf-8").strip())

        result = run(
            f"{pip_path} freeze", shell=True, check=True, capture_output=True
        )
        frozen = result.stdout.decode("utf-8")
        with open(lock_file, "w") as fh:
            fh.write(frozen)
    finally:
        run(f"rm -rf {venv_dir}", shell=True, check=True)

    return len(frozen.splitlines())
