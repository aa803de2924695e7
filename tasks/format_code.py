from invoke import task
from subprocess import run
from tasks.util.env import PROJ_ROOT

PYTHON_SOURCE_DIRS = ["tasks", "tests"]


@task(default=True)
def format(ctx, check=False):
    """
    Format the Python code with black, and lint it with flake8

    With `--check`, black only reports the files it would re-format.
    """
    black_cmd = [
        "python3 -m black",
        "--check --diff" if check else "",
        " ".join(PYTHON_SOURCE_DIRS),
    ]
    black_cmd = " ".join(black_cmd)
    run(black_cmd, shell=True, check=True, cwd=PROJ_ROOT)

    flake8_cmd = "python3 -m flake8 {}".format(" ".join(PYTHON_SOURCE_DIRS))
    run(flake8_cmd, shell=True, check=True, cwd=PROJ_ROOT)
