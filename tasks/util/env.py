from os.path import dirname, exists, realpath, join
from re import search as re_search
from subprocess import run

PROJ_ROOT = dirname(dirname(dirname(realpath(__file__))))

CONF_FILES_DIR = join(PROJ_ROOT, "conf-files")
IMAGE_CONFIG_FILE = join(CONF_FILES_DIR, "image.toml")

# mkosi config

MKOSI_CONF_FILE = join(PROJ_ROOT, "mkosi.conf")
MKOSI_SKELETON_DIR = join(PROJ_ROOT, "mkosi.skeleton")
MKOSI_EXTRA_DIR = join(PROJ_ROOT, "mkosi.extra")
MKOSI_OUTPUT_DIR = join(PROJ_ROOT, "mkosi.output")
MKOSI_CACHE_DIR = join(PROJ_ROOT, "mkosi.cache")
# Stores the content hash of the skeleton and mkosi.conf of the last build
SKELETON_HASH_FILE = join(PROJ_ROOT, ".skeleton-hash")

# Output artifacts (mkosi adds the version suffix from ImageVersion)

IMAGE_NAME = "confer-image"
ARTIFACT_SUFFIXES = {
    "raw": "raw",
    "qcow2": "qcow2",
    "uki": "efi",
    "kernel": "vmlinuz",
    "initrd": "initrd",
    "cmdline": "cmdline",
}

# The ESP is mounted under a fresh directory with this prefix in the project
# root, so that `inv clean` can find mount points left by interrupted runs
ESP_MOUNT_PREFIX = ".esp-mount"


def print_dotted_line(message, dot_length=90):
    dots = "." * (dot_length - len(message))
    print(f"{message}{dots}", end="", flush=True)


def get_image_version(mkosi_conf=MKOSI_CONF_FILE):
    """
    Read the image version from the `ImageVersion=` entry in `mkosi.conf`
    """
    if not exists(mkosi_conf):
        print(f"ERROR: mkosi config {mkosi_conf} not found")
        raise RuntimeError("Image version not found!")

    with open(mkosi_conf, "r") as fh:
        contents = fh.read()

    match = re_search(r"(?m)^ImageVersion=(.*)$", contents)
    if match is None or len(match.group(1).strip()) == 0:
        print(f"ERROR: no ImageVersion= entry in {mkosi_conf}")
        raise RuntimeError("Image version not found!")

    return match.group(1).strip()


def get_artifact_path(image_version, artifact):
    return join(
        PROJ_ROOT,
        "{}_{}.{}".format(IMAGE_NAME, image_version, ARTIFACT_SUFFIXES[artifact]),
    )


def get_artifact_paths(image_version=None):
    """
    Get a dictionary with the path to every output artifact for an image
    version. If no version is given, we read it from `mkosi.conf`
    """
    if image_version is None:
        image_version = get_image_version()

    return {
        artifact: get_artifact_path(image_version, artifact)
        for artifact in ARTIFACT_SUFFIXES
    }


def get_file_size_str(file_path):
    """
    Get the human-readable size of a file (as reported by `du -h`)
    """
    result = run("du -h {}".format(file_path), shell=True, capture_output=True)
    du_out = result.stdout.decode("utf-8").split()
    if result.returncode != 0 or len(du_out) == 0:
        return "unknown size"

    return du_out[0]
