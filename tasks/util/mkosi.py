from hashlib import sha256
from os import makedirs, walk
from os.path import basename, exists, getmtime, isfile, islink, join, relpath
from shutil import copy, which
from subprocess import run
from tasks.util.env import (
    MKOSI_CONF_FILE,
    MKOSI_EXTRA_DIR,
    MKOSI_SKELETON_DIR,
    PROJ_ROOT,
    SKELETON_HASH_FILE,
)


def get_file_sha256(file_path):
    file_hash = sha256()
    with open(file_path, "rb") as fh:
        for chunk in iter(lambda: fh.read(1024 * 1024), b""):
            file_hash.update(chunk)

    return file_hash.hexdigest()


def get_skeleton_hash(
    skeleton_dir=MKOSI_SKELETON_DIR, mkosi_conf=MKOSI_CONF_FILE, root=PROJ_ROOT
):
    """
    Hash the contents of the mkosi skeleton tree and the mkosi config

    Each file contributes a `<sha256>  <path>` line (with paths relative to
    the project root), and we hash the sorted list of lines, so the hash
    changes if any file is added, removed, renamed, or modified.
    """
    file_paths = []
    for dir_path, _, file_names in walk(skeleton_dir):
        # Only regular files, like `find -type f`: symlinks in the skeleton
        # (e.g. systemd unit enablement) usually point to guest-only paths
        file_paths += [
            join(dir_path, file_name)
            for file_name in file_names
            if not islink(join(dir_path, file_name))
        ]
    if isfile(mkosi_conf):
        file_paths.append(mkosi_conf)

    lines = sorted(
        "{}  {}\n".format(get_file_sha256(path), relpath(path, root))
        for path in file_paths
    )
    return sha256("".join(lines).encode("utf-8")).hexdigest()


def read_skeleton_hash(hash_file=SKELETON_HASH_FILE):
    if not exists(hash_file):
        return None

    with open(hash_file, "r") as fh:
        return fh.read().strip()


def write_skeleton_hash(skeleton_hash, hash_file=SKELETON_HASH_FILE):
    with open(hash_file, "w") as fh:
        fh.write("{}\n".format(skeleton_hash))


def copy_lock_files(lock_files, extra_dir=MKOSI_EXTRA_DIR, debug=False):
    """
    Copy requirement lock files into the mkosi extra tree (which mkosi copies
    into the image) if they are missing or out of date
    """
    makedirs(extra_dir, exist_ok=True)

    for lock_file in lock_files:
        if not exists(lock_file):
            print(f"ERROR: lock file {lock_file} not found")
            print("ERROR: run `inv requirements.freeze` to generate it")
            raise RuntimeError("Lock file not found!")

        dst_path = join(extra_dir, basename(lock_file))
        if exists(dst_path) and getmtime(dst_path) >= getmtime(lock_file):
            continue

        if debug:
            print("Copying {} -> {}".format(lock_file, dst_path))
        copy(lock_file, dst_path)


def run_mkosi(image_version, clear_cache=False, debug=False):
    """
    Build the disk image with mkosi

    Passing `--force` twice makes mkosi also remove its incremental cache.
    """
    mkosi_path = which("mkosi")
    if mkosi_path is None:
        print("ERROR: mkosi not found in PATH (did you run `nix develop`?)")
        raise RuntimeError("mkosi not found!")

    mkosi_cmd = [
        "sudo",
        mkosi_path,
        "--force --force" if clear_cache else "--force",
        "--image-version={}".format(image_version),
    ]
    mkosi_cmd = " ".join(mkosi_cmd)

    if debug:
        print(mkosi_cmd)
    run(mkosi_cmd, shell=True, check=True, cwd=PROJ_ROOT)


def build_image(image_version, debug=False):
    """
    Build the disk image, clearing mkosi's incremental cache only if the
    skeleton tree or the mkosi config changed since the last build
    """
    skeleton_hash = get_skeleton_hash()
    if skeleton_hash != read_skeleton_hash():
        print("Skeleton/config changed, clearing incremental cache...")
        run_mkosi(image_version, clear_cache=True, debug=debug)
        write_skeleton_hash(skeleton_hash)
    else:
        print("Skeleton unchanged, using incremental cache...")
        run_mkosi(image_version, clear_cache=False, debug=debug)
