from os.path import exists
from subprocess import run
from tasks.util.toml import read_image_config


def convert_to_qcow2(raw_path, qcow2_path, debug=False):
    """
    Convert a raw disk image into a compressed qcow2 image

    We use zstd compression and let qemu-img issue out-of-order writes (-W)
    with multiple coroutines (-m) to speed up the conversion.
    """
    if not exists(raw_path):
        print(f"ERROR: disk image {raw_path} not found. Run `inv image.build` first")
        raise RuntimeError("Disk image not found!")

    qemu_img_cmd = [
        "qemu-img convert",
        "-f raw",
        "-O qcow2",
        "-c",
        "-o compression_type={}".format(read_image_config("qcow2.compression_type")),
        "-W",
        "-m {}".format(read_image_config("qcow2.coroutines")),
        raw_path,
        qcow2_path,
    ]
    qemu_img_cmd = " ".join(qemu_img_cmd)

    if debug:
        print(qemu_img_cmd)
    run(qemu_img_cmd, shell=True, check=True)
