from tasks.util.env import IMAGE_CONFIG_FILE
from toml import load as toml_load


def read_value_from_toml(toml_file_path, toml_path):
    """
    Return the value in a TOML specified by a "." delimited TOML path
    """
    toml_file = toml_load(toml_file_path)
    for toml_level in toml_path.split("."):
        toml_file = toml_file[toml_level]

    if isinstance(toml_file, dict):
        print("ERROR: error reading from TOML, must provide a full path")
        raise RuntimeError("Haven't reached TOML leaf!")

    return toml_file


def read_image_config(toml_path, config_file=IMAGE_CONFIG_FILE):
    """
    Read a value from the image build configuration (conf-files/image.toml)
    """
    return read_value_from_toml(config_file, toml_path)
