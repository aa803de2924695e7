from invoke import Collection

from . import boot
from . import clean
from . import format_code
from . import image
from . import requirements
from . import uki

ns = Collection(
    boot,
    clean,
    format_code,
    image,
    requirements,
    uki,
)
