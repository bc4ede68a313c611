"""PathPolicy Core - Shared constants, path utilities and validators.

Import specific functions from submodules:
    from pathpolicy.core import constants
    from pathpolicy.core import path_utils
    from pathpolicy.core import validators
"""

from pathpolicy.core import constants, path_utils, validators

__all__ = [
    "constants",
    "path_utils",
    "validators",
]
