"""Feature-flag storage backends.

JsonFileFlagStorage is the default (``FEATURE_FLAGS_PATH``); MemoryFlagStorage
is used by tests.
"""

from technodog.providers.flags.json_file_storage import JsonFileFlagStorage
from technodog.providers.flags.memory_storage import MemoryFlagStorage

__all__ = ["JsonFileFlagStorage", "MemoryFlagStorage"]
