"""Version information for the itembase SDK.

Single source of truth for version number.
"""

__version__ = "1.0.0"
__version_info__ = tuple(int(part) for part in __version__.split("."))

# Version history:
# 1.0.0 - Immutable query descriptors, pagination drain outcomes, token store locking
# 0.1.0 - Initial release (OAuth2 token lifecycle, offset pagination)
