"""Small, side-effect free helpers.

Keep this package dependency-light (no FastAPI / ldap3 imports).
"""

from .numbers import clamp_int, clamp_page  # noqa: F401
from .pagination import PagedResult, paginate  # noqa: F401
