from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

_LOCAL_PACKAGES = ("db_core", "kanban_repo", "kanban_api")


@lru_cache(maxsize=1)
def ensure_local_packages_importable() -> None:
    """
    Add the repo's package roots under packages/python to sys.path when running directly.

    This allows developers to run the server without installing the project
    via pip, while production deployments can still rely on installed deps.
    """

    current = Path(__file__).resolve()
    for ancestor in current.parents:
        packages_dir = ancestor / "packages" / "python"
        if packages_dir.exists():
            for name in _LOCAL_PACKAGES:
                package_root = str(packages_dir / name)
                if package_root not in sys.path:
                    sys.path.insert(0, package_root)
            return
