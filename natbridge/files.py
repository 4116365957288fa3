"""
File helpers shared by the rewriters and the backup manager.
"""

import logging
import os
import shutil
import tempfile
from datetime import datetime
from typing import Optional

TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


def timestamp() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


def read_text(file_path: str) -> Optional[str]:
    """Contents of ``file_path``, or None when it does not exist"""
    if not os.path.exists(file_path):
        return None
    with open(file_path, 'r') as f:
        return f.read()


def safe_write_file(file_path: str, content: str,
                    logger: Optional[logging.Logger] = None) -> bool:
    """Write content with a temp file and an atomic rename, keeping the old mode"""
    logger = logger or logging.getLogger('natbridge')
    dir_path = os.path.dirname(file_path) or '.'
    tmp_path = None
    try:
        os.makedirs(dir_path, exist_ok=True)
        with tempfile.NamedTemporaryFile(mode='w', dir=dir_path, delete=False,
                                         prefix=f".{os.path.basename(file_path)}.tmp") as tmp_file:
            tmp_path = tmp_file.name
            tmp_file.write(content)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())

        if os.path.exists(file_path):
            shutil.copymode(file_path, tmp_path)
        else:
            os.chmod(tmp_path, 0o644)

        os.replace(tmp_path, file_path)
        logger.debug(f"Successfully wrote {file_path}")
        return True

    except OSError as e:
        logger.error(f"Failed to write {file_path}: {e}")
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        return False
