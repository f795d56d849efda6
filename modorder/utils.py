import os
import tempfile
import time
from functools import wraps
from typing import Union

import modorder.ui_logger as logging


class Utils:
    @staticmethod
    def log_time(message=None):
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start = time.perf_counter()
                start_msg = f"[{func.__name__}] - "
                if message:
                    start_msg += f"{message} - "
                start_msg += "Starting..."
                logging.debug(start_msg)

                result = func(*args, **kwargs)
                elapsed = time.perf_counter() - start
                finish_msg = f"[{func.__name__}] - "
                if message:
                    finish_msg += f"{message} - "
                finish_msg += f"Finished in {elapsed:.4f} seconds."
                logging.debug(finish_msg)

                return result

            return wrapper

        return decorator

    @staticmethod
    def compare_file_with_bytes(file_path: str, source: bytes, chunk_size=8192):
        with open(file_path, "rb") as f:
            while chunk := f.read(chunk_size):
                if chunk != source[: len(chunk)]:
                    return False
                source = source[len(chunk) :]
            return len(source) == 0

    @staticmethod
    def should_write(source: Union[str, bytes], dst_path: str, encoding="utf-8"):
        """
        Returns True if `dst_path` does not exist or its content differs from `source`.

        - If `source` is str, it will be encoded using `encoding` before comparison.
        - If `source` is bytes, it will be used directly.
        """
        if not os.path.exists(dst_path):
            return True
        if isinstance(source, str):
            source_bytes = source.encode(encoding)
        elif isinstance(source, bytes):
            source_bytes = source
        else:
            raise TypeError(f"Unsupported source type: {type(source)}")
        try:
            return not Utils.compare_file_with_bytes(dst_path, source_bytes)
        except OSError as err:
            logging.warning(f"Could not compare against '{dst_path}': {err}")
            return True

    @staticmethod
    def atomic_write(dst_path: str, source: Union[str, bytes], encoding="utf-8") -> bool:
        """
        Writes `source` to a temp file next to `dst_path` then replaces `dst_path` with it,
        so a crash mid-write leaves the previous file intact.
        Returns False when the file already holds `source`.
        """
        if not Utils.should_write(source, dst_path, encoding):
            return False
        data = source.encode(encoding) if isinstance(source, str) else source
        dirname = os.path.dirname(os.path.abspath(dst_path))
        os.makedirs(dirname, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{os.path.basename(dst_path)}.", suffix=".tmp", dir=dirname
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, dst_path)  # atomic on the same filesystem
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        return True
