import json
import os
import secrets

PRIVATE_FILE_MODE = 0o600


def write_private_json(path: str, data: dict) -> None:
    """
    Write JSON to `path` with owner-only permissions.

    Content is staged in `<path>.tmp-<hex>` next to the target and renamed
    over it, so readers see either the old or the new document. The staging
    file is removed if anything fails before the rename.
    """
    tmp_path = f"{path}.tmp-{secrets.token_hex(4)}"
    content = json.dumps(data, indent=2)

    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, PRIVATE_FILE_MODE)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            # umask may have stripped bits from the requested mode
            os.chmod(tmp_path, PRIVATE_FILE_MODE)
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
