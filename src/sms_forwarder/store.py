from __future__ import annotations

import json
import logging
import os
import tempfile
from functools import lru_cache
from pathlib import Path

from pydantic import ValidationError

from .config import get_settings
from .sms import ForwardingPolicy

logger = logging.getLogger(__name__)


class ConfigStore:
    """
    JSON-file persistence for the single ForwardingPolicy record.

    - read() never raises: a missing file is created with defaults, an
      unreadable or corrupt one yields a disabled policy.
    - write() replaces the whole record via temp file + rename, so readers
      never see a partially written file. Concurrent writers: last one wins.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> ForwardingPolicy:
        try:
            if not self.path.exists():
                return self._create_default()
            return self._load()
        except (OSError, ValueError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning("Forwarding config at %s is unreadable, forwarding disabled: %s", self.path, e)
            return ForwardingPolicy.fail_safe()

    def write(self, policy: ForwardingPolicy) -> None:
        tmp_name = self._write_temp(policy)
        try:
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _load(self) -> ForwardingPolicy:
        raw = self.path.read_text(encoding="utf-8")
        return ForwardingPolicy.model_validate(json.loads(raw))

    def _create_default(self) -> ForwardingPolicy:
        """
        Publish the default record only if no record exists yet.

        os.link fails when the target exists, so a write() that lands after
        our exists() check is kept and re-read instead of being overwritten.
        """
        policy = ForwardingPolicy.default()
        tmp_name = self._write_temp(policy)
        try:
            os.link(tmp_name, self.path)
        except FileExistsError:
            return self._load()
        finally:
            Path(tmp_name).unlink(missing_ok=True)

        logger.info("Created default forwarding config at %s", self.path)
        return policy

    def _write_temp(self, policy: ForwardingPolicy) -> str:
        """Fully written, fsynced temp file next to the target."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(policy.to_wire(), indent=2) + "\n"

        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return tmp_name


@lru_cache
def get_config_store() -> ConfigStore:
    return ConfigStore(get_settings().storage_file)
