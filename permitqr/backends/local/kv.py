import json
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

from permitqr.logging.logger import Log


class KeyValueFile:
    """Durable key-value layer: one JSON file per key under ``root``.

    With ``root=None`` nothing is written and values live only in memory.
    """

    SUFFIX = ".json"

    def __init__(self, root: Path | None = None) -> None:
        self._root = root
        self._memory: dict[str, Any] = {}
        if root is not None:
            root.mkdir(parents=True, exist_ok=True)

    def get(self, key: str) -> Any | None:
        if self._root is None:
            return self._memory.get(key)
        path = self._path(self._root, key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            Log.error(f"Skipping unreadable cache entry {key}: {exc}")
            return None

    def set(self, key: str, value: Any) -> None:
        if self._root is None:
            self._memory[key] = value
            return
        path = self._path(self._root, key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(value), encoding="utf-8")
        tmp.replace(path)

    def delete(self, key: str) -> None:
        if self._root is None:
            self._memory.pop(key, None)
            return
        self._path(self._root, key).unlink(missing_ok=True)

    def keys(self, prefix: str = "") -> list[str]:
        if self._root is None:
            return sorted(k for k in self._memory if k.startswith(prefix))
        names = (unquote(p.name[: -len(self.SUFFIX)]) for p in self._root.glob(f"*{self.SUFFIX}"))
        return sorted(name for name in names if name.startswith(prefix))

    def _path(self, root: Path, key: str) -> Path:
        return root / f"{quote(key, safe='')}{self.SUFFIX}"
