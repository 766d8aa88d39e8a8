from collections import deque
from typing import Callable, Dict, Any, List

from companion_host.services.events import now_iso


class Registry:
    """Per-module state the panel renders: health, action catalog, recent log lines."""

    def __init__(self, log_size: int = 100):
        self.modules: Dict[str, Dict[str, Any]] = {}
        self._log_size = log_size
        self._listeners: List[Callable[[Dict[str, Any]], None]] = []

    def _entry(self, module: str) -> Dict[str, Any]:
        if module not in self.modules:
            self.modules[module] = {
                "status": "unknown",
                "message": None,
                "actions": {},
                "log": deque(maxlen=self._log_size),
            }
        return self.modules[module]

    def set_status(self, module: str, status: str, message: str = None) -> None:
        e = self._entry(module)
        changed = (e["status"], e["message"]) != (status, message)
        e["status"] = status
        e["message"] = message
        if changed:
            self._notify()

    def set_actions(self, module: str, actions: Dict[str, Any]) -> None:
        self._entry(module)["actions"] = actions
        self._notify()

    def add_log(self, module: str, level: str, message: str) -> None:
        self._entry(module)["log"].append({"ts": now_iso(), "level": level, "message": message})

    def remove(self, module: str) -> None:
        if self.modules.pop(module, None) is not None:
            self._notify()

    def subscribe(self, cb: Callable[[Dict[str, Any]], None]) -> None:
        self._listeners.append(cb)

    def _notify(self) -> None:
        snap = self.snapshot()
        for cb in self._listeners:
            cb(snap)

    def snapshot(self) -> Dict[str, Any]:
        return {"modules": {m: {**e, "log": list(e["log"])} for m, e in self.modules.items()}}
