import logging
from enum import Enum
from typing import Dict, Any, Optional, Iterable, List, Type

from fastapi import APIRouter, HTTPException, Body
from pydantic import BaseModel, ValidationError

from companion_host.services.events import now_iso


class Status(str, Enum):
    OK = "ok"
    ERROR = "error"
    UNKNOWN = "unknown"


class Choice(BaseModel):
    id: str
    label: str


class DropdownOption(BaseModel):
    id: str
    label: str
    type: str = "dropdown"
    choices: List[Choice] = []


class ActionDefinition(BaseModel):
    label: str
    options: List[DropdownOption] = []


class PluginContext:
    def __init__(self, registry, scheduler, rest, settings, mqtt=None):
        self.registry = registry
        self.scheduler = scheduler
        self.rest = rest  # raw GET/POST returning RestResult
        self.settings = settings  # dict
        self.mqtt = mqtt


class CompanionPlugin:
    """Base class for panel plugins.

    The host builds a PluginContext and hands it to the plugin; everything the
    plugin needs from the host (status, log, action catalog, HTTP, timers)
    goes through it.
    """
    module_name: str  # e.g., "orfast_ndi"
    config_model: Optional[Type[BaseModel]] = None

    def __init__(self, ctx: PluginContext):
        self.ctx = ctx
        self.logger = logging.getLogger(f"plugins.{self.module_name}")
        self.config = self.config_model.model_validate(ctx.settings) if self.config_model else None
        self._catalog: Dict[str, ActionDefinition] = {}

    # Host capabilities
    def status(self, status: Status, message: Optional[str] = None) -> None:
        self.ctx.registry.set_status(self.module_name, status.value, message)

    def log(self, level: str, message: str) -> None:
        self.logger.log(logging.getLevelName(level.upper()), message)
        self.ctx.registry.add_log(self.module_name, level, message)

    def set_actions(self, actions: Dict[str, ActionDefinition]) -> None:
        self._catalog = actions
        self.ctx.registry.set_actions(self.module_name, {k: v.model_dump() for k, v in actions.items()})

    # MQTT topic filters the host should subscribe on and forward to action()
    def mqtt_topic_filters(self) -> Iterable[str]:
        return [f"/companion/{self.module_name}/cmd"]

    def config_fields(self) -> List[Dict[str, Any]]:
        return []

    # Lifecycle hooks
    async def init(self) -> None:
        pass

    async def update_config(self, settings: Dict[str, Any]) -> None:
        if self.config_model:
            self.config = self.config_model.model_validate(settings)

    async def action(self, action_id: str, options: Dict[str, Any]) -> None:
        raise NotImplementedError

    def destroy(self) -> None:
        pass

    def api_router(self) -> Optional[APIRouter]:
        r = APIRouter()

        @r.get("/status")
        def status():
            return self.ctx.registry.snapshot()["modules"].get(self.module_name, {})

        @r.get("/actions")
        def actions():
            return {k: v.model_dump() for k, v in self._catalog.items()}

        @r.post("/actions/{action_id}")
        async def run_action(action_id: str, options: Optional[Dict[str, Any]] = Body(None)):
            if action_id not in self._catalog:
                raise HTTPException(status_code=404, detail="unknown action")
            await self.action(action_id, options or {})
            return {"ok": True, "action": action_id, "ts": now_iso()}

        @r.get("/config")
        def get_config():
            values = self.config.model_dump() if self.config is not None else {}
            return {"fields": self.config_fields(), "values": values}

        @r.put("/config")
        async def put_config(settings: Dict[str, Any] = Body(...)):
            try:
                await self.update_config(settings)
            except ValidationError as e:
                raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
            return {"ok": True, "values": self.config.model_dump()}

        return r
