import asyncio
import logging
from importlib import import_module
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from companion_host.plugin_api import CompanionPlugin, PluginContext
from companion_host.services.mqtt import SharedMQTT
from companion_host.services.registry import Registry
from companion_host.services.rest import RestClient
from companion_host.services.scheduler import Scheduler
from companion_host.services.events import ack, now_iso
from companion_host import config

logger = logging.getLogger(__name__)

app = FastAPI(title="Companion Host")

registry = Registry()
scheduler = Scheduler()
rest = RestClient(**config.REST)
mqtt: SharedMQTT | None = None

_plugins: Dict[str, CompanionPlugin] = {}


def _load_class(path: str):
    mod, cls = path.split(":")
    m = import_module(mod)
    return getattr(m, cls)


def _mqtt_action_handler(inst: CompanionPlugin, loop: asyncio.AbstractEventLoop):
    """Build the MQTT callback for a plugin; runs on paho's thread, work goes to the loop."""
    evt_topic = f"/companion/{inst.module_name}/evt"

    def _cb(topic: str, payload: Dict[str, Any]) -> None:
        req_id = payload.get("req_id", "no-req")
        action = payload.get("action")
        params = payload.get("params") or {}
        if not action:
            mqtt.publish_json(evt_topic, ack(req_id, False, action, "BAD_REQUEST", "missing action"))
            return
        if not isinstance(params, dict):
            mqtt.publish_json(evt_topic, ack(req_id, False, action, "BAD_REQUEST", "params must be an object"))
            return
        fut = asyncio.run_coroutine_threadsafe(inst.action(action, params), loop)

        def _done(f):
            err = f.exception()
            if err is not None:
                mqtt.publish_json(evt_topic, ack(req_id, False, action, "EXCEPTION", str(err)))
            else:
                mqtt.publish_json(evt_topic, ack(req_id, True, action, "DISPATCHED"))

        fut.add_done_callback(_done)

    return _cb


def _publish_registry(snap: Dict[str, Any]) -> None:
    snap = dict(snap)
    snap["ts"] = now_iso()
    mqtt.publish_json("/companion/registry", snap, qos=1, retain=True)


async def load_plugins():
    loop = asyncio.get_running_loop()
    for p in config.PLUGINS:
        Cls = _load_class(p["path"])  # type: ignore
        ctx = PluginContext(registry=registry, scheduler=scheduler, rest=rest,
                            settings=p.get("settings", {}), mqtt=mqtt)
        inst: CompanionPlugin = Cls(ctx)
        _plugins[inst.module_name] = inst
        if mqtt is not None:
            mqtt.subscribe(inst.mqtt_topic_filters(), _mqtt_action_handler(inst, loop))
        router = inst.api_router()
        if router:
            app.include_router(router, prefix=f"/api/{inst.module_name}", tags=[inst.module_name])
        logger.info("Loaded plugin %s from %s", inst.module_name, p["path"])
        await inst.init()


@app.on_event("startup")
async def on_start():
    global mqtt
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    scheduler.start()
    if config.MQTT["host"]:
        mqtt = SharedMQTT(**config.MQTT)
        mqtt.start()
        registry.subscribe(_publish_registry)
    await load_plugins()


@app.on_event("shutdown")
async def on_stop():
    for name, inst in list(_plugins.items()):
        inst.destroy()
        registry.remove(name)
    _plugins.clear()
    scheduler.shutdown()
    await rest.close()
    if mqtt is not None:
        mqtt.stop()


@app.get("/api/registry", response_class=JSONResponse)
async def api_registry():
    snap = registry.snapshot()
    snap["ts"] = now_iso()
    snap["plugins"] = list(_plugins.keys())
    return JSONResponse(content=snap)
