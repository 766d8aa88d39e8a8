import asyncio
from typing import Dict, Any, List

from pydantic import BaseModel, Field

from companion_host.plugin_api import (CompanionPlugin, PluginContext, Status, Choice,
                                       DropdownOption, ActionDefinition)

NO_OUTPUT_ID = "-1"
NO_SOURCE_ID = "---"

SELECT_OUTPUT = Choice(id=NO_OUTPUT_ID, label="(select an output)")
NO_OUTPUTS = Choice(id=NO_OUTPUT_ID, label="(No Video Outputs found.)")
NO_SOURCE = Choice(id=NO_SOURCE_ID, label=NO_SOURCE_ID)

AUDIO_CHOICES = [Choice(id="mute", label="Mute"), Choice(id="unmute", label="Unmute")]


class DeviceRequestError(Exception):
    """A REST call to the device failed (transport error, non-200 or unexpected payload)."""


class OrfastConfig(BaseModel):
    host: str = Field(min_length=1)
    port: int = Field(4242, ge=1, le=65535)
    polling_rate: int = Field(10000, ge=0)  # ms


class OrfastNDIPlugin(CompanionPlugin):
    module_name = "orfast_ndi"
    config_model = OrfastConfig

    def __init__(self, ctx: PluginContext):
        super().__init__(ctx)
        self.video_outputs: List[Choice] = [NO_OUTPUTS]
        self.ndi_sources: List[Choice] = [NO_SOURCE]
        self._timer = None
        self._generation = 0
        self.actions()

    async def init(self) -> None:
        self.status(Status.OK)
        self.init_timer()
        await self.get_data()

    async def update_config(self, settings: Dict[str, Any]) -> None:
        await super().update_config(settings)  # ValidationError keeps the old config
        self._generation += 1
        self.status(Status.OK)
        self.init_timer()
        await self.get_data()

    def destroy(self) -> None:
        self._generation += 1  # in-flight polls must not touch the registry after shutdown
        if self._timer is not None:
            self.ctx.scheduler.cancel(self._timer)
            self._timer = None
        self.logger.debug("destroy")

    def config_fields(self) -> List[Dict[str, Any]]:
        return [
            {"type": "text", "id": "info", "width": 12, "label": "Information",
             "value": "This module will control Orfast NDI."},
            {"type": "textinput", "id": "host", "label": "IP Address", "width": 4},
            {"type": "textinput", "id": "port", "label": "Port", "width": 4, "default": 4242},
            {"type": "number", "id": "polling_rate", "label": "Polling Rate", "default": 10000,
             "required": True, "min": 0,
             "tooltip": "The rate in milliseconds at which data should be polled for new video outputs "
                        "and NDI sources. Set to 0 (zero) to disable."},
        ]

    # Polling

    def init_timer(self) -> None:
        if self._timer is not None:
            self.ctx.scheduler.cancel(self._timer)
            self._timer = None

        if self.config.polling_rate > 0:
            self._timer = self.ctx.scheduler.every(self.config.polling_rate / 1000, self.get_data,
                                                   job_id=f"{self.module_name}-poll")

    async def get_data(self) -> None:
        await asyncio.gather(self.get_video_outputs(), self.get_ndi_sources())

    async def get_video_outputs(self) -> None:
        names = await self._poll_names("/v1/vo", "vo_channels")
        if names is None:
            return
        if names:
            self.video_outputs = [SELECT_OUTPUT] + [Choice(id=n, label=n) for n in names]
        else:
            self.video_outputs = [NO_OUTPUTS]
        self.actions()  # republish, the output dropdowns changed

    async def get_ndi_sources(self) -> None:
        names = await self._poll_names("/v1/ndi", "ndi_source_list")
        if names is None:
            return
        self.ndi_sources = [NO_SOURCE] + [Choice(id=n, label=n) for n in names]
        self.actions()  # republish, the source dropdowns changed

    async def _poll_names(self, cmd: str, field: str) -> List[str] | None:
        """GET `cmd` and return the `name` of every entry in `data.<field>`.

        Returns None when the poll failed or was overtaken by a config change;
        failures are already reported by then.
        """
        generation = self._generation
        try:
            result = await self.get_rest(cmd)
            try:
                names = [str(item["name"]) for item in result["data"][field]]
            except (KeyError, TypeError) as e:
                raise DeviceRequestError(f"Malformed response from {cmd}: expected data.{field}[].name") from e
        except DeviceRequestError as e:
            if generation == self._generation:
                self._report_error(str(e))
            return None
        if generation != self._generation:
            self.logger.debug("Discarding %s response from previous configuration", cmd)
            return None
        return names

    # Commands

    async def set_channel(self, vo: str, ndi: str | None = None, mute_audio: bool | None = None) -> None:
        if vo is None or str(vo) in ("", NO_OUTPUT_ID):
            return

        body: Dict[str, Any] = {"ndisource": ndi or NO_SOURCE_ID}
        if mute_audio is not None:
            body["mute_audio"] = mute_audio

        try:
            await self.post_rest(f"/v1/{vo}", body)
        except DeviceRequestError as e:
            self._report_error(str(e))

    def _report_error(self, message: str) -> None:
        self.log("error", f"{self.config.host} : {message}")
        self.status(Status.ERROR, message)

    # Action catalog

    def actions(self) -> Dict[str, ActionDefinition]:
        def vo():
            return DropdownOption(id="vo", label="Video Output", choices=self.video_outputs)

        def ndi():
            return DropdownOption(id="ndi", label="NDI Source", choices=self.ndi_sources)

        def audio():
            return DropdownOption(id="audio", label="Audio Mute", choices=AUDIO_CHOICES)

        catalog = {
            "set_channel": ActionDefinition(label="Set NDI Channel", options=[vo(), ndi()]),
            "set_channel_and_audio": ActionDefinition(label="Set NDI Channel and Audio Mute",
                                                      options=[vo(), ndi(), audio()]),
            "set_audio": ActionDefinition(label="Set Audio Mute", options=[vo(), audio()]),
            "get_ndi_sources": ActionDefinition(label="Get Updated NDI Sources"),
        }
        self.set_actions(catalog)
        return catalog

    async def action(self, action_id: str, options: Dict[str, Any]) -> None:
        opt = options or {}
        try:
            if action_id == "set_channel":
                await self.set_channel(opt["vo"], opt.get("ndi"))
            elif action_id == "set_channel_and_audio":
                await self.set_channel(opt["vo"], opt.get("ndi"), opt.get("audio") == "mute")
            elif action_id == "set_audio":
                await self.set_channel(opt["vo"], None, opt.get("audio") == "mute")
            elif action_id == "get_ndi_sources":
                await self.get_ndi_sources()
            else:
                self.log("warning", f"Unknown action: {action_id}")
        except Exception as e:
            self.log("error", f"Action {action_id} failed: {e!r}")

    # REST

    async def get_rest(self, cmd: str) -> Any:
        return await self.do_rest("GET", cmd)

    async def post_rest(self, cmd: str, body: Dict[str, Any]) -> Any:
        return await self.do_rest("POST", cmd, body)

    async def do_rest(self, method: str, cmd: str, body: Dict[str, Any] | None = None) -> Any:
        """Perform a GET or POST against the device.

        Returns the parsed JSON payload of a 200 response and raises
        DeviceRequestError for anything else.
        """
        url = self.make_url(cmd)

        if method == "GET":
            result = await self.ctx.rest.get(url)
        elif method == "POST":
            result = await self.ctx.rest.post(url, body or {})
        else:
            raise ValueError(f"Invalid method: {method}")

        if result.error is None and result.response is not None and result.response.status_code == 200:
            return result.response.data

        message = "Unknown error"
        if result.response is not None:
            message = f"{result.response.status_code}: {result.response.status_message}"
        elif result.error is not None:
            message = f"{result.error.code}: {result.error.message}"
        raise DeviceRequestError(message)

    def make_url(self, cmd: str) -> str:
        if not cmd.startswith("/"):
            raise ValueError("cmd must start with a /")
        return f"http://{self.config.host}:{self.config.port}{cmd}"
