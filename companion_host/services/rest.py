import asyncio
import errno
import json
import logging
from typing import Any, Dict, Optional

import aiohttp
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class RestResponse(BaseModel):
    status_code: int
    status_message: str
    data: Any = None


class RestError(BaseModel):
    code: str
    message: str


class RestResult(BaseModel):
    """Outcome of a raw HTTP call: a transport error, a response, or neither."""
    error: Optional[RestError] = None
    response: Optional[RestResponse] = None


class RestClient:
    """Raw GET/POST for plugins. Never raises for network failures; see RestResult."""

    def __init__(self, timeout_s: float = 5.0, session: aiohttp.ClientSession | None = None):
        self.timeout_s = timeout_s
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def get(self, url: str) -> RestResult:
        return await self._request("GET", url)

    async def post(self, url: str, body: Dict[str, Any] | None = None) -> RestResult:
        return await self._request("POST", url, body or {})

    async def _request(self, method: str, url: str, body: Dict[str, Any] | None = None) -> RestResult:
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(total=self.timeout_s)
        logger.debug("%s %s %s", method, url, body if body is not None else "")
        try:
            async with session.request(method, url, json=body, timeout=timeout) as resp:
                try:
                    data = await resp.json(content_type=None)
                except (json.JSONDecodeError, UnicodeDecodeError):
                    data = None
                return RestResult(response=RestResponse(status_code=resp.status,
                                                        status_message=resp.reason or "", data=data))
        except asyncio.TimeoutError:
            return RestResult(error=RestError(code="ETIMEDOUT", message=f"no response after {self.timeout_s}s"))
        except aiohttp.ClientConnectorError as e:
            return RestResult(error=RestError(code=_errno_name(e.os_error), message=e.strerror or str(e)))
        except aiohttp.ClientError as e:
            return RestResult(error=RestError(code=type(e).__name__, message=str(e)))

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None


def _errno_name(err: OSError) -> str:
    if err is not None and err.errno is not None:
        return errno.errorcode.get(err.errno, str(err.errno))
    return "ECONNECTION"
