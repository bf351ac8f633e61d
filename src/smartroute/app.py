from fastapi import FastAPI, HTTPException
import asyncio
import dataclasses
from typing import Dict, List
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load env first so settings and config below see API keys and overrides
load_dotenv(".env", override=False)

from . import __version__
from .agents.coordinator import Dispatcher
from .config import load_config
from .settings import Settings
from .utils.logger import setup_logger
from .utils.rate_limiter import RateLimiter

logger = setup_logger()

config = load_config()
rate_limiter = RateLimiter(config.rate_limits, default_key=config.default_rate_limit_key)

# Single shared dispatcher; it rebuilds its tool backend when settings change
dispatcher = Dispatcher(config, rate_limiter)

# global runtime settings (updated by PATCH /settings, overridable per request)
runtime_settings = Settings.from_env()

app = FastAPI(title="SmartRoute", version=__version__)


@app.on_event("shutdown")
async def _shutdown():
    await dispatcher.aclose()


class SettingsPayload(BaseModel):
    provider: str | None = None
    model: str | None = None
    custom_model: str | None = None
    api_key: str | None = None
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    deepseek_api_key: str | None = None
    workspace_connected: bool | None = None
    oauth_client_id: str | None = None
    oauth_client_secret: str | None = None
    temperature: float | None = None

    def apply(self, base: Settings) -> Settings:
        changes = self.model_dump(exclude_none=True)
        return dataclasses.replace(base, **changes) if changes else base


class ChatRequest(BaseModel):
    prompt: str = Field(min_length=1)
    settings: SettingsPayload | None = None
    timeout: float | None = Field(default=None, gt=0)


class ChatResponse(BaseModel):
    response: str


@app.post("/chat", response_model=ChatResponse)
async def chat(req: ChatRequest):
    settings = req.settings.apply(runtime_settings) if req.settings else runtime_settings
    logger.debug("[chat] provider=%s prompt=%.100r", settings.provider, req.prompt)
    try:
        result = await dispatcher.run(req.prompt, settings, timeout=req.timeout)
    except asyncio.TimeoutError:
        logger.warning("[chat] dispatch timed out after %ss", req.timeout)
        raise HTTPException(status_code=504, detail="Timed out waiting for a response")
    except Exception as e:
        logger.exception("[chat] dispatch failed")
        raise HTTPException(status_code=502, detail=str(e))
    return ChatResponse(response=result)


@app.get("/")
async def root():
    return {"message": "SmartRoute is running. Use POST /chat."}


@app.get("/settings")
async def get_settings():
    return runtime_settings.to_dict()


@app.patch("/settings")
async def patch_settings(s: SettingsPayload):
    global runtime_settings
    runtime_settings = s.apply(runtime_settings)
    logger.info(
        "[settings] provider=%s model=%s workspace_connected=%s",
        runtime_settings.provider,
        runtime_settings.resolved_model(),
        runtime_settings.workspace_connected,
    )
    return runtime_settings.to_dict()


@app.get("/status")
async def status():
    return {
        "state": dispatcher.state.value,
        "backend": getattr(dispatcher.backend, "name", None),
        "workspace_available": dispatcher.is_workspace_available(),
    }


@app.get("/tools", response_model=List[str])
async def tools():
    return dispatcher.available_tools()


@app.post("/workspace/check")
async def workspace_check() -> Dict[str, str]:
    return await dispatcher.check_workspace_access()


@app.post("/workspace/oauth")
async def workspace_oauth():
    message = await dispatcher.start_oauth(runtime_settings)
    return {"message": message}


def main():
    import uvicorn

    uvicorn.run("smartroute.app:app", host="0.0.0.0", port=8080)


if __name__ == "__main__":
    main()
