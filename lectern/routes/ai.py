"""Ghost-text completion endpoint."""

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from lectern.exceptions import CompletionRequestError, ProviderNotConfiguredError
from lectern.middleware.rate_limit import rate_limit_copilot
from lectern.services.ai.copilot import CopilotRequest, complete

logger = logging.getLogger(__name__)

router = APIRouter()

# How often to check whether the caller went away while the model is busy
DISCONNECT_POLL_SECONDS = 0.1


class CopilotBody(BaseModel):
    prompt: str
    model: str | None = None
    provider: str | None = None
    system: str | None = None


async def _run_until_disconnect(request: Request, task: asyncio.Task):
    """Await ``task``, cancelling it if the client disconnects first."""
    while not task.done():
        done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
        if not done and await request.is_disconnected():
            logger.info("Copilot client disconnected, cancelling generation")
            task.cancel()
            break
    return await task


@router.post("/copilot")
@rate_limit_copilot()
async def copilot(request: Request, body: CopilotBody):
    """Generate a short continuation of the prompt."""
    task = asyncio.ensure_future(
        complete(
            CopilotRequest(
                prompt=body.prompt,
                model=body.model,
                provider=body.provider,
                system=body.system,
            ),
            user_id=request.headers.get("x-user-id"),
        )
    )

    try:
        result = await _run_until_disconnect(request, task)
    except ProviderNotConfiguredError as e:
        return JSONResponse(status_code=401, content={"error": str(e)})
    except CompletionRequestError as e:
        if e.status_code == 408:
            return JSONResponse(status_code=408, content=None)
        return JSONResponse(status_code=500, content={"error": str(e)})
    except asyncio.CancelledError:
        if not task.cancelled():
            raise
        return JSONResponse(status_code=408, content=None)

    return JSONResponse(
        content={
            "text": result.text,
            "provider": result.provider,
            "model": result.model,
            "usage": {
                "inputTokens": result.input_tokens,
                "outputTokens": result.output_tokens,
            },
        }
    )
