import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from jsonpilot.backend import Backend
from jsonpilot.config import load_settings

logger = logging.getLogger("jsonpilot_backend")

settings = load_settings()
backend = Backend(settings)

app = FastAPI()

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for dev
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class Event(BaseModel):
    type: str
    payload: Optional[Any] = None
    timestamp: Optional[str] = None


class RepairRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = None
    content: Optional[str] = None
    error: Optional[str] = None
    knowledge_base: Optional[str] = Field(default=None, alias="knowledgeBase")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/events")
def send_event(event: Event):
    try:
        return backend.process_request_data(event.model_dump())
    except Exception as e:
        logger.exception(f"Error while handling event {event.type}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/json-repair-agent")
def json_repair_agent(request: RepairRequest):
    if not request.content:
        raise HTTPException(status_code=400, detail="Missing content")
    try:
        chunks = backend.repair_agent.stream_repair(
            request.content,
            request.error or "Unknown JSON error",
            request.knowledge_base,
            prompt=request.prompt,
        )
    except Exception as e:
        logger.exception(f"JSON Repair Agent error: {e}")
        raise HTTPException(status_code=500, detail=f"JSON Repair Agent error: {e}")
    return StreamingResponse(chunks, media_type="text/plain; charset=utf-8")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
