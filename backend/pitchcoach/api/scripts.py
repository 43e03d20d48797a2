# backend/pitchcoach/api/scripts.py
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from pitchcoach.analysis.scripts import ObjectionBatch, ScriptAnalysis, ScriptBrief
from pitchcoach.pipelines.script_pipeline import (
    ScriptGenerationError,
    ScriptInputError,
    analyze_script,
    generate_script,
    generate_script_objections,
    rewrite_script,
)
from pitchcoach.services.openai_service import LLMUnavailableError
from pitchcoach.utils.rate_limit import expensive_rate_limit

router = APIRouter(prefix="/api/scripts", tags=["scripts"])


class AnalyzeScriptRequest(BaseModel):
    script: str = ""


class RewriteScriptRequest(BaseModel):
    original_script: str = ""
    analysis: ScriptAnalysis


class ScriptObjectionsRequest(ScriptBrief):
    type: ObjectionBatch = "initial"


@router.post("/generate")
@expensive_rate_limit()
async def generate(request: Request, brief: ScriptBrief):
    return await generate_script(brief)


@router.post("/analyze")
@expensive_rate_limit()
async def analyze(request: Request, req: AnalyzeScriptRequest):
    try:
        return await analyze_script(req.script)
    except ScriptInputError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/rewrite")
@expensive_rate_limit()
async def rewrite(request: Request, req: RewriteScriptRequest):
    try:
        return await rewrite_script(req.original_script, req.analysis)
    except ScriptInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LLMUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Failed to rewrite script with AI: {e}")


@router.post("/objections")
@expensive_rate_limit()
async def objections(request: Request, req: ScriptObjectionsRequest):
    try:
        return await generate_script_objections(req, batch=req.type)
    except LLMUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"AI providers are currently unavailable: {e}")
    except ScriptGenerationError as e:
        raise HTTPException(status_code=502, detail=str(e))
