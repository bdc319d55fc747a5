from typing import Any

from fastapi import APIRouter

from tutorgen.domain.tutorial.schema import SCHEMA_VERSION, tutorial_json_schema
from tutorgen.services.tutorial.generation_service import (
    NormalizeRequest,
    TutorialGenerateRequest,
    generate_tutorial as service_generate_tutorial,
    normalize_raw_output as service_normalize_raw_output,
)
from tutorgen.services.tutorial.prompt_builder import default_prompt_sections


router = APIRouter(prefix="/api/generate-tutorial", tags=["tutorials"])


@router.post("")
async def generate_tutorial(payload: TutorialGenerateRequest) -> dict[str, Any]:
    return await service_generate_tutorial(payload)


@router.post("/normalize")
def normalize_tutorial_output(payload: NormalizeRequest) -> dict[str, Any]:
    return service_normalize_raw_output(payload)


@router.get("/prompts")
def get_default_prompts() -> dict[str, str]:
    return default_prompt_sections()


@router.get("/schema")
def get_tutorial_schema() -> dict[str, Any]:
    return {"version": SCHEMA_VERSION, "schema": tutorial_json_schema()}
