from fastapi import APIRouter
from typing import Dict, Any
from ..providers.chain_rpc import get_chain_rpc_provider
from ..providers.llm import get_llm_provider, LLMProviderError
from ..providers.openweather import get_weather_provider
from ..providers.relay import get_relay_provider

router = APIRouter()


@router.get("/healthz")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint that verifies provider status"""

    provider_status: Dict[str, Dict[str, Any]] = {}

    provider_status["chain_rpc"] = await get_chain_rpc_provider().health_check()
    provider_status["relay"] = await get_relay_provider().health_check()
    provider_status["openweather"] = await get_weather_provider().health_check()

    try:
        llm = get_llm_provider()
        provider_status["llm"] = await llm.health_check()
    except (LLMProviderError, ValueError) as e:
        provider_status["llm"] = {"status": "unavailable", "reason": str(e)}

    # Weather is optional; everything else must be reachable
    required = [name for name in provider_status if name != "openweather"]
    all_healthy = all(provider_status[name]["status"] == "healthy" for name in required)

    return {
        "status": "healthy" if all_healthy else "degraded",
        "providers": provider_status,
        "available_providers": sum(
            1 for status in provider_status.values() if status["status"] == "healthy"
        ),
        "total_providers": len(provider_status),
    }
