from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..bot.handlers import Assistant, get_assistant
from ..providers.solana import SolanaLedger

router = APIRouter()


@router.get("/healthz")
async def health_check(assistant: Assistant = Depends(get_assistant)) -> Dict[str, Any]:
    """Health check endpoint that verifies provider status"""
    provider_status: Dict[str, Any] = {
        "telegram": await assistant.notifier.health_check(),
        "nlu": {
            "status": "healthy" if assistant.resolver.nlu and assistant.resolver.nlu.available else "unavailable",
        },
    }
    if assistant.rpc is not None:
        provider_status["solana_rpc"] = await SolanaLedger(assistant.rpc).health_check()

    healthy = sum(1 for status in provider_status.values() if status["status"] == "healthy")
    degraded = any(status["status"] == "error" for status in provider_status.values())

    return {
        "status": "degraded" if degraded or healthy == 0 else "healthy",
        "providers": provider_status,
        "available_providers": healthy,
        "total_providers": len(provider_status),
    }
