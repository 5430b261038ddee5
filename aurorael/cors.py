from typing import Dict, Optional, Sequence


def cors_headers(origin: Optional[str], allowed_origins: Sequence[str]) -> Dict[str, str]:
    """Echo ``origin`` only when it is allowed; otherwise use the first allowed one."""
    allowed = origin if origin and origin in allowed_origins else (allowed_origins[0] if allowed_origins else "*")
    return {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": allowed,
        "Access-Control-Allow-Methods": "POST, OPTIONS, GET",
        "Access-Control-Allow-Headers": "Content-Type",
    }
