import os
from typing import Dict
from dataclasses import dataclass


@dataclass(frozen=True)
class BucketConfig:
    name: str
    path: str
    expires: int
    cache_control: int


@dataclass(frozen=True)
class SupabaseSettings:
    url: str
    anon_key: str
    buckets: Dict[str, BucketConfig]


def _load_settings() -> SupabaseSettings:
    buckets = {
        "contracts": BucketConfig(
            name=os.getenv("STORAGE_CONTRACTS_BUCKET", "contracts"),
            path=os.getenv(
                "SUPABASE_CONTRACT_PATH", "{owner_id}/{timestamp}.{ext}"
            ),
            expires=int(os.getenv("SUPABASE_CONTRACT_SIGN_EXPIRES", "3600")),
            cache_control=int(os.getenv("SUPABASE_CONTRACT_CACHE_CONTROL", "3600")),
        ),
    }

    return SupabaseSettings(
        url=os.getenv("SUPABASE_URL", "").rstrip("/"),
        anon_key=os.getenv("SUPABASE_ANON_KEY", ""),
        buckets=buckets,
    )


settings = _load_settings()
