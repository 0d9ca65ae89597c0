import logging

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    db_url: str = "sqlite:///./policy_store.db"
    echo_sql: bool = False

    # Bounded wait (seconds) for the per-rule critical section
    lock_timeout: float = Field(gt=0, default=5.0)

    # Decision engine
    cache_enabled: bool = Field(default=True, description="Cache decoded active policy documents")
    default_rulesets: list[str] = Field(
        default_factory=lambda: ["rbac_access_control"],
        description="Rulesets consulted when no resolver is supplied",
    )
    baseline_rule_id: str = Field(default="rbac_access_control", description="Rule created by the bootstrap step")
    baseline_ruleset: str = Field(default="rbac_access_control", description="Ruleset of the baseline rule")

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix='ps_')


@lru_cache()
def get_settings():
    return Settings()
