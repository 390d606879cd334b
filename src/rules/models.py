from pydantic import BaseModel, Field, field_validator


class ProjectRules(BaseModel):
    slug: str
    rules_version: str


class NewsletterRules(BaseModel):
    site_name: str = "Creator Newsletter"
    base_url: str = "http://localhost:3000"
    default_from_email: str = "onboarding@resend.dev"
    default_from_name: str = "Media Tech Compass"
    verification_token_bytes: int = Field(32, ge=32)
    reject_disposable_emails: bool = False


class DigestRules(BaseModel):
    frequency_hours: dict[str, int] = Field(
        default_factory=lambda: {"daily": 24, "weekly": 168, "monthly": 720}
    )
    max_items_per_send: int = Field(10, ge=1)


class DeliveryRules(BaseModel):
    batch_size: int = Field(50, ge=1)
    batch_delay_ms: int = Field(500, ge=0)
    dispatcher: str = "sequential"
    max_workers: int = Field(4, ge=1)
    mark_failed_when_all_fail: bool = False
    stale_after_minutes: int = Field(60, ge=1)

    @field_validator("dispatcher")
    @classmethod
    def check_dispatcher(cls, v: str) -> str:
        if v not in ("sequential", "threaded"):
            raise ValueError(f"Unknown dispatcher '{v}' (expected sequential or threaded)")
        return v


class EmailRules(BaseModel):
    provider: str = "dev"
    api_key_env: str = "RESEND_API_KEY"

    @field_validator("provider")
    @classmethod
    def check_provider(cls, v: str) -> str:
        if v not in ("dev", "resend"):
            raise ValueError(f"Unknown email provider '{v}' (expected dev or resend)")
        return v


class RateLimitWindow(BaseModel):
    window_seconds: int
    max_requests: int


class RateLimitRules(BaseModel):
    subscribe: RateLimitWindow = Field(
        default_factory=lambda: RateLimitWindow(window_seconds=3600, max_requests=10)
    )


class OpsRules(BaseModel):
    required_env: list[str] = Field(default_factory=list)
    cron_secret_env: str = "CRON_SECRET"


class Rules(BaseModel):
    project: ProjectRules
    newsletter: NewsletterRules = Field(default_factory=NewsletterRules)
    digest: DigestRules = Field(default_factory=DigestRules)
    delivery: DeliveryRules = Field(default_factory=DeliveryRules)
    email: EmailRules = Field(default_factory=EmailRules)
    rate_limits: RateLimitRules = Field(default_factory=RateLimitRules)
    ops: OpsRules = Field(default_factory=OpsRules)
