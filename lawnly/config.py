from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    supabase_url: str
    supabase_service_role_key: str
    stripe_secret_key: str
    stripe_webhook_secret: str = ""
    resend_api_key: str = ""
    email_from: str = "Lawn Care <onboarding@resend.dev>"
    payout_currency: str = "aud"
    platform_fee_rate: float = 0.15
    connect_country: str = "AU"
    onboarding_return_url: str = "https://lawnly.com.au/contractor"
    log_level: str = "INFO"
