import os
from pydantic import BaseModel, Field
from dotenv import load_dotenv

load_dotenv()

class PayrollSettings(BaseModel):
    standard_deduction: float = Field(default=float(os.getenv("PAYROLL_STANDARD_DEDUCTION", "50000")))
    seed_default_components: bool = Field(
        default=os.getenv("PAYROLL_SEED_DEFAULT_COMPONENTS", "true").lower() == "true"
    )

class Config(BaseModel):
    app_name: str = "HR Payroll Platform"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./database.db")

    # Payroll engine
    payroll: PayrollSettings = PayrollSettings()

    version: str = "1.0.0"
    build_id: str = os.getenv("BUILD_ID", "local")
    request_id_header: str = "X-Request-ID"

settings = Config()

if settings.payroll.standard_deduction < 0:
    raise RuntimeError(
        f"FATAL: PAYROLL_STANDARD_DEDUCTION must not be negative "
        f"(got {settings.payroll.standard_deduction})."
    )
