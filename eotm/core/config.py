import sys

from pydantic_settings import BaseSettings

_ENV_FILE = None if "pytest" in sys.modules else ".env"


class Settings(BaseSettings):
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    COSMOS_DB_ENDPOINT: str = ""
    COSMOS_DB_KEY: str = ""
    COSMOS_DB_DATABASE: str = "nominations-db"
    COSMOS_DB_EMPLOYEES_CONTAINER: str = "employees"
    COSMOS_DB_CONFIGURATION_CONTAINER: str = "configuration"

    # API callers (bearer tokens issued by Azure AD)
    AZURE_AD_TENANT_ID: str = ""
    AZURE_AD_CLIENT_ID: str = ""
    ADMIN_ROLE: str = "admin"

    # Directory reads (Microsoft Graph, client credentials)
    GRAPH_TENANT_ID: str = ""
    GRAPH_CLIENT_ID: str = ""
    GRAPH_CLIENT_SECRET: str = ""
    GRAPH_API_BASE_URL: str = "https://graph.microsoft.com/v1.0"
    GRAPH_LOGIN_BASE_URL: str = "https://login.microsoftonline.com"

    EMPLOYEE_ROSTER_PATH: str = ""

    SYNC_EXCLUDE_DOMAINS: str = ""
    SYNC_EXCLUDE_PATTERNS: str = ""
    SYNC_PAGE_SIZE: int = 999
    SYNC_MAX_EMPLOYEES: int = 10_000
    SYNC_EXTERNAL_TIMEOUT_SECONDS: float = 60.0
    SYNC_PRIMARY_SOURCE: str = "directory"

    model_config = {
        "env_file": _ENV_FILE,
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }

    @staticmethod
    def split_list(value: str) -> list[str]:
        return [item.strip().lower() for item in value.split(",") if item.strip()]


settings = Settings()
