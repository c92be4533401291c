from urllib.parse import urljoin

from pydantic import AnyHttpUrl, BaseModel, Field

DEFAULT_ACCOUNTS_BASE_URL = "https://accounts.spotify.com/"
DEFAULT_API_BASE_URL = "https://api.spotify.com/v1/"


class ClientSettings(BaseModel):
    accounts_base_url: AnyHttpUrl = Field(
        default=AnyHttpUrl(DEFAULT_ACCOUNTS_BASE_URL),
        description="Base URL of the accounts service hosting the authorize and token endpoints.",
    )
    api_base_url: AnyHttpUrl = Field(
        default=AnyHttpUrl(DEFAULT_API_BASE_URL),
        description="Base URL of the versioned Web API. Relative request paths are resolved against it.",
    )
    timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for HTTP clients created by the library. Supplied clients keep their own.",
    )

    @property
    def authorize_url(self) -> str:
        return urljoin(str(self.accounts_base_url), "authorize")

    @property
    def token_url(self) -> str:
        return urljoin(str(self.accounts_base_url), "api/token")

    def api_url(self, path: str) -> str:
        """Resolve an API path against the API base URL. Absolute URLs are returned as is."""
        if path.startswith(("http://", "https://")):
            return path
        return urljoin(str(self.api_base_url), path.lstrip("/"))
