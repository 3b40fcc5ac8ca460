"""Client runtime configuration via constructor arguments or environment variables."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import validate_server_url


class ClientSettings(BaseSettings):
    model_config = {"env_prefix": "LORL_"}

    game_id: str = Field(min_length=1)
    server_url: str | None = None
    username: str = Field(default="Guest", min_length=1)
    connect_timeout_seconds: float = Field(default=8.0, gt=0)
    list_timeout_seconds: float = Field(default=5.0, gt=0)
    ping_timeout_seconds: float = Field(default=4.0, gt=0)
    # None keeps create/join handshakes open until a response or a disconnect.
    handshake_timeout_seconds: float | None = Field(default=None, gt=0)
    log_dir: str | None = None

    @field_validator("server_url")
    @classmethod
    def validate_server_url(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return validate_server_url(v)
