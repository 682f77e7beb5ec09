from pydantic import BaseModel, ConfigDict, field_validator


class ConnectionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str = "localhost"
    port: int = 8080
    database: str = "Default"

    @field_validator("host", "database")
    @classmethod
    def validate_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("host and database must not be empty")
        return value

    @field_validator("port")
    @classmethod
    def validate_port(cls, value: int) -> int:
        if not (0 < value < 65536):
            raise ValueError("port must be between 1 and 65535")
        return value

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"
