# stardeck/schemas/image.py
from pydantic import BaseModel, Field
from typing import Literal, Optional


# ---------------------------
# Configuration hints read from an image
# ---------------------------
class ImagePort(BaseModel):
    port: int
    protocol: str = "tcp"


class ImageEnvVar(BaseModel):
    key: str
    value: str = ""
    has_value: bool = Field(..., description="False for a bare KEY with no default")


class ImageConfig(BaseModel):
    exposed_ports: list[ImagePort] = Field(default_factory=list)
    environment: list[ImageEnvVar] = Field(default_factory=list)
    volumes: list[str] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)
    working_dir: str = ""
    user: str = ""
    entrypoint: list[str] = Field(default_factory=list)
    cmd: list[str] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "exposed_ports": [{"port": 6379, "protocol": "tcp"}],
                "environment": [{"key": "REDIS_VERSION", "value": "7.2.4", "has_value": True}],
                "volumes": ["/data"],
                "labels": {},
                "working_dir": "/data",
                "user": "",
                "entrypoint": ["docker-entrypoint.sh"],
                "cmd": ["redis-server"],
            }
        }


# ---------------------------
# Inspect session messages
# ---------------------------
InspectStatus = Literal["connecting", "pulling", "pulled", "inspecting", "complete", "not_found", "error"]


class InspectRequest(BaseModel):
    image: str
    pull: bool = False


class InspectMessage(BaseModel):
    status: InspectStatus
    message: Optional[str] = None
    output: Optional[str] = None
    error: Optional[str] = None
    found: Optional[bool] = None
    config: Optional[ImageConfig] = None

    def to_wire(self) -> dict:
        return self.model_dump(exclude_none=True)
