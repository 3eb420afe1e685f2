from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

UpsmonRole = Literal["primary", "secondary"]


def _plain_name(v: str) -> str:
    if not v or any(c.isspace() for c in v) or '"' in v:
        raise ValueError(f"bad name (must be non-empty, no spaces or quotes): {v!r}")
    return v


class ServerMeta(BaseModel):
    version: str = "2.8.0"
    netver: str = "1.3"
    max_value_len: int = Field(ge=1, le=4096, default=256)


class RangeSpec(BaseModel):
    min: str
    max: str

    @field_validator("min", "max", mode="before")
    @classmethod
    def _as_str(cls, v: Any) -> str:
        return str(v)


class VarSpec(BaseModel):
    value: str
    description: str = "Description unavailable"
    writable: bool = False
    types: List[str] = Field(default_factory=lambda: ["NUMBER"])
    enums: List[str] = Field(default_factory=list)
    ranges: List[RangeSpec] = Field(default_factory=list)

    @field_validator("value", mode="before")
    @classmethod
    def _value_as_str(cls, v: Any) -> str:
        return str(v)

    @field_validator("enums", mode="before")
    @classmethod
    def _enums_as_str(cls, v: Any) -> List[str]:
        return [str(x) for x in (v or [])]


class UpsSpec(BaseModel):
    description: str = "Unavailable"
    stale: bool = False
    vars: Dict[str, VarSpec] = Field(default_factory=dict)
    commands: Dict[str, str] = Field(default_factory=dict)
    clients: List[str] = Field(default_factory=list)


class UserSpec(BaseModel):
    password: str
    upsmon: Optional[UpsmonRole] = None
    actions: List[Literal["SET", "FSD"]] = Field(default_factory=list)
    instcmds: List[str] = Field(default_factory=list)

    def may_run(self, command: str) -> bool:
        return "all" in self.instcmds or command in self.instcmds


class SimConfig(BaseModel):
    server: ServerMeta = Field(default_factory=ServerMeta)
    ups: Dict[str, UpsSpec] = Field(min_length=1)
    users: Dict[str, UserSpec] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _names_are_tokens(self) -> "SimConfig":
        # UPS, variable and command names travel as unquoted words
        for ups_name, ups in self.ups.items():
            _plain_name(ups_name)
            for var_name in ups.vars:
                _plain_name(var_name)
            for cmd_name in ups.commands:
                _plain_name(cmd_name)
        for username in self.users:
            _plain_name(username)
        return self
