"""Engine configuration.

A single frozen pydantic model holds the knobs that apply to every
template a :class:`~mortarql.compile.template.TemplateCompiler` prepares::

    from mortarql import EngineConfig, TemplateCompiler

    compiler = TemplateCompiler(config=EngineConfig(parameter_base="p", max_parameters=2100))
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class EngineConfig(BaseModel):
    """Settings shared by every template a compiler prepares.

    Attributes:
        parameter_base: Prefix for parameter names minted for literals
            (``param`` gives ``param_0``, ``param_1``, ...).
        max_parameters: Upper bound on the parameters of one rendered
            statement (SQL Server allows 2100); ``None`` disables the check.
        log_rendered_sql: Log every rendered statement at DEBUG level.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    parameter_base: str = Field(default="param", pattern=r"^[A-Za-z_]\w*$")
    max_parameters: int | None = Field(default=None, ge=1)
    log_rendered_sql: bool = False
