"""Configuration loading for the step-plan engine."""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from just_built.constants import (
    CYBERSECURITY_PROMPT,
    DEFAULT_MODEL,
    DEFAULT_REPORTS_DIR,
    DEFAULT_STEP_DELAY_S,
    get_model,
)


class ConfigError(Exception):
    """Raised when configuration is missing or out of range."""
    pass


# Allowed ranges for LLM parameters: (min, max)
LLM_PARAMETER_RANGES = {
    "temperature": (0.0, 2.0),
    "max_tokens": (256, 8192),
    "top_p": (0.0, 1.0),
    "frequency_penalty": (-2.0, 2.0),
    "presence_penalty": (-2.0, 2.0),
}

AGENT_PURPOSES = (
    "general",
    "frontend",
    "backend",
    "fullstack",
    "devops",
    "security-audit",
    "vulnerability-assessment",
    "defensive-coding",
)

SECURITY_LEVELS = ("standard", "enhanced", "maximum")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class LLMConfig:
    """Generation parameters handed to a model."""

    temperature: float = 0.7
    max_tokens: int = 2048
    top_p: float = 0.9
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    system_prompt: str = ""

    def validate(self) -> "LLMConfig":
        """
        Check every numeric parameter against LLM_PARAMETER_RANGES.

        Raises:
            ConfigError: listing every out-of-range parameter.
        """
        problems = []
        for name, (low, high) in LLM_PARAMETER_RANGES.items():
            value = getattr(self, name)
            if not low <= value <= high:
                problems.append(f"{name}={value} (allowed {low}..{high})")
        if problems:
            raise ConfigError(f"Invalid LLM config: {', '.join(problems)}")
        return self

    @property
    def cybersecurity_mode(self) -> bool:
        return CYBERSECURITY_PROMPT in self.system_prompt

    def with_cybersecurity_mode(self, enabled: bool) -> "LLMConfig":
        """Return a copy with the cybersecurity prompt suffix added or stripped."""
        prompt = self.system_prompt.replace(CYBERSECURITY_PROMPT, "")
        if enabled:
            prompt = prompt + CYBERSECURITY_PROMPT
        return LLMConfig(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            top_p=self.top_p,
            frequency_penalty=self.frequency_penalty,
            presence_penalty=self.presence_penalty,
            system_prompt=prompt,
        )


@dataclass
class AgentConfig:
    """A named agent: which model it uses and how it should behave."""

    name: str
    description: str = ""
    model: str = DEFAULT_MODEL
    purpose: str = "general"
    security_level: str = "standard"
    custom_instructions: str = ""
    llm: LLMConfig = field(default_factory=LLMConfig)

    def validate(self) -> "AgentConfig":
        problems = []
        if not self.name or not self.name.strip():
            problems.append("name is required")
        if get_model(self.model) is None:
            problems.append(f"unknown model '{self.model}'")
        if self.purpose not in AGENT_PURPOSES:
            problems.append(f"purpose must be one of {AGENT_PURPOSES}")
        if self.security_level not in SECURITY_LEVELS:
            problems.append(f"security_level must be one of {SECURITY_LEVELS}")
        if problems:
            raise ConfigError(f"Invalid agent config: {'; '.join(problems)}")
        self.llm.validate()
        return self


@dataclass
class Config:
    """Application configuration loaded from environment."""

    default_model: str = DEFAULT_MODEL
    step_delay_s: float = DEFAULT_STEP_DELAY_S
    reports_dir: str = DEFAULT_REPORTS_DIR
    log_level: str = "WARNING"


def load_config(env: Optional[dict] = None) -> Config:
    """
    Load configuration from environment variables.

    Args:
        env: Mapping to read instead of os.environ (tests pass their own).
             When None, a .env file is loaded first.

    Returns:
        Config with defaults for anything unset.

    Raises:
        ConfigError: If a variable is set to an unusable value.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    default_model = env.get("JUST_BUILT_MODEL") or DEFAULT_MODEL
    raw_delay = env.get("JUST_BUILT_STEP_DELAY_S") or str(DEFAULT_STEP_DELAY_S)
    reports_dir = env.get("JUST_BUILT_REPORTS_DIR") or DEFAULT_REPORTS_DIR
    log_level = (env.get("JUST_BUILT_LOG_LEVEL") or "WARNING").upper()

    problems = []
    if get_model(default_model) is None:
        problems.append(f"JUST_BUILT_MODEL: unknown model '{default_model}'")

    step_delay_s = None
    try:
        step_delay_s = float(raw_delay)
        if step_delay_s < 0:
            problems.append("JUST_BUILT_STEP_DELAY_S must not be negative")
    except ValueError:
        problems.append(f"JUST_BUILT_STEP_DELAY_S is not a number: '{raw_delay}'")

    if log_level not in LOG_LEVELS:
        problems.append(f"JUST_BUILT_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")

    if problems:
        raise ConfigError(
            "Invalid configuration:\n  " + "\n  ".join(problems) + "\n"
            "Fix them in your environment or .env file."
        )

    return Config(
        default_model=default_model,
        step_delay_s=step_delay_s,
        reports_dir=reports_dir,
        log_level=log_level,
    )
