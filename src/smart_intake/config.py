"""Smart intake configuration loader."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class ModelConfig:
    """Language model endpoint configuration."""

    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    api_key_env: str = "SMART_INTAKE_API_KEY"
    timeout_seconds: float = 30.0
    max_retries: int = 3
    retry_backoff_seconds: float = 0.5
    circuit_breaker_threshold: int = 5
    circuit_breaker_reset_seconds: float = 60.0
    temperature: float = 0.2

    def api_key(self) -> str | None:
        """Read the API key from the configured environment variable."""
        return os.environ.get(self.api_key_env) or None


@dataclass
class IntakeConfig:
    """Main configuration for the intake service."""

    question_budget: int = 5
    session_ttl_seconds: int = 3600
    draft_expiration_hours: int = 24
    sweep_interval_seconds: float = 900.0

    # Directory of <prompt key>.md files overriding the built-in prompts
    prompts_dir: str | None = None

    model: ModelConfig = field(default_factory=ModelConfig)
    api_port: int = 8080

    @classmethod
    def load(cls, config_path: str = ".smart_intake/config.yaml") -> "IntakeConfig":
        """Load config from YAML file.

        Args:
            config_path: Path to config file (relative or absolute)

        Returns:
            Loaded configuration
        """
        path = Path(config_path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        model_data = data.get("model", {}) or {}
        defaults = ModelConfig()
        model = ModelConfig(
            base_url=model_data.get("base_url", defaults.base_url),
            model=model_data.get("name", model_data.get("model", defaults.model)),
            api_key_env=model_data.get("api_key_env", defaults.api_key_env),
            timeout_seconds=float(model_data.get("timeout_seconds", defaults.timeout_seconds)),
            max_retries=int(model_data.get("max_retries", defaults.max_retries)),
            retry_backoff_seconds=float(
                model_data.get("retry_backoff_seconds", defaults.retry_backoff_seconds)
            ),
            circuit_breaker_threshold=int(
                model_data.get("circuit_breaker_threshold", defaults.circuit_breaker_threshold)
            ),
            circuit_breaker_reset_seconds=float(
                model_data.get("circuit_breaker_reset_seconds", defaults.circuit_breaker_reset_seconds)
            ),
            temperature=float(model_data.get("temperature", defaults.temperature)),
        )

        intake_data = data.get("intake", {}) or {}
        api_data = data.get("api", {}) or {}

        return cls(
            question_budget=int(intake_data.get("question_budget", 5)),
            session_ttl_seconds=int(intake_data.get("session_ttl_seconds", 3600)),
            draft_expiration_hours=int(intake_data.get("draft_expiration_hours", 24)),
            sweep_interval_seconds=float(intake_data.get("sweep_interval_seconds", 900.0)),
            prompts_dir=data.get("prompts_dir"),
            model=model,
            api_port=int(api_data.get("port", 8080)),
        )
