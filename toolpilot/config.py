"""Configuration management for toolpilot."""

import os
from pathlib import Path
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _env_float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))


@dataclass
class OllamaConfig:
    """Ollama text generator configuration."""
    base_url: str = field(default_factory=lambda: os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"))
    model: str = field(default_factory=lambda: os.getenv("OLLAMA_MODEL", "llama3.1:8b"))
    timeout: float = field(default_factory=lambda: _env_float("OLLAMA_TIMEOUT", 120.0))


@dataclass
class AgentConfig:
    """Budgets and generation settings for the tool-calling loop."""
    max_iterations: int = field(default_factory=lambda: _env_int("AGENT_MAX_ITERATIONS", 15))
    max_nudges: int = field(default_factory=lambda: _env_int("AGENT_MAX_NUDGES", 2))
    failure_threshold: int = field(default_factory=lambda: _env_int("AGENT_FAILURE_THRESHOLD", 2))
    history_window: int = field(default_factory=lambda: _env_int("AGENT_HISTORY_WINDOW", 10))
    max_tokens: int = field(default_factory=lambda: _env_int("AGENT_MAX_TOKENS", 2048))
    temperature: float = field(default_factory=lambda: _env_float("AGENT_TEMPERATURE", 0.3))
    command_timeout: float = field(default_factory=lambda: _env_float("AGENT_COMMAND_TIMEOUT", 30.0))


@dataclass
class PathsConfig:
    """File system paths configuration."""
    workspace_root: Path = field(default_factory=lambda: Path(os.getenv("WORKSPACE_ROOT", ".")).resolve())
    mcp_servers_file: Path = field(default_factory=lambda: Path(os.getenv("MCP_SERVERS_FILE", "./mcp_servers.json")))
    log_dir: Path = field(default_factory=lambda: Path(os.getenv("LOG_DIR", "./logs")))


@dataclass
class Config:
    """Main configuration container."""
    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.ollama.base_url:
            errors.append("OLLAMA_BASE_URL is required")
        if not self.ollama.model:
            errors.append("OLLAMA_MODEL is required")
        if not self.paths.workspace_root.is_dir():
            errors.append(f"WORKSPACE_ROOT does not exist: {self.paths.workspace_root}")

        if self.agent.max_iterations < 1:
            errors.append("AGENT_MAX_ITERATIONS must be at least 1")
        if self.agent.max_nudges < 0:
            errors.append("AGENT_MAX_NUDGES cannot be negative")
        if self.agent.failure_threshold < 1:
            errors.append("AGENT_FAILURE_THRESHOLD must be at least 1")
        if self.agent.history_window < 1:
            errors.append("AGENT_HISTORY_WINDOW must be at least 1")
        if not 0.0 <= self.agent.temperature <= 2.0:
            errors.append("AGENT_TEMPERATURE must be between 0 and 2")

        return errors
