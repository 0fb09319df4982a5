"""
Centralized LLM Router Service

Handles:
1. Model configuration loading from YAML
2. Hierarchy resolution (Role > Group > Default)
3. Environment variable overrides for A/B testing
4. Provider-specific parameter constraints (Claude, OpenAI reasoning)

Usage:
    from writarcade.services.llm_router import get_llm_router

    router = get_llm_router()
    llm_kwargs = router.get_llm_kwargs("narrator")  # Ready for litellm.acompletion
    model = router.get_model_for_role("game_generator")
"""

import os
import yaml
import logging
from typing import Dict, Optional, List
from pathlib import Path

logger = logging.getLogger(__name__)


class LLMRouter:
    """Centralized LLM routing with model-aware parameter handling"""

    def __init__(self, config_path: str = None, default_model: str = None):
        """
        Initialize LLM Router.

        Args:
            config_path: Path to models.yaml config file.
                         If None, uses writarcade/config/models.yaml
            default_model: Replaces the models.yaml default (Settings.default_model)
        """
        if config_path is None:
            config_path = Path(__file__).parent.parent / "config" / "models.yaml"
        self.config_path = config_path
        self.config = self._load_config(config_path)
        if default_model:
            self.config.setdefault("default", {})["model"] = default_model
        self._apply_env_overrides()

    def _load_config(self, config_path: str) -> dict:
        """Load YAML config file"""
        with open(config_path, 'r') as f:
            return yaml.safe_load(f) or {}

    def _apply_env_overrides(self):
        """
        Apply environment variable overrides for A/B testing.

        Supports:
        - TEST_<GROUP_NAME>_MODEL: Override all roles in a group
        - TEST_<ROLE_NAME>_MODEL: Override a specific role
        """
        for group_name in self.config.get("groups", {}):
            env_value = os.getenv(f"TEST_{group_name.upper()}_MODEL")
            if env_value:
                self.config["groups"][group_name]["model"] = env_value
                logger.info(f"🔬 A/B Override: {group_name} group → {env_value}")

        for role_name in self.config.get("roles", {}):
            env_value = os.getenv(f"TEST_{role_name.upper()}_MODEL")
            if env_value:
                self.config["roles"][role_name]["model"] = env_value
                logger.info(f"🔬 A/B Override: {role_name} → {env_value}")

    def _normalize_model_name(self, model: str) -> str:
        """
        Add provider prefix if missing (for LiteLLM routing).

        LiteLLM needs gemini/ for Google AI Studio models; OpenAI and
        Anthropic model names route without a prefix.

        Args:
            model: Model name, possibly without prefix

        Returns:
            Model name with appropriate provider prefix
        """
        if not model:
            return model

        known_prefixes = ['gemini/', 'vertex_ai/', 'openai/', 'azure/', 'anthropic/',
                          'ollama/', 'claude-', 'gpt-', 'o1-', 'o3-']
        if any(model.startswith(prefix) for prefix in known_prefixes):
            return model

        if model.startswith('gemini-'):
            return f'gemini/{model}'

        return model

    def get_model_for_role(self, role: str) -> str:
        """
        Get model for a generation role using hierarchy:
        1. Role-specific model (if set)
        2. Group model (if the role is in a group with model set)
        3. Default model

        Args:
            role: Role identifier ("game_generator", "narrator")

        Returns:
            Normalized model name ready for LiteLLM
        """
        role_cfg = self.config.get("roles", {}).get(role, {})
        if role_cfg.get("model"):
            return self._normalize_model_name(role_cfg["model"])

        for group_cfg in self.config.get("groups", {}).values():
            if role in group_cfg.get("members", []) and group_cfg.get("model"):
                return self._normalize_model_name(group_cfg["model"])

        default_model = self.config.get("default", {}).get("model", "gpt-4o-mini")
        return self._normalize_model_name(default_model)

    def get_llm_kwargs(self, role: str, model_override: str = None) -> dict:
        """
        Build complete LLM kwargs for a role, including:
        - Model name
        - Role-specific parameters (temperature, max_tokens, timeout)
        - Provider-specific constraints

        Args:
            role: Role identifier
            model_override: Model to use instead of config (e.g. the game's
                            generation model, for narrative consistency)

        Returns:
            Dict ready to splat into litellm.acompletion(**kwargs)
        """
        if model_override:
            model = self._normalize_model_name(model_override)
        else:
            model = self.get_model_for_role(role)

        role_cfg = self.config.get("roles", {}).get(role, {})
        default_cfg = self.config.get("default", {})

        kwargs = {
            "model": model,
            "temperature": role_cfg.get("temperature", default_cfg.get("temperature", 0.7)),
            "max_tokens": role_cfg.get("max_tokens", default_cfg.get("max_tokens", 1024)),
            "timeout": role_cfg.get("timeout", default_cfg.get("timeout", 120)),
            "drop_params": True,  # Auto-drop unsupported params
        }

        if role_cfg.get("presence_penalty") is not None:
            kwargs["presence_penalty"] = role_cfg["presence_penalty"]

        return self._apply_model_constraints(model, kwargs, role_cfg)

    def _apply_model_constraints(self, model: str, kwargs: dict, role_cfg: dict = None) -> dict:
        """
        Handle provider-specific parameter constraints.

        - Claude: No temperature + top_p together
        - OpenAI Reasoning (o1, o3, gpt-5): no sampling params,
          max_completion_tokens instead of max_tokens

        Args:
            model: Normalized model name
            kwargs: Current kwargs dict
            role_cfg: Role config for custom top_p

        Returns:
            Modified kwargs dict
        """
        model_lower = model.lower()
        role_cfg = role_cfg or {}

        is_claude = "claude" in model_lower or "anthropic" in model_lower
        if not is_claude:
            kwargs["top_p"] = role_cfg.get("top_p", 0.95)

        is_openai_reasoning = any(x in model_lower for x in ["gpt-5", "o3-", "o1-"])
        if is_openai_reasoning:
            max_tokens = kwargs.pop("max_tokens", 4096)
            kwargs["max_completion_tokens"] = max_tokens
            for param in ("temperature", "top_p", "presence_penalty"):
                kwargs.pop(param, None)

        return kwargs

    def get_role_display_name(self, role: str) -> str:
        return self.config.get("roles", {}).get(role, {}).get("display_name", role)

    def list_roles_in_group(self, group_name: str) -> List[str]:
        return self.config.get("groups", {}).get(group_name, {}).get("members", [])

    def list_all_roles(self) -> List[str]:
        return list(self.config.get("roles", {}).keys())

    def get_active_overrides(self) -> Dict[str, str]:
        """
        Get currently active model overrides.

        Returns:
            Dict mapping "group:<name>" / "role:<name>" to override model
        """
        overrides = {}
        for group_name, group_cfg in self.config.get("groups", {}).items():
            if group_cfg.get("model"):
                overrides[f"group:{group_name}"] = group_cfg["model"]
        for role_name, role_cfg in self.config.get("roles", {}).items():
            if role_cfg.get("model"):
                overrides[f"role:{role_name}"] = role_cfg["model"]
        return overrides

    def log_configuration(self):
        """Log the effective model for every role."""
        logger.info("📋 LLM Router Configuration:")
        for name, model in self.get_active_overrides().items():
            logger.info(f"  🔄 Override {name} → {model}")
        for role in self.list_all_roles():
            logger.info(f"  🤖 {self.get_role_display_name(role)} ({role}): {self.get_model_for_role(role)}")


# Singleton instance
_llm_router: Optional[LLMRouter] = None


def get_llm_router() -> LLMRouter:
    """
    Get singleton LLM Router instance.

    Returns:
        LLMRouter instance (creates one if not initialized)
    """
    global _llm_router
    if _llm_router is None:
        _llm_router = LLMRouter()
    return _llm_router


def init_llm_router(config_path: str = None, default_model: str = None) -> LLMRouter:
    """
    Initialize LLM Router (call at app startup).

    Args:
        config_path: Optional path to models.yaml
        default_model: Fallback model for roles and groups without one

    Returns:
        Initialized LLMRouter instance
    """
    global _llm_router
    _llm_router = LLMRouter(config_path, default_model)
    return _llm_router


def reset_llm_router():
    """Reset the singleton (useful for testing)."""
    global _llm_router
    _llm_router = None
