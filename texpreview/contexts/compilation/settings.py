"""
Compilation Settings

Toolchain binaries, time budgets and limits for the compilation pipeline.

Resolution order (later overrides earlier):
    1. CompilerSettings defaults
    2. YAML file (config_path argument or TEXPREVIEW_CONFIG_PATH)
    3. TEXPREVIEW_<FIELD> environment variables (.env supported)

Examples:
    >>> settings = load_settings()
    >>> settings.typesetter
    'pdflatex'

    # config.yaml
    #   typesetter: lualatex
    #   timeout_s: 60
    >>> load_settings(Path("config.yaml")).timeout_s
    60.0
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from omegaconf import OmegaConf

load_dotenv()

CONFIG_PATH_ENV = "TEXPREVIEW_CONFIG_PATH"
ENV_PREFIX = "TEXPREVIEW_"

# 10 MiB, measured on the UTF-8 encoded source
MAX_SOURCE_BYTES = 10 * 1024 * 1024


@dataclass
class CompilerSettings:
    """
    Settings for one CompilationPipeline.

    Attributes:
        typesetter: LaTeX engine binary (pdflatex-compatible command line)
        converter: PDF to SVG converter binary (pdftocairo-compatible)
        biber: biblatex bibliography processor
        bibtex: classic BibTeX bibliography processor
        timeout_s: Time budget for each single external process
        max_passes: Maximum number of typesetter passes per compilation
        max_source_bytes: Largest accepted source document
        log_excerpt_lines: Trailing log lines included in failure diagnostics
    """

    typesetter: str = "pdflatex"
    converter: str = "pdftocairo"
    biber: str = "biber"
    bibtex: str = "bibtex"
    timeout_s: float = 30.0
    max_passes: int = 3
    max_source_bytes: int = MAX_SOURCE_BYTES
    log_excerpt_lines: int = 200


def _env_overrides() -> Dict[str, str]:
    """Collect TEXPREVIEW_<FIELD> overrides present in the environment."""
    overrides = {}
    for settings_field in fields(CompilerSettings):
        value = os.getenv(f"{ENV_PREFIX}{settings_field.name.upper()}")
        if value is not None:
            overrides[settings_field.name] = value
    return overrides


def load_settings(config_path: Optional[Path] = None) -> CompilerSettings:
    """
    Load compilation settings from defaults, an optional YAML file and the environment.

    Args:
        config_path: YAML file with CompilerSettings keys (defaults to TEXPREVIEW_CONFIG_PATH)

    Returns:
        Validated CompilerSettings

    Raises:
        FileNotFoundError: If the config file doesn't exist
        omegaconf.errors.ValidationError: If a value has the wrong type
    """
    if config_path is None and os.getenv(CONFIG_PATH_ENV):
        config_path = Path(os.getenv(CONFIG_PATH_ENV))

    layers = [OmegaConf.structured(CompilerSettings)]
    if config_path is not None:
        layers.append(OmegaConf.load(config_path))
    layers.append(OmegaConf.create(_env_overrides()))

    settings = OmegaConf.to_object(OmegaConf.merge(*layers))

    # At least one typesetter pass is always needed
    settings.max_passes = max(1, settings.max_passes)
    return settings
