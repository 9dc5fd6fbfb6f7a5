from pathlib import Path
import os
import tomllib
from pydantic import BaseModel, Field, ValidationError
from typing import Optional
from jinja2 import Template


# ─── Config Schema ─────────────────────────────────────────────────
class RecurrenceConfig(BaseModel):
    max_iterations: int = Field(500, ge=1)
    month_rollover: str = Field("clamp", pattern="^(clamp|skip)$")


class DefaultsConfig(BaseModel):
    status: str = Field("open", pattern="^(open|working|blocked|wont-do|complete)$")
    priority: str = Field("normal", pattern="^(high|medium|normal|low)$")


class TaskrecurConfig(BaseModel):
    title: str = "Taskrecur Configuration"
    vault: str = "vault"
    recurrence: RecurrenceConfig = RecurrenceConfig()
    defaults: DefaultsConfig = DefaultsConfig()


# ─── Commented Template ────────────────────────────────────
CONFIG_TEMPLATE = """\
title = "{{ title }}"

# vault: str = directory holding the task notes. Relative paths
# are resolved against the taskrecur home directory.
vault = "{{ vault }}"

[recurrence]
# max_iterations: int >= 1
# Upper bound on the number of steps taken while searching for the
# next occurrence of a rule. Rules that can never be satisfied give
# up after this many steps instead of searching forever.
max_iterations = {{ recurrence.max_iterations }}

# month_rollover: str = 'clamp' | 'skip'
# How a monthly rule anchored on a day that a shorter month lacks
# (e.g. the 31st) is handled:
#   clamp → use the last day of the shorter month (Jan 31 → Feb 29)
#   skip  → skip that month entirely (Jan 31 → Mar 31)
month_rollover = "{{ recurrence.month_rollover }}"

[defaults]
# Values shown for notes that do not set these fields.
# status: str = 'open' | 'working' | 'blocked' | 'wont-do' | 'complete'
status = "{{ defaults.status }}"

# priority: str = 'high' | 'medium' | 'normal' | 'low'
priority = "{{ defaults.priority }}"
"""

# ─── Save Config with Comments ───────────────────────────────


def render_config(config: TaskrecurConfig) -> str:
    template = Template(CONFIG_TEMPLATE)
    return template.render(**config.model_dump()).strip() + "\n"


def save_config_from_template(config: TaskrecurConfig, path: Path):
    path.write_text(render_config(config), encoding="utf-8")
    print(f"✅ Config with comments written to: {path}")


# ─── Main Environment Class ───────────────────────────────


class TaskrecurEnvironment:
    def __init__(self):
        self._home = self._resolve_home()
        self._config: Optional[TaskrecurConfig] = None

    @property
    def home(self) -> Path:
        return self._home

    @property
    def config_path(self) -> Path:
        return self.home / "config.toml"

    @property
    def vault_path(self) -> Path:
        vault = Path(self.config.vault).expanduser()
        if vault.is_absolute():
            return vault
        return self.home / vault

    def ensure(self, init_config: bool = True, init_vault: bool = True):
        self.home.mkdir(parents=True, exist_ok=True)

        if init_config and not self.config_path.exists():
            save_config_from_template(TaskrecurConfig(), self.config_path)

        if init_vault:
            self.vault_path.mkdir(parents=True, exist_ok=True)

    def load_config(self) -> TaskrecurConfig:
        # Step 1: Create the file if it doesn't exist
        if not self.config_path.exists():
            config = TaskrecurConfig()
            self.home.mkdir(parents=True, exist_ok=True)
            self.config_path.write_text(render_config(config), encoding="utf-8")
            print(f"✅ Created new config file at {self.config_path}")
            self._config = config
            return config

        # Step 2: Try to load and validate the config
        try:
            with open(self.config_path, "rb") as f:
                data = tomllib.load(f)
            config = TaskrecurConfig.model_validate(data)
        except (ValidationError, tomllib.TOMLDecodeError) as e:
            print(f"⚠️ Config error in {self.config_path}: {e}\nUsing defaults.")
            self._config = TaskrecurConfig()
            return self._config

        # Step 3: Regenerate the canonical version so missing defaults appear
        rendered = render_config(config)
        current_text = self.config_path.read_text(encoding="utf-8")
        if rendered != current_text:
            self.config_path.write_text(rendered, encoding="utf-8")
            print(f"✅ Updated {self.config_path} with any missing defaults.")

        self._config = config
        return config

    @property
    def config(self) -> TaskrecurConfig:
        if self._config is None:
            return self.load_config()
        return self._config

    def _resolve_home(self) -> Path:
        cwd = Path.cwd()
        if (cwd / "config.toml").exists() and (cwd / "vault").is_dir():
            return cwd

        env_home = os.getenv("TASKRECUR_HOME")
        if env_home:
            return Path(env_home).expanduser()

        xdg_home = os.getenv("XDG_CONFIG_HOME")
        if xdg_home:
            return Path(xdg_home).expanduser() / "taskrecur"
        else:
            return Path.home() / ".config" / "taskrecur"
