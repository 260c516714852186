import json
from typing import Callable, List, Optional
from urllib import request as urllib_request

import colorama
from pwinput import pwinput
from rich.align import Align
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from aicli.config import Config
from aicli.logging_setup import get_logger
from aicli.models import LiteLLMModel, LiteLLMModelsResponse, ModelConfiguration, UserSettings
from aicli.settings_store import FileUserSettingsStore

logger = get_logger("config")

# -----------------------------
# UI
# -----------------------------
class UI:
    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def banner(self):
        self.console.print(Align.center(Text("AI CLI Config", style="bold blue")))
        self.console.print(Panel("", border_style="blue", height=1))

    def menu(self, title: str, options: List[str]):
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Key", style="bold yellow", justify="right")
        table.add_column("Option", style="bold white")
        for i, option in enumerate(options, start=1):
            table.add_row(f"[{i}]", option)

        panel = Panel(
            Align.center(table),
            title=f"[bold cyan]{title}[/bold cyan]",
            border_style="bright_blue",
            padding=(1, 5),
        )
        self.console.print(panel)

    def show_msg(self, title: str, content: str, color: str = "white"):
        self.console.print(Panel(content, title=f"[bold]{title}[/]", border_style=color))

    def get_input(self, label: str = "COMMAND") -> str:
        prompt_style = Config.Colors.USER_PROMPT
        self.console.print(f"[{prompt_style}]┌──({escape(label)})-[~][/]")
        return self.console.input(f"[{prompt_style}]└─> [/]")

    def ask(self, label: str, default: Optional[str] = None) -> str:
        hint = f" [{default}]" if default is not None else ""
        value = self.get_input(f"{label}{hint}").strip()
        return value if value else (default or "")

    def confirm(self, question: str, default: bool = False) -> bool:
        hint = "Y/n" if default else "y/N"
        answer = self.get_input(f"{question} ({hint})").strip().lower()
        if not answer:
            return default
        return answer.startswith("y")

    def choose(self, title: str, options: List[str]) -> Optional[int]:
        """Numbered pick; returns the 0-based index or None when the input is invalid."""
        self.menu(title, options)
        choice = self.get_input("SELECT").strip()
        if choice.isdigit() and 1 <= int(choice) <= len(options):
            return int(choice) - 1
        return None

    def secret(self, label: str) -> str:
        self.console.print(f"[bold yellow]{label}[/]")
        try:
            k = pwinput(prompt=f"{colorama.Fore.CYAN}Key > {colorama.Style.RESET_ALL}", mask="*")
        except (EOFError, OSError):
            k = input("Key > ")
        return (k or "").strip()

# -----------------------------
# LiteLLM proxy
# -----------------------------
def fetch_litellm_models(proxy_url: str, timeout: float = 10) -> List[LiteLLMModel]:
    url = f"{proxy_url.rstrip('/')}/models"
    logger.info("Fetching models from LiteLLM proxy", extra={"url": url})
    req = urllib_request.Request(url, headers={"Accept": "application/json"}, method="GET")
    with urllib_request.urlopen(req, timeout=timeout) as resp:
        body = resp.read()
    data = json.loads(body.decode("utf-8"))
    return LiteLLMModelsResponse.model_validate(data).data

# -----------------------------
# Configuration menu
# -----------------------------
class ConfigurationMenu:
    MAIN_OPTIONS = [
        "Add Model Configuration",
        "Remove Model Configuration",
        "Remove All Models",
        "List Model Configurations",
        "Set Default Model Configuration",
        "LiteLLM Proxy",
        "Reset To Defaults",
        "Exit",
    ]

    def __init__(
        self,
        store: FileUserSettingsStore,
        ui: Optional[UI] = None,
        fetch_models: Callable[[str], List[LiteLLMModel]] = fetch_litellm_models,
    ):
        self.store = store
        self.ui = ui or UI()
        self.fetch_models = fetch_models

    def start(self):
        colorama.init(autoreset=True)
        self.ui.banner()

        actions = [
            self.add_model_configuration,
            self.remove_model_configuration,
            self.remove_all_model_configurations,
            self.list_model_configurations,
            self.set_default_model_configuration,
            self.configure_litellm_proxy,
            self.reset_to_defaults,
        ]

        while True:
            choice = self.ui.choose("MAIN MENU", self.MAIN_OPTIONS)
            if choice is None:
                self.ui.console.print("[red]Invalid Command[/]")
                continue
            if choice == len(self.MAIN_OPTIONS) - 1:
                self.ui.console.print("[green]Configuration saved successfully![/]")
                return
            actions[choice]()
            self.ui.console.print()

    def _pick_configuration(self, settings: UserSettings, title: str) -> Optional[ModelConfiguration]:
        configs = settings.model_configurations
        idx = self.ui.choose(title, [f"{c.name} ({c.id})" for c in configs])
        if idx is None:
            self.ui.show_msg("Invalid", "Invalid selection.", "red")
            return None
        return configs[idx]

    def add_model_configuration(self):
        self.ui.console.print("[yellow]Adding new model configuration[/]")

        config_id = self.ui.ask("Configuration ID")
        if not config_id:
            self.ui.show_msg("Invalid", "Configuration ID cannot be empty.", "red")
            return

        settings = self.store.load()
        if settings.get_model_configuration(config_id) is not None:
            self.ui.show_msg("Duplicate", f"Configuration with ID '{config_id}' already exists!", "red")
            return

        name = self.ui.ask("Configuration name", config_id)
        api_key = self.ui.secret("Enter API key (leave empty to use AI_API_KEY)")
        base_url = self.ui.ask("Base URL (Enter for default)") or None
        model = self.ui.ask("Model name", Config.DEFAULT_MODEL)

        temperature_input = self.ui.ask("Temperature (0.0-2.0)", str(Config.DEFAULT_TEMPERATURE))
        try:
            temperature = float(temperature_input)
        except ValueError:
            temperature = -1.0
        if not 0.0 <= temperature <= 2.0:
            self.ui.show_msg("Temperature", "Temperature must be between 0.0 and 2.0. Using default value 1.0.", "red")
            temperature = Config.DEFAULT_TEMPERATURE

        max_tokens_input = self.ui.ask("Max tokens (Enter for unlimited)")
        max_tokens = int(max_tokens_input) if max_tokens_input.isdigit() else None

        fmt_idx = self.ui.choose("OUTPUT FORMAT", list(Config.FORMATS))
        fmt = Config.FORMATS[fmt_idx] if fmt_idx is not None else Config.DEFAULT_FORMAT

        stream = self.ui.confirm("Enable streaming by default?", False)

        settings.add_or_update_model_configuration(ModelConfiguration(
            id=config_id,
            name=name,
            api_key=api_key or None,
            base_url=base_url,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            format=fmt,
            stream=stream,
        ))
        if not settings.default_model_configuration_id:
            settings.default_model_configuration_id = config_id
        self.store.save(settings)

        self.ui.show_msg("Success", f"Model configuration '{name}' added successfully!", "green")
        logger.info("Added model configuration", extra={"config_id": config_id})

    def remove_model_configuration(self):
        settings = self.store.load()
        if not settings.model_configurations:
            self.ui.show_msg("Remove", "No model configurations found!", "red")
            return
        if len(settings.model_configurations) == 1:
            self.ui.show_msg("Remove", "Cannot remove the only model configuration!", "red")
            return

        target = self._pick_configuration(settings, "REMOVE CONFIGURATION")
        if target is None:
            return

        if not self.ui.confirm(f"Are you sure you want to remove '{target.name}'?"):
            self.ui.console.print("[yellow]Operation cancelled.[/]")
            return

        was_default = settings.default_model_configuration_id == target.id
        settings.remove_model_configuration(target.id)
        if was_default:
            new_default = settings.get_default_model_configuration()
            self.ui.console.print(f"[yellow]Default model configuration changed to: {new_default.name}[/]")
        self.store.save(settings)

        self.ui.show_msg("Success", f"Model configuration '{target.name}' removed successfully!", "green")
        logger.info("Removed model configuration", extra={"config_id": target.id})

    def remove_all_model_configurations(self):
        settings = self.store.load()
        count = len(settings.model_configurations)
        if count == 0:
            self.ui.console.print("[yellow]No model configurations found to remove.[/]")
            return

        self.ui.console.print(f"[yellow]Found {count} model configuration(s) to remove.[/]")
        if not self.ui.confirm(f"Remove ALL {count} model configurations? This cannot be undone"):
            self.ui.console.print("[yellow]Operation cancelled.[/]")
            return

        settings.clear()
        self.store.save(settings)

        self.ui.show_msg("Success", f"All {count} model configurations removed successfully!", "green")
        logger.info("Removed all model configurations", extra={"count": count})

    def list_model_configurations(self):
        settings = self.store.load()
        if not settings.model_configurations:
            self.ui.show_msg("Configurations", "No model configurations found!", "red")
            return

        table = Table(title="Model Configurations")
        for column in ("ID", "Name", "Model", "Base URL", "API Key", "Default"):
            table.add_column(column)

        for cfg in settings.model_configurations:
            is_default = cfg.id == settings.default_model_configuration_id
            table.add_row(
                cfg.id,
                cfg.name,
                cfg.model,
                cfg.base_url or "Default",
                "set" if cfg.api_key else "-",
                "[green]Yes[/]" if is_default else "No",
            )
        self.ui.console.print(table)

    def set_default_model_configuration(self):
        settings = self.store.load()
        if not settings.model_configurations:
            self.ui.show_msg("Default", "No model configurations found!", "red")
            return
        if len(settings.model_configurations) == 1:
            self.ui.show_msg("Default", "Only one model configuration exists. It is already the default.", "yellow")
            return

        target = self._pick_configuration(settings, "DEFAULT CONFIGURATION")
        if target is None:
            return

        settings.default_model_configuration_id = target.id
        self.store.save(settings)

        self.ui.show_msg("Success", f"Default model configuration set to: {target.name}", "green")
        logger.info("Set default model configuration", extra={"config_id": target.id})

    def configure_litellm_proxy(self):
        self.ui.console.print("[yellow]Configuring LiteLLM Proxy models[/]")
        proxy_url = self.ui.ask("LiteLLM proxy URL", Config.LITELLM_DEFAULT_URL)

        try:
            models = self.fetch_models(proxy_url)
        except Exception as e:
            self.ui.show_msg("LiteLLM", f"Error connecting to LiteLLM proxy: {e}", "red")
            logger.error("Error fetching models from LiteLLM proxy", extra={"url": proxy_url}, exc_info=True)
            return

        if not models:
            self.ui.show_msg("LiteLLM", "No models found from the LiteLLM proxy.", "red")
            return

        table = Table(title=f"Found {len(models)} models")
        table.add_column("Model ID")
        table.add_column("Owner")
        for m in models:
            table.add_row(m.id, m.owned_by)
        self.ui.console.print(table)

        if not self.ui.confirm("Add all these models to your configuration?"):
            self.ui.console.print("[yellow]Operation cancelled.[/]")
            return

        added, skipped = self.add_litellm_models(models, proxy_url)
        self.ui.show_msg("LiteLLM", f"Added {added} new model configurations", "green")
        if skipped:
            self.ui.console.print(f"[yellow]Skipped {skipped} existing model configurations[/]")

    def add_litellm_models(self, models: List[LiteLLMModel], proxy_url: str):
        settings = self.store.load()
        added = skipped = 0

        for m in models:
            config_id = f"litellm-{m.id}"
            if settings.get_model_configuration(config_id) is not None:
                logger.info("Model configuration already exists, skipping", extra={"config_id": config_id})
                skipped += 1
                continue

            settings.add_or_update_model_configuration(ModelConfiguration(
                id=config_id,
                name=f"LiteLLM: {m.id}",
                base_url=proxy_url,
                model=m.id,
            ))
            added += 1
            logger.info("Added model configuration", extra={"config_id": config_id, "model": m.id})

        if not settings.default_model_configuration_id and settings.model_configurations:
            settings.default_model_configuration_id = settings.model_configurations[0].id
        self.store.save(settings)
        return added, skipped

    def reset_to_defaults(self):
        if not self.ui.confirm("Reset all settings to defaults? Every configuration will be removed"):
            self.ui.console.print("[yellow]Operation cancelled.[/]")
            return
        self.store.reset_to_default()
        self.ui.show_msg("Reset", "Settings reset to defaults.", "cyan")
