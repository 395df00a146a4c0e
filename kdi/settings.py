import logging
from typing import Any
from typing import List

from dynaconf import Dynaconf

logger = logging.getLogger(__name__)


settings = Dynaconf(
    includes=["settings.toml"],
    load_dotenv=True,
    merge_enabled=True,
    envvar_prefix="KDI",
)


def check_module_settings(module_name: str, required_settings: List[str]) -> bool:
    """
    Check if the required settings for a module are set in the configuration.

    Args:
        module_name (str): The name of the module, e.g. "Mapping".
        required_settings (List[str]): A list of required settings for the module.

    Returns:
        bool: True if all required settings are present, False otherwise.
    """
    module_settings = settings.get(module_name.upper(), None)
    if module_settings is None:
        logger.info(
            "%s is not configured - skipping. See docs to configure.",
            module_name,
        )
        return False

    missing_settings = [
        setting for setting in required_settings if not module_settings.get(setting)
    ]
    if len(missing_settings) > 0:
        logger.warning(
            "%s is not configured - skipping. Missing settings: %s",
            module_name,
            ", ".join(missing_settings),
        )
        return False
    return True


def populate_settings_from_options(section: str, options: dict[str, Any]) -> None:
    """
    Override settings of one section with explicitly supplied options.

    Options whose value is None were not given on the command line and leave the
    configured value (settings.toml, .env or KDI_* environment) untouched.
    """
    overrides = {key: value for key, value in options.items() if value is not None}
    if not overrides:
        return
    logger.debug("Overriding %s settings: %s", section, ", ".join(sorted(overrides)))
    settings.update({section: overrides})
