"""Settings library for the FuelTracker client.

Provides:
    - Schema validation and enforcement for the settings.json structure.
    - Loading, saving, reverting and reloading of settings sections.
    - Application paths for the settings file and the local record cache.
"""

import json
import logging
import pathlib
import shutil
from typing import Dict, Any, Optional, List

from PySide6 import QtCore

from ..status import status

app_name: str = 'FuelTracker'

METADATA_KEYS: List[str] = [
    'name',
    'locale',
    'currency',
    'loess_fraction',
]

SETTINGS_SCHEMA: Dict[str, Any] = {
    'api': {
        'type': dict,
        'required': True,
        'item_schema': {
            'url': {'type': str, 'required': True},
            'timeout': {'type': int, 'required': True},
        }
    },
    'metadata': {
        'type': dict,
        'required': True,
        'required_keys': METADATA_KEYS,
        'item_schema': {
            'name': {'type': str, 'required': True},
            'locale': {'type': str, 'required': True},
            'currency': {'type': str, 'required': True},
            'loess_fraction': {'type': float, 'required': True},
        }
    },
}


def _check_type(value: Any, _type: type) -> bool:
    """Check a JSON value against a schema type.

    Booleans are never accepted as numbers, and ints are accepted where floats are expected.
    """
    if isinstance(value, bool) and _type is not bool:
        return False
    if _type is float:
        return isinstance(value, (int, float))
    return isinstance(value, _type)


def _validate_items(section_name: str, section: Dict[str, Any], item_schema: Dict[str, Any]) -> None:
    """Validate the fields of a settings section against its item schema.

    Args:
        section_name: Name of the section, used in error messages.
        section: The section data.
        item_schema: Mapping of field names to their type and required flag.

    Raises:
        TypeError: If the section is not a dict or a field has the wrong type.
        ValueError: If a required field is missing.
    """
    logging.debug(f'Validating "{section_name}" section.')
    if not isinstance(section, dict):
        msg: str = f'"{section_name}" must be a dict.'
        logging.error(msg)
        raise TypeError(msg)
    for field, field_specs in item_schema.items():
        if field_specs['required'] and field not in section:
            msg = f'"{section_name}" is missing "{field}".'
            logging.error(msg)
            raise ValueError(msg)
        if field not in section:
            continue
        if not _check_type(section[field], field_specs['type']):
            msg = (
                f'"{section_name}" field "{field}" must be {field_specs["type"]}, '
                f'got {type(section[field])}.'
            )
            logging.error(msg)
            raise TypeError(msg)


def _validate_api(api_dict: Dict[str, Any]) -> None:
    """Validate the 'api' section values.

    Raises:
        ValueError: If the url is not an http(s) url or the timeout is negative.
    """
    url: str = api_dict['url']
    if not url.startswith(('http://', 'https://')):
        msg: str = f'api url must start with http:// or https://, got "{url}".'
        logging.error(msg)
        raise ValueError(msg)
    if api_dict['timeout'] < 0:
        msg = f'api timeout must be zero or positive, got {api_dict["timeout"]}.'
        logging.error(msg)
        raise ValueError(msg)


def _validate_metadata(metadata_dict: Dict[str, Any]) -> None:
    """Validate the 'metadata' section values.

    Raises:
        ValueError: If the loess fraction is outside (0, 1] or the currency is not a 3-letter code.
    """
    fraction = metadata_dict['loess_fraction']
    if not 0 < fraction <= 1:
        msg: str = f'loess_fraction must be in (0, 1], got {fraction}.'
        logging.error(msg)
        raise ValueError(msg)
    currency = metadata_dict['currency']
    if len(currency) != 3 or not currency.isalpha():
        msg = f'currency must be a 3-letter ISO code, got "{currency}".'
        logging.error(msg)
        raise ValueError(msg)


class ConfigPaths:
    """Manage application file paths and ensure the default settings template exists.

    The writable location comes from :class:`QtCore.QStandardPaths`, so tests can
    redirect it with ``QStandardPaths.setTestModeEnabled(True)``.
    """

    def __init__(self) -> None:
        QtCore.QCoreApplication.setApplicationName(app_name)
        QtCore.QCoreApplication.setOrganizationName('')
        logging.debug(f'Setting application name: {app_name}')

        p = QtCore.QStandardPaths.writableLocation(QtCore.QStandardPaths.AppDataLocation)
        app_data_dir = pathlib.Path(p)
        logging.debug(f'Using app data directory: {app_data_dir}')

        self.template_dir: pathlib.Path = pathlib.Path(__file__).parent.parent / 'config'
        self.settings_template: pathlib.Path = self.template_dir / 'settings.json.template'

        self.config_dir: pathlib.Path = app_data_dir / 'config'
        self.db_dir: pathlib.Path = self.config_dir / 'db'

        self.settings_path: pathlib.Path = self.config_dir / 'settings.json'
        self.db_path: pathlib.Path = self.db_dir / 'cache.db'

        self._verify_and_prepare()

    def _verify_and_prepare(self) -> None:
        """Verify the template exists and prepare the config directories and settings file.

        Raises:
            FileNotFoundError: If the bundled settings template is missing.
        """
        logging.debug(f'Verifying required templates in {self.template_dir}')
        if not self.settings_template.exists():
            msg: str = f'Missing settings template: {self.settings_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)

        if not self.config_dir.exists():
            logging.debug(f'Creating config directory: {self.config_dir}')
            self.config_dir.mkdir(parents=True, exist_ok=True)

        if not self.db_dir.exists():
            logging.debug(f'Creating db directory: {self.db_dir}')
            self.db_dir.mkdir(parents=True, exist_ok=True)

        if not self.settings_path.exists():
            logging.debug(f'Copying default settings from template to {self.settings_path}')
            shutil.copy(self.settings_template, self.settings_path)

    def revert_settings_to_template(self) -> None:
        """Restore settings.json from the default template file."""
        logging.debug(f'Reverting settings to template: {self.settings_template}')
        shutil.copy(self.settings_template, self.settings_path)


class SettingsAPI(ConfigPaths):
    """
    Provides an interface to get/set/revert/save settings.json sections.
    """

    def __init__(self, settings_path: Optional[str] = None) -> None:
        """Initialize SettingsAPI and load the settings data.

        Args:
            settings_path: Optional path to a custom settings.json file.
        """
        super().__init__()

        self.settings_path: pathlib.Path = pathlib.Path(settings_path) if settings_path else self.settings_path

        self._signals_blocked: bool = False

        self.settings_data: Dict[str, Any] = {k: {} for k in SETTINGS_SCHEMA}
        self.load_settings()

    def __getitem__(self, key: str) -> Any:
        """Retrieve a metadata value using dictionary-style access.

        Raises:
            KeyError: If key is not in METADATA_KEYS.
        """
        if key not in METADATA_KEYS:
            raise KeyError(f'Invalid metadata key: {key}, must be one of {METADATA_KEYS}')
        return self.settings_data['metadata'].get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        """Assign a metadata value using dictionary-style access and persist it.

        Raises:
            KeyError: If key is not in METADATA_KEYS.
            TypeError: If the value cannot be used for the key's type.
        """
        if key not in METADATA_KEYS:
            raise KeyError(f'Invalid metadata key: {key}, must be one of {METADATA_KEYS}')

        _type = SETTINGS_SCHEMA['metadata']['item_schema'][key]['type']
        if not _check_type(value, _type):
            logging.warning(f'Metadata key "{key}" is not of type {_type}, got {type(value)}.')
            try:
                value = _type(value)
            except (TypeError, ValueError) as ex:
                raise TypeError(f'Cannot convert "{value}" to {_type}.') from ex

        metadata = dict(self.settings_data['metadata'])
        metadata[key] = value
        _validate_metadata(metadata)

        self.settings_data['metadata'] = metadata
        self.save_section('metadata')

        if self._signals_blocked:
            return

        from ..ui.actions import signals
        signals.metadataChanged.emit(key, value)

    def block_signals(self, v: bool) -> None:
        """Enable or disable emission of configuration change signals."""
        self._signals_blocked = v

    def load_settings(self) -> Dict[str, Any]:
        """Load settings.json from disk and validate against the schema.

        Returns:
            The loaded settings dictionary.

        Raises:
            status.SettingsNotFoundException: If settings.json is missing.
            status.SettingsInvalidException: If JSON parsing or validation fails.
        """
        logging.debug(f'Loading settings from "{self.settings_path}"')
        if not self.settings_path.exists():
            raise status.SettingsNotFoundException(str(self.settings_path))

        try:
            with self.settings_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
            self.validate_settings_data(data)
        except (ValueError, TypeError) as ex:
            raise status.SettingsInvalidException(str(ex)) from ex

        self.settings_data = data
        return self.settings_data

    def validate_settings_data(self, data: Optional[Dict[str, Any]] = None) -> None:
        """Validate settings data against SETTINGS_SCHEMA.

        Args:
            data (dict, optional): Settings data to validate. Defaults to self.settings_data.

        Raises:
            ValueError: If a required section is missing or a value is out of range.
            TypeError: If a section or field has the wrong type.
        """
        if data is None:
            data = self.settings_data
        if not data:
            raise ValueError('Settings data is empty.')

        logging.debug('Validating settings data against schema.')
        for section_name, specs in SETTINGS_SCHEMA.items():
            if specs.get('required') and section_name not in data:
                raise ValueError(f'Missing required section: {section_name}')
            if not isinstance(data[section_name], specs['type']):
                raise TypeError(f'Section "{section_name}" must be {specs["type"]}, got {type(data[section_name])}.')

            _validate_items(section_name, data[section_name], specs['item_schema'])

            if section_name == 'api':
                _validate_api(data[section_name])
            elif section_name == 'metadata':
                _validate_metadata(data[section_name])

        logging.debug('Settings data is valid.')

    def get_section(self, section_name: str) -> Dict[str, Any]:
        """Retrieve a copy of a settings section.

        Raises:
            KeyError: If section_name is not a known section.
        """
        return self.settings_data[section_name].copy()

    def set_section(self, section_name: str, new_data: Dict[str, Any]) -> None:
        """Replace and persist a settings section.

        The previous section data is restored if validation fails.

        Raises:
            ValueError: If section_name is unrecognized or values are out of range.
            TypeError: If values have the wrong type.
        """
        if section_name not in SETTINGS_SCHEMA:
            msg: str = f'Unknown section_name for set: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        current_section_data: Dict[str, Any] = self.settings_data[section_name].copy()

        self.settings_data[section_name] = new_data
        try:
            self.validate_settings_data()
        except (ValueError, TypeError) as e:
            logging.error(f'Validation error on set_section("{section_name}"): {e}')
            self.settings_data[section_name] = current_section_data
            raise

        self.save_section(section_name)
        self._emit_section_changed(section_name)

    def reload_section(self, section_name: str) -> None:
        """Reload a settings section from disk and emit the change signal.

        Raises:
            ValueError: If section_name is unrecognized or the file fails validation.
        """
        if section_name not in SETTINGS_SCHEMA:
            msg: str = f'Unknown section_name for reload: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        logging.debug(f'Reloading section "{section_name}" from disk.')
        with self.settings_path.open('r', encoding='utf-8') as f:
            data: Dict[str, Any] = json.load(f)
        self.validate_settings_data(data=data)
        self.settings_data[section_name] = data[section_name]

        self._emit_section_changed(section_name)

    def revert_section(self, section_name: str) -> None:
        """Revert a settings section to its template default and save.

        Raises:
            ValueError: If section_name is unrecognized.
        """
        if section_name not in SETTINGS_SCHEMA:
            msg: str = f'Unknown section_name for revert: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        with self.settings_template.open('r', encoding='utf-8') as f:
            template_data: Dict[str, Any] = json.load(f)

        self.settings_data[section_name] = template_data[section_name]
        self.save_section(section_name)

        self._emit_section_changed(section_name)

    def save_section(self, section_name: str) -> None:
        """Persist a single settings section, keeping the other sections on disk untouched.

        Raises:
            ValueError: If section_name is not recognized.
        """
        if section_name not in SETTINGS_SCHEMA:
            msg: str = f'Unknown section_name for save: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        with self.settings_path.open('r', encoding='utf-8') as f:
            original_data: Dict[str, Any] = json.load(f)

        new_data: Dict[str, Any] = original_data.copy()
        new_data[section_name] = self.settings_data[section_name]

        with self.settings_path.open('w', encoding='utf-8') as f:
            json.dump(new_data, f, indent=4, ensure_ascii=False)

    def _emit_section_changed(self, section_name: str) -> None:
        if self._signals_blocked:
            return
        from ..ui.actions import signals
        signals.configSectionChanged.emit(section_name)


settings: SettingsAPI = SettingsAPI()
