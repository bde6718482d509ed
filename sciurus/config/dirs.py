import os
import pathlib

APP_NAME = 'sciurus'
CONFIG_FILENAME = 'config.json'


def get_config_dir_path(app_name=APP_NAME):
    """Per-user config directory, honouring XDG_CONFIG_HOME."""
    base = os.environ.get('XDG_CONFIG_HOME')
    if base:
        config_dir = pathlib.Path(base)
    else:
        config_dir = pathlib.Path.home() / '.config'
    return config_dir / app_name


def get_config_file_path(app_name=APP_NAME):
    return get_config_dir_path(app_name) / CONFIG_FILENAME
