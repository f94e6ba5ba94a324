import os
import re
import math
import logging
import logging.handlers
import yaml
from typing import Dict, Any
from dotenv import load_dotenv


def load_config(config_path: str = 'config.yaml') -> Dict[str, Any]:
    """Load configuration from YAML file with environment variable overrides."""
    # Load environment variables
    load_dotenv()

    config = get_default_config()
    try:
        if os.path.exists(config_path):
            with open(config_path, 'r', encoding='utf-8') as f:
                merge_config(config, yaml.safe_load(f) or {})
    except (OSError, yaml.YAMLError) as e:
        logging.warning(f"Could not load config from {config_path}: {e}")

    # Override with environment variables
    config = apply_env_overrides(config)

    return config


def merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge `overrides` into `base` (in place)."""
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merge_config(base[key], value)
        else:
            base[key] = value
    return base


def get_default_config() -> Dict[str, Any]:
    """Get default configuration values."""
    return {
        'pdf': {
            'paper_size': 'A4',
            'orientation': 'portrait',
            'margins': {
                'left': 28.35,
                'top': 28.35,
                'right': 28.35,
                'bottom': 56.7
            },
            'auto_page_break': True,
            'compress': True,
            'strict_links': False,
            'metadata': {
                'title': '',
                'subject': '',
                'author': '',
                'creator': 'pdfbuilder'
            },
            'font': {
                'family': 'Helvetica',
                'size': 11,
                'line_height': 14
            },
            'include_toc': True,
            'include_page_numbers': True
        },
        'fonts': {
            'search_paths': []
        },
        'logging': {
            'level': 'INFO',
            'log_to_file': False,
            'log_filename': 'pdfbuilder.log',
            'rotate_logs': True,
            'logs_dir': 'logs'
        },
        'directories': {
            'output_dir': 'output'
        }
    }


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration."""
    env_mappings = {
        'PDF_PAPER_SIZE': (('pdf',), 'paper_size', str),
        'PDF_ORIENTATION': (('pdf',), 'orientation', str),
        'PDF_COMPRESS': (('pdf',), 'compress', _to_bool),
        'PDF_STRICT_LINKS': (('pdf',), 'strict_links', _to_bool),
        'PDF_TITLE': (('pdf', 'metadata'), 'title', str),
        'OUTPUT_DIR': (('directories',), 'output_dir', str),
        'LOG_LEVEL': (('logging',), 'level', str),
        'DEBUG_MODE': (('logging',), 'level', lambda x: 'DEBUG' if _to_bool(x) else config['logging']['level'])
    }

    for env_var, (path, key, converter) in env_mappings.items():
        value = os.getenv(env_var)
        if value is not None:
            section = config
            for part in path:
                section = section.setdefault(part, {})
            try:
                section[key] = converter(value)
            except (ValueError, TypeError) as e:
                logging.warning(f"Invalid value for {env_var}: {value} - {e}")

    return config


def setup_logging(logging_config: Dict[str, Any]) -> logging.Logger:
    """Setup logging configuration."""
    level = getattr(logging, str(logging_config.get('level', 'INFO')).upper(), logging.INFO)

    # Configure logging
    logger = logging.getLogger()
    logger.setLevel(level)

    # Clear existing handlers
    logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    # Create formatter
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler
    if logging_config.get('log_to_file', False):
        logs_dir = logging_config.get('logs_dir', 'logs')
        os.makedirs(logs_dir, exist_ok=True)
        log_filename = os.path.join(logs_dir, logging_config.get('log_filename', 'pdfbuilder.log'))

        if logging_config.get('rotate_logs', True):
            # Rotating file handler
            file_handler = logging.handlers.RotatingFileHandler(
                log_filename,
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
        else:
            file_handler = logging.FileHandler(log_filename, encoding='utf-8')

        file_handler.setLevel(logging.DEBUG)  # File gets all logs
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format."""
    if size_bytes == 0:
        return "0B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    i = min(int(math.floor(math.log(size_bytes, 1024))), len(size_names) - 1)
    p = math.pow(1024, i)
    s = round(size_bytes / p, 2)
    return f"{s} {size_names[i]}"


def clean_filename(filename: str) -> str:
    """Clean filename to be filesystem safe."""
    # Remove or replace invalid characters
    filename = re.sub(r'[<>:"/\\|?*]', '_', filename)

    # Remove control characters
    filename = re.sub(r'[\x00-\x1f\x7f-\x9f]', '', filename)

    # Limit length
    if len(filename) > 255:
        name, ext = os.path.splitext(filename)
        filename = name[:255-len(ext)] + ext

    return filename.strip()


def slugify(text: str) -> str:
    """Turn a heading into an anchor name: 'Getting Started!' -> 'getting-started'."""
    slug = re.sub(r'[^a-z0-9]+', '-', text.lower()).strip('-')
    return slug or 'section'
