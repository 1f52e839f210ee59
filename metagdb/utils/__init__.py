from .yaml_config import YAMLConfig, BatchConfig, get_yaml_config, reset_yaml_config, validate_ranks
from .diagnostics import Diagnostic, Diagnostics
from .logging_config import setup_logger, log_import_result
